"""Database models for the shared media catalog and per-account library entries."""

from datetime import datetime
from sqlalchemy import (
    Column, String, DateTime, Text, ForeignKey, JSON, Integer, BigInteger, Float, UniqueConstraint
)
from sqlalchemy.orm import relationship

from backlogus.db.database import Base


class Game(Base):
    """
    A catalog game, shared by every account that tracks it.

    Artwork lives on external hosts; `screenshots` and `artworks` are JSON
    lists of URLs.
    """
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    igdb_id = Column(BigInteger, nullable=True, index=True)
    title = Column(String(500), nullable=False)
    summary = Column(Text, nullable=True)
    cover_url = Column(Text, nullable=True)
    banner_url = Column(Text, nullable=True)
    screenshots = Column(JSON, nullable=True)
    artworks = Column(JSON, nullable=True)
    release_date = Column(DateTime, nullable=True)
    genres = Column(JSON, nullable=True)
    platforms = Column(JSON, nullable=True)
    developer = Column(String(200), nullable=True)
    publisher = Column(String(200), nullable=True)
    rating = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user_games = relationship("UserGame", back_populates="game", passive_deletes=True)

    def __repr__(self):
        return f"<Game(id={self.id}, title={self.title})>"


class Movie(Base):
    """A catalog movie, shared by every account that tracks it."""
    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tmdb_id = Column(BigInteger, nullable=True, index=True)
    title = Column(String(500), nullable=False)
    overview = Column(Text, nullable=True)
    cover_url = Column(Text, nullable=True)
    backdrop_url = Column(Text, nullable=True)
    release_date = Column(DateTime, nullable=True)
    runtime = Column(Integer, nullable=True)  # minutes
    genres = Column(JSON, nullable=True)
    director = Column(String(200), nullable=True)
    rating = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user_movies = relationship("UserMovie", back_populates="movie", passive_deletes=True)

    def __repr__(self):
        return f"<Movie(id={self.id}, title={self.title})>"


class UserGame(Base):
    """A game in one account's library, with that account's tracking state."""
    __tablename__ = "user_games"
    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="uq_user_game"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="backlog")  # backlog | playing | completed | dropped | wishlist
    platform = Column(String(100), nullable=True)
    rating = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    hours_played = Column(Float, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="user_games")
    game = relationship("Game", back_populates="user_games")

    def __repr__(self):
        return f"<UserGame(user={self.user_id}, game={self.game_id}, status={self.status})>"


class UserMovie(Base):
    """A movie in one account's library, with that account's tracking state."""
    __tablename__ = "user_movies"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_user_movie"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    movie_id = Column(Integer, ForeignKey("movies.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="watchlist")  # watchlist | watching | watched | dropped
    platform = Column(String(100), nullable=True)  # streaming service or format
    rating = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    watched_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="user_movies")
    movie = relationship("Movie", back_populates="user_movies")

    def __repr__(self):
        return f"<UserMovie(user={self.user_id}, movie={self.movie_id}, status={self.status})>"
