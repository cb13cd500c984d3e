"""Database models for accounts and their per-provider API credentials."""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Integer, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship

from backlogus.db.database import Base


class User(Base):
    """
    An account.

    Only the scalar profile fields travel inside a backup; the password hash
    never leaves the database.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False, default="")
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    avatar_url = Column(Text, nullable=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    theme_preference = Column(String(20), nullable=True, default="system")  # light | dark | system
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user_games = relationship("UserGame", back_populates="user", cascade="all, delete-orphan")
    user_movies = relationship("UserMovie", back_populates="user", cascade="all, delete-orphan")
    api_credentials = relationship("UserApiCredential", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"


class UserApiCredential(Base):
    """Secret bundle for one metadata provider (igdb, tmdb), one row per account and provider."""
    __tablename__ = "user_api_credentials"
    __table_args__ = (
        UniqueConstraint("user_id", "api_provider", name="uq_user_api_provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    api_provider = Column(String(20), nullable=False)
    api_key = Column(Text, nullable=True)
    client_id = Column(Text, nullable=True)
    client_secret = Column(Text, nullable=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="api_credentials")

    def __repr__(self):
        return f"<UserApiCredential(user={self.user_id}, provider={self.api_provider})>"
