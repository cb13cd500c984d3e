"""Models package for Backlogus."""

from .user import User, UserApiCredential
from .media import Game, Movie, UserGame, UserMovie

__all__ = [
    "User",
    "UserApiCredential",
    "Game",
    "Movie",
    "UserGame",
    "UserMovie",
]
