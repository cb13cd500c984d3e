"""Repository pattern for database operations."""

from .user_repository import UserRepository
from .credential_repository import CredentialRepository

__all__ = [
    "UserRepository",
    "CredentialRepository",
]
