"""Repository for account profile operations."""

from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Session

from backlogus.models.user import User

PROFILE_ATTRIBUTES = ("email", "first_name", "last_name", "avatar_url", "timezone", "theme_preference")


class UserRepository:
    """Handle database operations for users."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def update_profile(self, user: User, **fields) -> User:
        """
        Update profile scalars.

        Args:
            user: User to update
            **fields: Any of email, first_name, last_name, avatar_url, timezone, theme_preference

        Returns:
            Updated user
        """
        for name, value in fields.items():
            if name not in PROFILE_ATTRIBUTES:
                raise ValueError(f"Not a profile field: {name}")
            setattr(user, name, value)

        user.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user
