"""Repository for per-provider API credentials."""

from typing import Any, Dict, List, Optional
from datetime import datetime
from sqlalchemy.orm import Session

from backlogus.models.user import UserApiCredential


class CredentialRepository:
    """Handle database operations for API credentials."""

    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: int) -> List[UserApiCredential]:
        return (
            self.db.query(UserApiCredential)
            .filter(UserApiCredential.user_id == user_id)
            .order_by(UserApiCredential.api_provider)
            .all()
        )

    def get(self, user_id: int, provider: str) -> Optional[UserApiCredential]:
        return (
            self.db.query(UserApiCredential)
            .filter(
                UserApiCredential.user_id == user_id,
                UserApiCredential.api_provider == provider
            )
            .first()
        )

    def upsert(self, user_id: int, provider: str, values: Dict[str, Any]) -> UserApiCredential:
        """
        Create or replace the credential for (user, provider).

        Args:
            user_id: Owning account
            provider: Provider key (igdb, tmdb)
            values: Column values (api_key, client_id, ... is_active)

        Returns:
            Saved credential
        """
        credential = self.get(user_id, provider)
        if credential is None:
            credential = UserApiCredential(user_id=user_id, api_provider=provider, **values)
            self.db.add(credential)
        else:
            for name, value in values.items():
                setattr(credential, name, value)
            credential.updated_at = datetime.utcnow()

        self.db.commit()
        self.db.refresh(credential)
        return credential

    def delete(self, user_id: int, provider: str) -> int:
        """Delete the credential; returns number of rows removed."""
        count = (
            self.db.query(UserApiCredential)
            .filter(
                UserApiCredential.user_id == user_id,
                UserApiCredential.api_provider == provider
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return count
