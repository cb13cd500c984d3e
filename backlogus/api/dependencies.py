"""Shared application state and FastAPI dependencies."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Header, HTTPException, Query

from backlogus.config import SystemConfig
from backlogus.services.image_cache import ImageCache

logger = logging.getLogger(__name__)

# Populated by the application lifespan
app_state: Dict[str, Any] = {
    "system_config": None,
    "image_cache": None,
}


class AuthError(Exception):
    """Bearer token missing, malformed or expired."""
    pass


def get_system_config() -> SystemConfig:
    return app_state["system_config"] or SystemConfig()


def get_image_cache() -> ImageCache:
    cache = app_state["image_cache"]
    if cache is None:
        raise HTTPException(status_code=503, detail="Image cache not initialized")
    return cache


def create_access_token(
    user_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_in: timedelta = timedelta(days=7)
) -> str:
    """Issue a token in the same shape the auth service does (used by tools and tests)."""
    payload = {
        "userId": user_id,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> int:
    """
    Verify a bearer token and return the account ID it names.

    Raises:
        AuthError: Token invalid, expired, or missing the userId claim
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}")

    user_id = payload.get("userId")
    if user_id is None:
        raise AuthError("Token has no userId claim")
    return int(user_id)


def _authenticate(token: Optional[str]) -> int:
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    auth = get_system_config().auth
    try:
        return decode_access_token(token, auth.jwt_secret, auth.algorithm)
    except AuthError as e:
        logger.debug(f"Rejected token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip()
    return None


async def get_current_user_id(authorization: Optional[str] = Header(None)) -> int:
    """Account ID from the Authorization: Bearer header."""
    return _authenticate(_bearer(authorization))


async def get_download_user_id(
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Query(None)
) -> int:
    """Like get_current_user_id, but browsers following a download link pass ?token= instead."""
    return _authenticate(_bearer(authorization) or token)
