"""API routes for the signed-in account: profile, API credentials, image cache and backups."""

import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backlogus.api.dependencies import (
    get_current_user_id,
    get_download_user_id,
    get_image_cache,
    get_system_config,
)
from backlogus.config import SystemConfig
from backlogus.db.database import get_db
from backlogus.models.user import UserApiCredential
from backlogus.repositories import CredentialRepository, UserRepository
from backlogus.services.backup_archive import ARCHIVE_MEDIA_TYPE, BackupArchiveError
from backlogus.services.backup_graph import UserNotFoundError
from backlogus.services.backup_service import BackupError, BackupProgress, BackupService
from backlogus.services.image_cache import ImageCache
from backlogus.services.restore_service import RestoreError, RestoreService

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ["igdb", "tmdb"]

router = APIRouter(prefix="/api/user", tags=["user"])


# Request/Response models

class ProfileResponse(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    timezone: str
    theme_preference: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProfileUpdateRequest(BaseModel):
    """Only the fields present in the request body are changed."""
    email: Optional[str] = Field(None, min_length=3, max_length=255)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    avatar_url: Optional[str] = None
    timezone: Optional[str] = Field(None, max_length=64)
    theme_preference: Optional[str] = Field(None, pattern="^(light|dark|system)$")


class CredentialRequest(BaseModel):
    api_key: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True


class CredentialResponse(BaseModel):
    """Credential status; secrets are never returned."""
    id: int
    api_provider: str
    is_active: bool
    is_configured: bool = True
    created_at: datetime
    updated_at: datetime


def _credential_response(credential: UserApiCredential) -> CredentialResponse:
    return CredentialResponse(
        id=credential.id,
        api_provider=credential.api_provider,
        is_active=credential.is_active,
        created_at=credential.created_at,
        updated_at=credential.updated_at,
    )


# Profile

@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    user = UserRepository(db).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return ProfileResponse.model_validate(user, from_attributes=True)


@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    repo = UserRepository(db)
    user = repo.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    updates = request.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    if "email" in updates:
        if updates["email"] is None:
            raise HTTPException(status_code=400, detail="Email cannot be empty")
        if updates["email"] != user.email:
            existing = repo.get_by_email(updates["email"])
            if existing and existing.id != user.id:
                raise HTTPException(status_code=400, detail="Email already in use")

    if "timezone" in updates and updates["timezone"] is None:
        raise HTTPException(status_code=400, detail="Timezone cannot be empty")

    try:
        user = repo.update_profile(user, **updates)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update profile for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update profile")

    return ProfileResponse.model_validate(user, from_attributes=True)


# API credentials

@router.get("/api-credentials", response_model=List[CredentialResponse])
async def list_api_credentials(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    return [_credential_response(c) for c in CredentialRepository(db).list_for_user(user_id)]


@router.put("/api-credentials/{provider}", response_model=CredentialResponse)
async def save_api_credentials(
    provider: str,
    request: CredentialRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    if provider not in SUPPORTED_PROVIDERS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported API provider. Supported: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    if provider == "igdb" and (not request.client_id or not request.access_token):
        raise HTTPException(status_code=400, detail="IGDB requires client_id and access_token")
    if provider == "tmdb" and not request.api_key:
        raise HTTPException(status_code=400, detail="TMDB requires api_key")

    values = {
        "api_key": request.api_key or None,
        "client_id": request.client_id or None,
        "client_secret": request.client_secret or None,
        "access_token": request.access_token or None,
        "refresh_token": request.refresh_token or None,
        "expires_at": request.expires_at,
        "is_active": request.is_active,
    }

    try:
        credential = CredentialRepository(db).upsert(user_id, provider, values)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to save {provider} credentials for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to save API credentials")

    return _credential_response(credential)


@router.delete("/api-credentials/{provider}")
async def delete_api_credentials(
    provider: str,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    if CredentialRepository(db).delete(user_id, provider) == 0:
        raise HTTPException(status_code=404, detail="API credentials not found")
    return {"message": f"{provider.upper()} credentials removed successfully"}


# Image cache

@router.get("/cache/stats")
async def get_cache_stats(
    user_id: int = Depends(get_current_user_id),
    image_cache: ImageCache = Depends(get_image_cache)
):
    try:
        return await image_cache.stats()
    except Exception as e:
        logger.error(f"Failed to get cache statistics: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get cache statistics")


# Backup / restore

def _log_progress(progress: BackupProgress):
    logger.debug(f"Backup progress: {progress.stage} {progress.percent}% - {progress.message}")


@router.get("/backup")
async def download_backup(
    user_id: int = Depends(get_download_user_id),
    db: Session = Depends(get_db),
    image_cache: ImageCache = Depends(get_image_cache),
    system_config: SystemConfig = Depends(get_system_config)
):
    """
    Create and download a full backup of the account.

    Accepts the token as a query parameter so a plain link can trigger the download.
    """
    service = BackupService(db, image_cache, batch_size=system_config.backup.image_batch_size)

    try:
        archive = await service.create_backup(user_id, progress_callback=_log_progress)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except BackupError as e:
        logger.error(f"Failed to create backup for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create backup")

    filename = f"backlogus-backup-{date.today().isoformat()}.zip"
    return Response(
        content=archive,
        media_type=ARCHIVE_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.post("/backup/import")
async def import_backup(
    file: Optional[UploadFile] = File(None),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    image_cache: ImageCache = Depends(get_image_cache),
    system_config: SystemConfig = Depends(get_system_config)
):
    """
    Replace the account's library with the contents of an uploaded backup.

    Partial image restore failures are listed in `imageErrors` of a successful response.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No backup file provided")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No backup file provided")

    service = RestoreService(
        db,
        image_cache=image_cache,
        scoped_media_cleanup=system_config.backup.scoped_media_cleanup
    )

    try:
        result = await service.import_backup(user_id, content)
    except BackupArchiveError as e:
        logger.warning(f"Rejected backup upload for user {user_id}: {e}")
        return JSONResponse(status_code=400, content={"message": "Invalid backup file", "error": str(e)})
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except RestoreError as e:
        return JSONResponse(status_code=500, content={"message": "Failed to import backup", "error": str(e)})

    return result.to_dict()
