"""Pydantic models for configuration validation."""

from pathlib import Path
from typing import Literal
from pydantic import BaseModel, Field, field_validator


class DatabaseConfig(BaseModel):
    """Relational store configuration."""

    url: str = "sqlite:///data/backlogus.db"


class AuthConfig(BaseModel):
    """Bearer token verification settings."""

    jwt_secret: str = Field(default="change-me", min_length=1)
    algorithm: Literal["HS256", "HS384", "HS512"] = "HS256"


class ImageCacheConfig(BaseModel):
    """Local image cache configuration."""

    directory: Path = Path("data/image_cache")
    timeout_seconds: float = Field(default=15.0, gt=0)
    user_agent: str = "Backlogus/0.3 (+image-cache)"

    @field_validator('directory')
    @classmethod
    def validate_path(cls, v: Path) -> Path:
        """Ensure paths are cross-platform."""
        return Path(v)


class BackupConfig(BaseModel):
    """Backup and restore behaviour."""

    image_batch_size: int = Field(
        default=5,
        gt=0,
        le=50,
        description="Images materialized concurrently per batch during export"
    )
    scoped_media_cleanup: bool = Field(
        default=False,
        description=(
            "On restore, delete only catalog items the account referenced and nobody else "
            "tracks, instead of clearing the whole catalog"
        )
    )


class SystemConfig(BaseModel):
    """Top-level system configuration (config/system.yaml)."""

    api_host: str = "0.0.0.0"
    api_port: int = Field(default=3001, gt=0, lt=65536)
    debug: bool = False

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    image_cache: ImageCacheConfig = Field(default_factory=ImageCacheConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
