"""Configuration loading and validation."""

from .models import (
    SystemConfig,
    DatabaseConfig,
    AuthConfig,
    ImageCacheConfig,
    BackupConfig,
)
from .loader import ConfigLoader, ConfigLoadError, ConfigValidationError

__all__ = [
    "SystemConfig",
    "DatabaseConfig",
    "AuthConfig",
    "ImageCacheConfig",
    "BackupConfig",
    "ConfigLoader",
    "ConfigLoadError",
    "ConfigValidationError",
]
