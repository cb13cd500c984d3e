"""Services for Backlogus: image cache and account backup/restore."""

from .image_cache import ImageCache, ImageCacheService, ImageCacheError, CachedImage
from .backup_graph import UserGraph, UserNotFoundError, load_user_graph, extract_image_urls
from .backup_archive import (
    ParsedBackup,
    BackupArchiveError,
    CorruptArchiveError,
    InvalidArchiveError,
    parse_backup_archive,
)
from .backup_service import BackupService, BackupError, BackupProgress
from .restore_service import RestoreService, RestoreError, RestoreResult

__all__ = [
    "ImageCache",
    "ImageCacheService",
    "ImageCacheError",
    "CachedImage",
    "UserGraph",
    "UserNotFoundError",
    "load_user_graph",
    "extract_image_urls",
    "ParsedBackup",
    "BackupArchiveError",
    "CorruptArchiveError",
    "InvalidArchiveError",
    "parse_backup_archive",
    "BackupService",
    "BackupError",
    "BackupProgress",
    "RestoreService",
    "RestoreError",
    "RestoreResult",
]
