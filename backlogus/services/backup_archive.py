"""
Backup archive layout and parsing.

A backup is a ZIP file holding:
- backup.json    the data graph document (profile, media, library, credentials)
- manifest.txt   a human-readable summary of the metadata block
- images/<name>  one entry per cached image, named by its cache filename
"""

import io
import json
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from backlogus.services.image_cache import CachedImage

logger = logging.getLogger(__name__)

BACKUP_FORMAT_VERSION = "1.0"
SUPPORTED_BACKUP_VERSIONS = ["1.0"]

DOCUMENT_ENTRY = "backup.json"
MANIFEST_ENTRY = "manifest.txt"
IMAGE_PREFIX = "images/"

ARCHIVE_MEDIA_TYPE = "application/zip"

# Document sections holding lists of records
LIST_SECTIONS = ("games", "movies", "userGames", "userMovies", "apiCredentials")


class BackupArchiveError(Exception):
    """Base exception for unusable backup archives."""
    pass


class CorruptArchiveError(BackupArchiveError):
    """The upload is not a readable ZIP container."""
    pass


class InvalidArchiveError(BackupArchiveError):
    """The container opened but its contents are missing or malformed."""
    pass


@dataclass
class ParsedBackup:
    """Validated contents of an uploaded backup, ready for restore."""
    metadata: Dict[str, Any]
    user: Dict[str, Any]
    data: Dict[str, Any]
    api_credentials: List[Dict[str, Any]] = field(default_factory=list)
    images: List[CachedImage] = field(default_factory=list)
    manifest: Optional[str] = None


def parse_backup_archive(content: bytes) -> ParsedBackup:
    """
    Read an uploaded backup and validate its required sections.

    Entries are read one at a time. Image entries and the document are
    buffered; anything else is skipped without being read.

    Raises:
        CorruptArchiveError: The bytes are not a usable ZIP container (including
            unsupported compression or encrypted entries)
        InvalidArchiveError: The document is missing, malformed or incomplete
    """
    metadata = None
    user = None
    data = None
    api_credentials: List[Dict[str, Any]] = []
    images: List[CachedImage] = []
    manifest = None

    try:
        with zipfile.ZipFile(io.BytesIO(content), "r") as zipf:
            for info in zipf.infolist():
                if info.is_dir():
                    continue

                name = info.filename
                if name.startswith(IMAGE_PREFIX):
                    filename = name[len(IMAGE_PREFIX):]
                    if not filename:
                        continue
                    with zipf.open(info) as entry:
                        blob = entry.read()
                    images.append(CachedImage(filename=filename, data=blob, size=len(blob)))

                elif name == DOCUMENT_ENTRY:
                    with zipf.open(info) as entry:
                        raw = entry.read()
                    document = _load_document(raw)
                    metadata = document.get("metadata")
                    user = document.get("user")
                    data = document
                    api_credentials = document.get("apiCredentials") or []

                elif name == MANIFEST_ENTRY:
                    with zipf.open(info) as entry:
                        manifest = entry.read().decode("utf-8", errors="replace")

                else:
                    logger.debug(f"Ignoring unknown archive entry: {name}")

    except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
        # NotImplementedError: unsupported compression; RuntimeError: encrypted entry
        raise CorruptArchiveError(f"Backup file is not a valid ZIP archive: {e}") from e

    if not metadata or not user or not data:
        missing = [
            section for section, value in (("metadata", metadata), ("user", user), ("data", data))
            if not value
        ]
        raise InvalidArchiveError(
            f"Invalid backup file: missing {', '.join(missing)} (expected {DOCUMENT_ENTRY})"
        )

    _validate_sections(metadata, user, data)

    _validate_version(metadata)

    logger.info(
        f"Parsed backup v{metadata.get('version')} from {metadata.get('created')}: "
        f"{len(images)} images"
    )

    return ParsedBackup(
        metadata=metadata,
        user=user,
        data=data,
        api_credentials=api_credentials,
        images=images,
        manifest=manifest,
    )


def _load_document(raw: bytes) -> Dict[str, Any]:
    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidArchiveError(f"Invalid {DOCUMENT_ENTRY}: {e}") from e

    if not isinstance(document, dict):
        raise InvalidArchiveError(f"Invalid {DOCUMENT_ENTRY}: expected a JSON object")
    return document


def _validate_version(metadata: Dict[str, Any]):
    """Validate backup format version is supported."""
    version = str(metadata.get("version"))
    if version not in SUPPORTED_BACKUP_VERSIONS:
        raise InvalidArchiveError(
            f"Unsupported backup version {version}. "
            f"Supported versions: {SUPPORTED_BACKUP_VERSIONS}"
        )


def _validate_sections(metadata: Any, user: Any, document: Dict[str, Any]):
    """Reject documents whose sections have the wrong shape before anything is written."""
    for section, value in (("metadata", metadata), ("user", user)):
        if not isinstance(value, dict):
            raise InvalidArchiveError(f"Invalid {DOCUMENT_ENTRY}: '{section}' must be an object")

    for section in LIST_SECTIONS:
        items = document.get(section)
        if items is None:
            continue
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise InvalidArchiveError(f"Invalid {DOCUMENT_ENTRY}: '{section}' must be a list of objects")
