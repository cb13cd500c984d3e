"""Account backup service: snapshot a user's library and artwork into one archive."""

import asyncio
import io
import json
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional
from sqlalchemy.orm import Session

from backlogus.services.backup_archive import (
    BACKUP_FORMAT_VERSION,
    DOCUMENT_ENTRY,
    MANIFEST_ENTRY,
    IMAGE_PREFIX,
)
from backlogus.services.backup_graph import (
    UserGraph,
    UserNotFoundError,
    extract_image_urls,
    load_user_graph,
)
from backlogus.services.image_cache import CachedImage, ImageCache

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_BATCH_SIZE = 5


class BackupError(Exception):
    """Raised when backup operation fails."""
    pass


@dataclass
class BackupProgress:
    """One progress notification."""
    stage: str      # data-fetch | image-collection | image-caching | archive-creation | complete
    percent: int
    message: str


ProgressCallback = Callable[[BackupProgress], None]


@dataclass
class MaterializationResult:
    """What happened when the referenced images were pulled into the cache."""
    total: int = 0
    cached: int = 0
    failed: Dict[str, str] = field(default_factory=dict)  # url -> error
    batches: int = 0


class _ProgressReporter:
    """Best-effort delivery to an optional callback; a broken listener never stops a backup."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self.callback = callback

    def emit(self, stage: str, percent: int, message: str):
        logger.debug(f"[backup] {stage} {percent}%: {message}")
        if self.callback is None:
            return
        try:
            self.callback(BackupProgress(stage=stage, percent=percent, message=message))
        except Exception as e:
            logger.warning(f"Progress callback failed at stage {stage}: {e}")


class BackupService:
    """Service for creating account backups."""

    def __init__(
        self,
        db: Session,
        image_cache: ImageCache,
        batch_size: int = DEFAULT_IMAGE_BATCH_SIZE
    ):
        """
        Initialize backup service.

        Args:
            db: SQLAlchemy database session
            image_cache: Cache used to materialize and enumerate artwork
            batch_size: Images fetched concurrently per batch
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.db = db
        self.image_cache = image_cache
        self.batch_size = batch_size

    async def create_backup(
        self,
        user_id: int,
        progress_callback: Optional[ProgressCallback] = None
    ) -> bytes:
        """
        Create a complete backup archive for one account.

        Args:
            user_id: Account to back up
            progress_callback: Optional listener for stage/percent updates

        Returns:
            ZIP archive bytes

        Raises:
            UserNotFoundError: The account does not exist
            BackupError: Loading data or writing the archive failed
        """
        progress = _ProgressReporter(progress_callback)
        logger.info(f"Starting backup for user: {user_id}")

        try:
            # Step 1: Load relational data
            progress.emit("data-fetch", 5, "Loading library data...")
            graph = load_user_graph(self.db, user_id)

            # Step 2: Find referenced artwork
            progress.emit("image-collection", 15, "Collecting image references...")
            urls = sorted(extract_image_urls(graph))
            logger.info(f"Found {len(urls)} image references")
        except UserNotFoundError:
            raise
        except Exception as e:
            logger.error(f"Backup failed for user {user_id}: {e}", exc_info=True)
            raise BackupError(f"Failed to load data for user {user_id}: {e}") from e

        # Step 3: Pull artwork into the cache (per-image failures are tolerated)
        result = await self.materialize_images(urls, progress)
        if result.failed:
            logger.warning(f"{len(result.failed)} of {result.total} images could not be cached")

        try:
            # Step 4: Everything currently cached goes into the archive
            images = await self.image_cache.list_all()

            # Step 5-6: Document and manifest
            document = self.build_document(graph, images)
            manifest = self.build_manifest(document)

            # Step 7: Package
            progress.emit("archive-creation", 80, "Creating archive...")
            buffer = io.BytesIO()
            self.write_archive(buffer, document, manifest, images, progress)
            archive = buffer.getvalue()
        except Exception as e:
            logger.error(f"Backup failed for user {user_id}: {e}", exc_info=True)
            raise BackupError(f"Failed to create backup archive for user {user_id}: {e}") from e

        progress.emit("complete", 100, "Backup complete")
        logger.info(
            f"Backup created for user {user_id}: {len(archive) / (1024 * 1024):.2f} MB, "
            f"{len(images)} images"
        )
        return archive

    async def materialize_images(
        self,
        urls: List[str],
        progress: Optional[_ProgressReporter] = None
    ) -> MaterializationResult:
        """
        Fetch every URL into the cache, `batch_size` at a time.

        Each batch runs concurrently and must fully settle before the next
        one starts. A failed URL is recorded and skipped.
        """
        progress = progress or _ProgressReporter(None)
        result = MaterializationResult(total=len(urls))

        if not urls:
            progress.emit("image-caching", 80, "No images to cache")
            return result

        for start in range(0, len(urls), self.batch_size):
            batch = urls[start:start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self.image_cache.materialize(url) for url in batch),
                return_exceptions=True
            )
            result.batches += 1

            for url, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    logger.warning(f"Failed to cache image {url}: {outcome}")
                    result.failed[url] = str(outcome)
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    result.cached += 1

            done = min(start + len(batch), len(urls))
            progress.emit(
                "image-caching",
                20 + int(60 * done / len(urls)),
                f"Cached {result.cached}/{result.total} images"
            )

        return result

    def build_document(self, graph: UserGraph, images: List[CachedImage]) -> Dict[str, Any]:
        """Assemble the data graph document with media lists flattened out of the library entries."""
        games: Dict[Any, Dict[str, Any]] = {}
        movies: Dict[Any, Dict[str, Any]] = {}
        user_games = []
        user_movies = []

        for entry in graph.user_games:
            game = entry.get("game")
            if game:
                games[game["id"]] = game
            user_games.append({k: v for k, v in entry.items() if k != "game"})

        for entry in graph.user_movies:
            movie = entry.get("movie")
            if movie:
                movies[movie["id"]] = movie
            user_movies.append({k: v for k, v in entry.items() if k != "movie"})

        metadata = {
            "version": BACKUP_FORMAT_VERSION,
            "created": datetime.now(timezone.utc).isoformat(),
            "totalGames": len(games),
            "totalMovies": len(movies),
            "userGamesCount": len(user_games),
            "userMoviesCount": len(user_movies),
            "totalImages": len(images),
        }

        return {
            "metadata": metadata,
            "user": graph.user,
            "games": list(games.values()),
            "movies": list(movies.values()),
            "userGames": user_games,
            "userMovies": user_movies,
            "apiCredentials": graph.api_credentials,
        }

    def build_manifest(self, document: Dict[str, Any]) -> str:
        """Plain-text summary for anyone opening the archive by hand."""
        metadata = document["metadata"]
        lines = [
            "Backlogus Backup",
            "================",
            f"Format version: {metadata['version']}",
            f"Created: {metadata['created']}",
            f"Account: {document['user'].get('email', 'unknown')}",
            "",
            f"Games: {metadata['totalGames']}",
            f"Movies: {metadata['totalMovies']}",
            f"Library entries (games): {metadata['userGamesCount']}",
            f"Library entries (movies): {metadata['userMoviesCount']}",
            f"API credentials: {len(document['apiCredentials'])}",
            f"Cached images: {metadata['totalImages']}",
            "",
            "Contents:",
            f"  {DOCUMENT_ENTRY:<14} library data",
            f"  {MANIFEST_ENTRY:<14} this file",
            f"  {IMAGE_PREFIX:<14} cached artwork",
            "",
        ]
        return "\n".join(lines)

    def write_archive(
        self,
        output: BinaryIO,
        document: Dict[str, Any],
        manifest: str,
        images: List[CachedImage],
        progress: Optional[_ProgressReporter] = None
    ):
        """Stream the document, manifest and every image into a ZIP written to `output`."""
        progress = progress or _ProgressReporter(None)
        total_entries = len(images) + 2

        with zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as zipf:
            zipf.writestr(DOCUMENT_ENTRY, json.dumps(document, indent=2, ensure_ascii=False))
            zipf.writestr(MANIFEST_ENTRY, manifest)
            progress.emit(
                "archive-creation",
                80 + int(19 * 2 / total_entries),
                "Added library data and manifest"
            )

            for index, image in enumerate(images, start=1):
                zipf.writestr(IMAGE_PREFIX + Path(image.filename).name, image.data)
                progress.emit(
                    "archive-creation",
                    80 + int(19 * (index + 2) / total_entries),
                    f"Added {index}/{len(images)} images"
                )
