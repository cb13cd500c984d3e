"""
Local cache for externally hosted artwork.

Cover art, banners and screenshots live on provider CDNs. The cache keeps a
copy of every image the UI has asked for so pages render offline and so
backups can carry the bytes. Backup and restore only talk to it through the
`ImageCache` contract.
"""

import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif"}
DEFAULT_EXTENSION = ".jpg"


class ImageCacheError(Exception):
    """Raised when an image cannot be fetched or read from the cache."""
    pass


@dataclass
class CachedImage:
    """One cached blob, addressed by its cache filename."""
    filename: str
    data: bytes
    size: Optional[int] = None

    def __post_init__(self):
        if self.size is None:
            self.size = len(self.data)


@dataclass
class ImageRestoreReport:
    """Outcome of writing a batch of images back into the cache."""
    restored: int = 0
    failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class ImageCache(ABC):
    """Contract the backup engine consumes."""

    @abstractmethod
    async def materialize(self, url: str) -> bytes:
        """
        Return the bytes for `url`, fetching and caching them if needed.

        Raises:
            ImageCacheError: The image could not be obtained
        """
        pass

    @abstractmethod
    async def list_all(self) -> List[CachedImage]:
        """Return every image currently in the cache."""
        pass

    @abstractmethod
    async def restore(self, images: List[CachedImage]) -> ImageRestoreReport:
        """Persist the given images into the cache."""
        pass

    @abstractmethod
    async def stats(self) -> Dict[str, int]:
        """Return {"count": ..., "totalSize": ...}."""
        pass


class ImageCacheService(ImageCache):
    """
    Filesystem-backed image cache.

    Files are named by the MD5 of their source URL plus the URL's image
    extension, so the same URL always maps to the same file.
    """

    def __init__(
        self,
        cache_dir: Path = Path("data/image_cache"),
        timeout: float = 15.0,
        user_agent: str = "Backlogus/0.3 (+image-cache)",
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize image cache.

        Args:
            cache_dir: Directory holding cached files
            timeout: Per-request fetch timeout (seconds)
            user_agent: User-Agent header sent to image hosts
            client: Optional preconfigured HTTP client (tests inject a mock transport)
        """
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent}
        )

        self.cache_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Image cache initialized: {self.cache_dir} (timeout: {timeout}s)")

    @staticmethod
    def filename_for(url: str) -> str:
        """Cache filename for a source URL."""
        suffix = Path(urlparse(url).path).suffix.lower()
        if suffix not in IMAGE_EXTENSIONS:
            suffix = DEFAULT_EXTENSION
        return hashlib.md5(url.encode("utf-8")).hexdigest() + suffix

    def path_for(self, url: str) -> Path:
        return self.cache_dir / self.filename_for(url)

    async def materialize(self, url: str) -> bytes:
        path = self.path_for(url)
        if path.exists():
            logger.debug(f"Cache hit: {url}")
            return await asyncio.to_thread(path.read_bytes)

        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ImageCacheError(f"Image host returned {e.response.status_code} for {url}") from e
        except httpx.HTTPError as e:
            raise ImageCacheError(f"Failed to fetch {url}: {e}") from e

        content_type = response.headers.get("content-type", "")
        if content_type and not content_type.startswith("image/"):
            raise ImageCacheError(f"Not an image ({content_type}): {url}")

        data = response.content
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            raise ImageCacheError(f"Failed to write cache file {path.name}: {e}") from e

        logger.debug(f"Cached {url} as {path.name} ({len(data)} bytes)")
        return data

    async def list_all(self) -> List[CachedImage]:
        return await asyncio.to_thread(self._read_all)

    def _read_all(self) -> List[CachedImage]:
        images = []
        for path in sorted(self.cache_dir.iterdir()):
            if not path.is_file():
                continue
            data = path.read_bytes()
            images.append(CachedImage(filename=path.name, data=data, size=len(data)))
        return images

    async def restore(self, images: List[CachedImage]) -> ImageRestoreReport:
        return await asyncio.to_thread(self._write_all, images)

    def _write_all(self, images: List[CachedImage]) -> ImageRestoreReport:
        report = ImageRestoreReport()
        for image in images:
            # Archive entries are untrusted; never write outside the cache dir
            name = Path(image.filename.replace("\\", "/")).name
            if not name or name.startswith("."):
                logger.warning(f"Skipping cached image with unusable name: {image.filename!r}")
                report.failed.append(image.filename)
                continue
            try:
                (self.cache_dir / name).write_bytes(image.data)
                report.restored += 1
            except OSError as e:
                logger.warning(f"Failed to restore cached image {name}: {e}")
                report.failed.append(image.filename)

        logger.info(f"Restored {report.restored} cached images ({len(report.failed)} failed)")
        return report

    async def stats(self) -> Dict[str, int]:
        images = await asyncio.to_thread(
            lambda: [p.stat().st_size for p in self.cache_dir.iterdir() if p.is_file()]
        )
        return {"count": len(images), "totalSize": sum(images)}

    async def close(self):
        await self.client.aclose()
