"""Tests for the filesystem image cache."""

import asyncio

import httpx
import pytest

from backlogus.services.image_cache import CachedImage, ImageCacheError, ImageCacheService


def _cache(tmp_path, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ImageCacheService(cache_dir=tmp_path / "cache", client=client)


def _image_handler(calls):
    def handler(request):
        calls.append(str(request.url))
        return httpx.Response(200, content=b"\x89PNG-bytes", headers={"content-type": "image/png"})
    return handler


class TestFilenames:

    def test_same_url_same_name(self):
        url = "https://img.example.com/a/cover.png"
        assert ImageCacheService.filename_for(url) == ImageCacheService.filename_for(url)

    def test_keeps_image_extension(self):
        assert ImageCacheService.filename_for("https://img.example.com/a.PNG?w=300").endswith(".png")

    def test_defaults_to_jpg(self):
        assert ImageCacheService.filename_for("https://img.example.com/image?id=4").endswith(".jpg")
        assert ImageCacheService.filename_for("https://img.example.com/x.exe").endswith(".jpg")


class TestMaterialize:

    def test_fetches_then_serves_from_disk(self, tmp_path):
        calls = []
        cache = _cache(tmp_path, _image_handler(calls))
        url = "https://img.example.com/cover.png"

        first = asyncio.run(cache.materialize(url))
        second = asyncio.run(cache.materialize(url))

        assert first == second == b"\x89PNG-bytes"
        assert calls == [url]
        assert cache.path_for(url).read_bytes() == b"\x89PNG-bytes"

    def test_http_error(self, tmp_path):
        cache = _cache(tmp_path, lambda request: httpx.Response(404))

        with pytest.raises(ImageCacheError, match="404"):
            asyncio.run(cache.materialize("https://img.example.com/missing.jpg"))

    def test_connection_error(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        cache = _cache(tmp_path, handler)

        with pytest.raises(ImageCacheError):
            asyncio.run(cache.materialize("https://img.example.com/a.jpg"))

    def test_rejects_non_image_response(self, tmp_path):
        cache = _cache(
            tmp_path,
            lambda request: httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"}),
        )

        with pytest.raises(ImageCacheError, match="Not an image"):
            asyncio.run(cache.materialize("https://img.example.com/a.jpg"))

        assert asyncio.run(cache.list_all()) == []


class TestListRestoreStats:

    def test_list_all(self, tmp_path):
        cache = _cache(tmp_path, _image_handler([]))
        asyncio.run(cache.materialize("https://img.example.com/a.png"))
        asyncio.run(cache.materialize("https://img.example.com/b.png"))

        images = asyncio.run(cache.list_all())

        assert len(images) == 2
        assert all(i.size == len(b"\x89PNG-bytes") for i in images)

    def test_restore_stays_inside_cache_dir(self, tmp_path):
        cache = _cache(tmp_path, _image_handler([]))

        report = asyncio.run(cache.restore([
            CachedImage(filename="abc.jpg", data=b"1"),
            CachedImage(filename="../../escape.jpg", data=b"2"),
            CachedImage(filename=".hidden", data=b"3"),
        ]))

        assert report.restored == 2
        assert report.failed == [".hidden"]
        assert not report.ok
        assert (tmp_path / "cache" / "escape.jpg").read_bytes() == b"2"
        assert not (tmp_path / "escape.jpg").exists()

    def test_stats(self, tmp_path):
        cache = _cache(tmp_path, _image_handler([]))
        asyncio.run(cache.restore([
            CachedImage(filename="a.jpg", data=b"12345"),
            CachedImage(filename="b.jpg", data=b"123"),
        ]))

        assert asyncio.run(cache.stats()) == {"count": 2, "totalSize": 8}
