"""Tests for HttpAssetStore."""

from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image
from pytest_httpx import HTTPXMock

from tunecatalog.infrastructure.asset_store import HttpAssetStore, cache_filename

COVER_URL = "https://images.genius.com/cover.jpg"


def _jpeg(width: int = 1000, height: int = 800) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
async def store(tmp_path: Path):
    asset_store = HttpAssetStore(tmp_path / "artwork", target_size=500)
    yield asset_store
    await asset_store.close()


class TestHttpAssetStore:
    async def test_downloads_resizes_and_caches(
        self, store: HttpAssetStore, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=COVER_URL, content=_jpeg())

        path = await store.download_and_cache(COVER_URL)

        assert path is not None
        assert Path(path).name == cache_filename(COVER_URL)
        with Image.open(path) as img:
            assert img.format == "WEBP"
            assert img.size == (500, 400)

        # Second call is served from disk, no new request registered
        assert await store.download_and_cache(COVER_URL) == path
        assert len(httpx_mock.get_requests()) == 1

    async def test_http_error_returns_none(
        self, store: HttpAssetStore, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=COVER_URL, status_code=404)
        assert await store.download_and_cache(COVER_URL) is None

    async def test_not_an_image_returns_none(
        self, store: HttpAssetStore, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=COVER_URL, content=b"<html>nope</html>")
        assert await store.download_and_cache(COVER_URL) is None

    async def test_empty_url(self, store: HttpAssetStore) -> None:
        assert await store.download_and_cache("") is None

    def test_cache_filename_is_stable(self) -> None:
        assert cache_filename(COVER_URL) == cache_filename(COVER_URL)
        assert cache_filename(COVER_URL) != cache_filename(COVER_URL + "?v=2")
