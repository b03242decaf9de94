"""Cover art cache: download once, resize to WebP, serve from disk.

Hey future me - this is BEST EFFORT by contract. A missing cover only downgrades an
enrichment to PARTIAL, so every failure path here logs and returns None instead
of raising.

Storage structure:
  artwork/
    <sha1(url)>.webp

Keying by URL hash means the same cover shared by a whole album is stored (and
downloaded) once.
"""

import asyncio
import hashlib
import logging
from io import BytesIO
from pathlib import Path

import httpx
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from tunecatalog.domain.ports import IAssetStore

logger = logging.getLogger(__name__)

WEBP_QUALITY = 85


def cache_filename(url: str) -> str:
    """Stable file name for a cover URL."""
    return f"{hashlib.sha1(url.encode('utf-8')).hexdigest()}.webp"


def process_image(image_bytes: bytes, target_size: int) -> bytes:
    """Fit into a target_size square and convert to WebP. Blocking."""
    with PILImage.open(BytesIO(image_bytes)) as img:
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGB")
        img.thumbnail((target_size, target_size), PILImage.Resampling.LANCZOS)

        output = BytesIO()
        img.save(output, format="WEBP", quality=WEBP_QUALITY, method=6)
        return output.getvalue()


class HttpAssetStore(IAssetStore):
    """Downloads cover images over httpx into the artwork folder."""

    def __init__(
        self, artwork_path: Path, target_size: int = 500, timeout_seconds: float = 15.0
    ) -> None:
        self.artwork_path = Path(artwork_path)
        self.target_size = target_size
        self.timeout_seconds = timeout_seconds
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_seconds, follow_redirects=True
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def download_and_cache(self, url: str) -> str | None:
        """Return the local path of the cached cover, downloading it if needed."""
        if not url:
            return None

        target = self.artwork_path / cache_filename(url)
        if target.exists():
            return str(target)

        try:
            client = await self._get_client()
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Cover download failed ({e.response.status_code}) for {url}"
            )
            return None
        except httpx.HTTPError as e:
            logger.warning(f"Cover download failed for {url}: {e}")
            return None

        try:
            image_data = await asyncio.to_thread(
                process_image, response.content, self.target_size
            )
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"Cover at {url} is not a usable image: {e}")
            return None

        try:
            await asyncio.to_thread(self.artwork_path.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(target.write_bytes, image_data)
        except OSError as e:
            logger.warning(f"Could not write cover to {target}: {e}")
            return None

        logger.debug(f"Cached cover {url} -> {target.name}")
        return str(target)


__all__ = ["HttpAssetStore", "cache_filename", "process_image"]
