"""Genius HTTP client: song search via the API, lyrics via the song page."""

import logging
from typing import Any

import httpx
from bs4 import BeautifulSoup

from tunecatalog.config.settings import GeniusSettings
from tunecatalog.domain.entities import MatchCandidate, MatchDetails
from tunecatalog.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    TransientIOError,
)
from tunecatalog.domain.ports import IExternalSearch

logger = logging.getLogger(__name__)

# Genius has moved the lyrics markup around over the years; first selector that
# finds something wins.
LYRICS_SELECTORS: tuple[str, ...] = (
    'div[data-lyrics-container="true"]',
    "div.Lyrics__Container",
    "div.lyrics",
)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def raise_for_genius_status(response: httpx.Response) -> None:
    """Translate HTTP error codes into domain errors.

    Raises:
        TransientIOError: 429 and 5xx (worth retrying later)
        ExternalServiceError: Every other 4xx
    """
    status = response.status_code
    if status < 400:
        return
    if status == 429:
        raise TransientIOError(
            "Genius rate limit hit (429)", retry_after=_retry_after(response)
        )
    if status >= 500:
        raise TransientIOError(f"Genius server error: {status}")
    raise ExternalServiceError(
        f"Genius API error: {status} {response.reason_phrase}", status_code=status
    )


def _expect_dict(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ExternalServiceError("Unexpected Genius search payload")
    return value


def parse_search_hits(data: Any, max_results: int) -> list[MatchCandidate]:
    """Map the /search JSON payload onto candidates, keeping Genius' order.

    Raises:
        ExternalServiceError: If the payload doesn't have the documented shape
    """
    response = _expect_dict(data).get("response") or {}
    hits = _expect_dict(response).get("hits") or []
    if not isinstance(hits, list):
        raise ExternalServiceError("Unexpected Genius search payload")

    candidates: list[MatchCandidate] = []
    for hit in hits:
        hit = _expect_dict(hit)
        if hit.get("type") != "song":
            continue
        result = _expect_dict(hit.get("result") or {})
        if not result.get("id") or not result.get("url"):
            continue
        artist = _expect_dict(result.get("primary_artist") or {})
        candidates.append(
            MatchCandidate(
                external_id=str(result["id"]),
                title=str(result.get("title") or ""),
                artist_name=str(artist["name"]) if artist.get("name") else None,
                url=str(result["url"]),
                artist_external_id=str(artist["id"]) if artist.get("id") else None,
                cover_art_url=result.get("song_art_image_url"),
            )
        )
        if len(candidates) >= max_results:
            break
    return candidates


def parse_song_page(html: str) -> MatchDetails:
    """Extract lyrics text and the og:image cover URL from a song page."""
    soup = BeautifulSoup(html, "html.parser")

    lyrics: str | None = None
    for selector in LYRICS_SELECTORS:
        containers = soup.select(selector)
        if not containers:
            continue
        parts = []
        for container in containers:
            for br in container.find_all("br"):
                br.replace_with("\n")
            parts.append(container.get_text())
        text = "\n".join(part.strip() for part in parts if part.strip())
        if text:
            lyrics = text
            break

    cover_art_url: str | None = None
    og_image = soup.find("meta", attrs={"property": "og:image"})
    if og_image is not None and og_image.get("content"):
        cover_art_url = str(og_image["content"])

    return MatchDetails(lyrics=lyrics, cover_art_url=cover_art_url)


class GeniusClient(IExternalSearch):
    """HTTP client for the Genius API.

    Hey future me - NO rate limiting in here! The global MinIntervalThrottle sits in
    EntityResolver, so every request path (search AND page fetch) shares it.
    """

    def __init__(self, settings: GeniusSettings) -> None:
        """
        Initialize Genius client.

        Args:
            settings: Genius configuration settings
        """
        self.settings = settings
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.settings.user_agent},
                timeout=self.settings.timeout_seconds,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.get(url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientIOError(f"Genius request timed out: {url}") from e
        except httpx.TransportError as e:
            raise TransientIOError(f"Genius transport error: {e}") from e
        raise_for_genius_status(response)
        return response

    async def search(self, query: str) -> list[MatchCandidate]:
        """
        Search Genius for songs.

        Args:
            query: Free-text query ("title artist")

        Returns:
            Song candidates in Genius' relevance order

        Raises:
            ConfigurationError: If no access token is configured
            TransientIOError: On timeouts, transport errors, 429 and 5xx
            ExternalServiceError: On other 4xx responses
        """
        if not self.settings.access_token:
            raise ConfigurationError("Genius access token not configured")

        response = await self._get(
            f"{self.settings.api_base_url.rstrip('/')}/search",
            params={"q": query},
            headers={"Authorization": f"Bearer {self.settings.access_token}"},
        )
        try:
            data = response.json()
        except ValueError as e:
            raise ExternalServiceError("Genius returned invalid JSON") from e

        candidates = parse_search_hits(data, self.settings.max_results)
        logger.debug(f"Genius search '{query}' returned {len(candidates)} candidates")
        return candidates

    async def fetch_details(self, url: str) -> MatchDetails:
        """Download the song page and scrape lyrics plus cover art."""
        response = await self._get(url)
        return parse_song_page(response.text)


__all__ = [
    "GeniusClient",
    "parse_search_hits",
    "parse_song_page",
    "raise_for_genius_status",
]
