"""Entity resolution: find the one external song that matches a catalog track.

Hey future me - the external source is UNRELIABLE by definition. This class
never raises for network trouble: timeouts, transport errors, 429/5xx and other
API errors all come back as None ("no match"). Retrying is the orchestrator's job.

Filtering pipeline, in order:
0. Skip the request entirely when the title looks like a podcast/audiobook
   (music_confidence below min_music_confidence)
1. Drop candidates whose title hits the denylist (discography, remix, interview...)
2. Drop candidates with title similarity < min_title_similarity (0.4)
3. If we know the artist AND the candidate has one: drop below min_artist_similarity (0.3)
4. Return the FIRST survivor - the source's own ranking is the tie-break, no re-ranking
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import httpx

from tunecatalog.config.settings import MatchingSettings
from tunecatalog.domain.entities import MatchCandidate, MatchDetails
from tunecatalog.domain.exceptions import ExternalServiceError, TransientIOError
from tunecatalog.domain.ports import IExternalSearch
from tunecatalog.domain.value_objects import build_search_query, music_confidence, similarity
from tunecatalog.infrastructure.rate_limiter import MinIntervalThrottle

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Everything that means "the source didn't answer usefully"
_EXTERNAL_FAILURES = (
    TimeoutError,
    httpx.HTTPError,
    TransientIOError,
    ExternalServiceError,
)


def compile_denylist(words: Sequence[str]) -> re.Pattern[str] | None:
    """Whole-word, case-insensitive matcher ("Remaster" doesn't hit "mix")."""
    if not words:
        return None
    alternatives = "|".join(re.escape(word) for word in words)
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


class EntityResolver:
    """Resolves (title, artist) to at most one accepted MatchCandidate."""

    def __init__(
        self,
        search: IExternalSearch,
        throttle: MinIntervalThrottle,
        settings: MatchingSettings,
        timeout_seconds: float = 10.0,
    ) -> None:
        """Initialize resolver.

        Args:
            search: External search collaborator
            throttle: The ONE global throttle for this source (shared instance!)
            settings: Thresholds and denylist
            timeout_seconds: Bound for each external call, after the throttle wait
        """
        self._search = search
        self._throttle = throttle
        self._settings = settings
        self._timeout = timeout_seconds
        self._denylist = compile_denylist(settings.denylist)

    def is_denylisted(self, title: str) -> bool:
        """Whether a candidate title marks non-canonical content."""
        return bool(self._denylist and self._denylist.search(title or ""))

    def select_candidate(
        self,
        candidates: Sequence[MatchCandidate],
        clean_title: str,
        clean_artist: str | None = None,
    ) -> MatchCandidate | None:
        """Pure filter pipeline; returns the first candidate that survives."""
        for candidate in candidates:
            if self.is_denylisted(candidate.title):
                logger.debug(f"Rejected '{candidate.title}': denylisted")
                continue

            title_score = similarity(candidate.title, clean_title)
            if title_score < self._settings.min_title_similarity:
                logger.debug(
                    f"Rejected '{candidate.title}': title similarity {title_score:.2f}"
                )
                continue

            if clean_artist and candidate.artist_name:
                artist_score = similarity(candidate.artist_name, clean_artist)
                if artist_score < self._settings.min_artist_similarity:
                    logger.debug(
                        f"Rejected '{candidate.title}' by '{candidate.artist_name}': "
                        f"artist similarity {artist_score:.2f}"
                    )
                    continue

            return candidate
        return None

    async def resolve(
        self, clean_title: str, clean_artist: str | None = None
    ) -> MatchCandidate | None:
        """Search the external source and pick the accepted match, if any.

        Args:
            clean_title: Normalized track title
            clean_artist: Normalized artist, or None if unknown

        Returns:
            The first candidate passing all filters, or None
        """
        query = build_search_query(clean_title, clean_artist)
        if not query:
            return None

        confidence = music_confidence(clean_title, clean_artist)
        if confidence < self._settings.min_music_confidence:
            logger.info(f"Not searching '{query}': looks like non-music ({confidence:.2f})")
            return None

        candidates = await self._call(lambda: self._search.search(query), f"search '{query}'")
        if not candidates:
            return None

        match = self.select_candidate(candidates, clean_title, clean_artist)
        if match is None:
            logger.info(
                f"No acceptable match among {len(candidates)} candidates for '{query}'"
            )
        return match

    async def fetch_details(self, candidate: MatchCandidate) -> MatchDetails | None:
        """Fetch lyrics/cover for an accepted candidate. None on any failure."""
        return await self._call(
            lambda: self._search.fetch_details(candidate.url),
            f"details for {candidate.url}",
        )

    async def _call(self, request: Callable[[], Awaitable[T]], what: str) -> T | None:
        # The timeout starts AFTER our turn at the throttle: waiting in line for
        # the interval is expected, only the request itself is bounded.
        try:
            async with self._throttle:
                async with asyncio.timeout(self._timeout):
                    return await request()
        except _EXTERNAL_FAILURES as e:
            logger.warning(f"External {what} failed: {e.__class__.__name__}: {e}")
            return None


__all__ = ["EntityResolver", "compile_denylist"]
