"""Enrichment orchestrator: the per-track state machine over enrichment_status.

Hey future me - one batch run looks like this:

    find_pending_enrichment()        PENDING/FAILED, attempts < max, oldest first
    for each track:
        re-check (get_track)         skip if touched since selection
        mark_resolving()             guarded UPDATE, attempts += 1, lost race = skip
        resolve()                    throttled, never raises for network trouble
        fetch_details + cover        best effort
        classify + save_enrichment   ENRICHED | PARTIAL | FAILED | EXHAUSTED
        pacing sleep                 slower when failures outnumber successes

Per-track failures are STATE, not exceptions. Only storage trouble
(TransientIOError), PermissionDeniedError and configuration errors escape, and
those abort the batch for the worker to deal with.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime

from tunecatalog.application.services.entity_resolver import EntityResolver
from tunecatalog.config.settings import EnrichmentSettings
from tunecatalog.domain.entities import (
    BatchResult,
    EnrichmentOutcome,
    EnrichmentStatus,
    LibraryTrack,
)
from tunecatalog.domain.exceptions import InvalidStateException
from tunecatalog.domain.ports import IAssetStore, ICatalog
from tunecatalog.domain.value_objects import UNKNOWN_ARTIST, UNKNOWN_TITLE

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int, int, str], Awaitable[None]]
SleepFunc = Callable[[float], Awaitable[None]]


def pacing_delay(base: float, enriched: int, failed: int, cap: float) -> float:
    """Delay before the next track of a batch.

    Base delay while successes keep up, x2 once failures outnumber them,
    x4 once failures are more than double. Never above ``cap``.

    Examples:
        >>> pacing_delay(0.5, enriched=3, failed=1, cap=8.0)
        0.5
        >>> pacing_delay(0.5, enriched=1, failed=2, cap=8.0)
        1.0
        >>> pacing_delay(0.5, enriched=1, failed=3, cap=8.0)
        2.0
    """
    if failed > 2 * enriched:
        factor = 4.0
    elif failed > enriched:
        factor = 2.0
    else:
        factor = 1.0
    return max(0.0, min(base * factor, cap))


def classify_outcome(
    matched: bool,
    missing_fields: tuple[str, ...],
    attempts: int,
    max_attempts: int,
) -> EnrichmentOutcome:
    """Map what one attempt produced onto the terminal state of that attempt."""
    if not matched:
        if attempts >= max_attempts:
            return EnrichmentOutcome.exhausted()
        return EnrichmentOutcome.failed()
    if missing_fields:
        return EnrichmentOutcome.partial(missing_fields)
    return EnrichmentOutcome.enriched()


class EnrichmentOrchestrator:
    """Runs bounded enrichment batches against the catalog."""

    def __init__(
        self,
        catalog: ICatalog,
        resolver: EntityResolver,
        asset_store: IAssetStore,
        settings: EnrichmentSettings,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize orchestrator.

        Args:
            catalog: Persisted catalog
            resolver: Throttled external resolver
            asset_store: Cover image cache
            settings: Enrichment settings (pacing, which fields are expected)
            sleep: Injected for tests, asyncio.sleep otherwise
        """
        self._catalog = catalog
        self._resolver = resolver
        self._assets = asset_store
        self._settings = settings
        self._sleep = sleep

    async def run_enrichment_batch(
        self,
        limit: int,
        max_attempts: int | None = None,
        progress_callback: ProgressSink | None = None,
    ) -> BatchResult:
        """Enrich up to ``limit`` eligible tracks.

        Args:
            limit: Batch size
            max_attempts: Attempt cap, defaults to settings
            progress_callback: Called after each track with (current, total, label)

        Returns:
            Aggregate counters of the batch

        Raises:
            TransientIOError: Storage trouble, the whole batch is worth retrying
            PermissionDeniedError: Permanent, don't retry
        """
        max_attempts = max_attempts or self._settings.max_attempts
        start = time.monotonic()

        selected = await self._catalog.find_pending_enrichment(max_attempts, limit)
        result = BatchResult(total=len(selected))
        if not selected:
            logger.info("No tracks pending enrichment")
            return result

        logger.info(f"Enriching batch of {len(selected)} tracks (max_attempts={max_attempts})")

        for index, track in enumerate(selected, 1):
            if index > 1:
                delay = pacing_delay(
                    self._settings.base_delay_seconds,
                    result.enriched + result.partial,
                    result.failed,
                    self._settings.max_delay_seconds,
                )
                if delay > 0:
                    await self._sleep(delay)

            outcome = await self._process_track(track, max_attempts)
            if outcome is None:
                result.skipped += 1
            elif outcome.status is EnrichmentStatus.ENRICHED:
                result.enriched += 1
            elif outcome.status is EnrichmentStatus.PARTIAL:
                result.partial += 1
            else:
                result.failed += 1

            if progress_callback is not None:
                await progress_callback(index, len(selected), track.label)

        result.time_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Enrichment batch done in {result.time_ms}ms: {result.enriched} enriched, "
            f"{result.partial} partial, {result.failed} failed, {result.skipped} skipped"
        )
        return result

    async def _process_track(
        self, selected: LibraryTrack, max_attempts: int
    ) -> EnrichmentOutcome | None:
        """One attempt for one track. None means skipped (stale selection)."""
        current = await self._catalog.get_track(selected.id)
        if current is None or current.enrichment_attempts != selected.enrichment_attempts:
            logger.debug(f"Skipping {selected.label}: changed since selection")
            return None
        # Abandoned RESOLVING rows come back from selection but aren't selectable by status
        reclaim = (
            selected.enrichment_status is EnrichmentStatus.RESOLVING
            and current.enrichment_status is EnrichmentStatus.RESOLVING
        )
        if not (reclaim or current.is_eligible_for_enrichment(max_attempts)):
            logger.debug(f"Skipping {selected.label}: no longer eligible")
            return None

        claimed = await self._catalog.mark_resolving(
            current.id, current.enrichment_attempts, max_attempts
        )
        if not claimed:
            logger.debug(f"Skipping {current.label}: claimed by another path")
            return None

        track = replace(
            current,
            enrichment_status=EnrichmentStatus.RESOLVING,
            enrichment_attempts=current.enrichment_attempts + 1,
        )

        title = track.title if track.title != UNKNOWN_TITLE else ""
        artist = track.artist if track.artist != UNKNOWN_ARTIST else None
        match = await self._resolver.resolve(title, artist) if title else None

        missing: list[str] = []
        if match is not None:
            track.external_id = match.external_id
            track.external_url = match.url
            cover_url = match.cover_art_url

            if self._settings.fetch_lyrics or (self._settings.download_covers and not cover_url):
                details = await self._resolver.fetch_details(match)
                if details is not None:
                    if self._settings.fetch_lyrics and details.lyrics:
                        track.lyrics = details.lyrics
                    cover_url = details.cover_art_url or cover_url

            track.lyrics_available = bool(track.lyrics)
            if self._settings.fetch_lyrics and not track.lyrics_available:
                missing.append("lyrics")

            if self._settings.download_covers:
                if cover_url:
                    track.cover_path = await self._assets.download_and_cache(cover_url)
                if not track.cover_path:
                    missing.append("cover")

        outcome = classify_outcome(
            match is not None, tuple(missing), track.enrichment_attempts, max_attempts
        )
        if not EnrichmentStatus.RESOLVING.can_transition_to(outcome.status):
            raise InvalidStateException(
                f"Illegal enrichment transition resolving -> {outcome.status.value}"
            )

        track.enrichment_status = outcome.status
        track.last_enrichment_at = datetime.now(UTC)
        await self._catalog.save_enrichment(track)

        if outcome.status is EnrichmentStatus.PARTIAL:
            logger.info(f"Partially enriched {track.label} (missing: {', '.join(outcome.missing_fields)})")
        elif outcome.status is EnrichmentStatus.EXHAUSTED:
            logger.info(
                f"No match for {track.label} after {track.enrichment_attempts} attempts, giving up"
            )
        else:
            logger.debug(f"{track.label}: {outcome.status.value}")
        return outcome

    async def reset_enrichment(self, track_id: str) -> LibraryTrack:
        """Explicit manual reset: back to PENDING with 0 attempts (any status).

        This is the ONLY way out of EXHAUSTED.

        Raises:
            EntityNotFoundException: If the track doesn't exist
        """
        track = await self._catalog.reset_enrichment(track_id)
        logger.info(f"Enrichment reset for {track.label}")
        return track


__all__ = [
    "EnrichmentOrchestrator",
    "ProgressSink",
    "classify_outcome",
    "pacing_delay",
]
