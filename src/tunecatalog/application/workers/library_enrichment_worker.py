# Hey future me - this worker is the ONE entry point for enrichment runs!
# Scheduler ticks (periodic), the scan worker (post_scan) and the API (manual) all
# come through run(). It owns two policies the orchestrator doesn't care about:
#   1. How big the batch is, depending on WHY it was triggered
#   2. What to do when a whole batch dies on a transient error (retry with backoff)
# Per-track failures never reach this level - those are state on the track.
"""Library enrichment worker: trigger policy and whole-batch retries."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from tunecatalog.application.services.enrichment_orchestrator import (
    EnrichmentOrchestrator,
    ProgressSink,
)
from tunecatalog.config import Settings
from tunecatalog.domain.entities import BatchResult, TriggerReason
from tunecatalog.domain.exceptions import (
    ConfigurationError,
    PermissionDeniedError,
    TransientIOError,
)
from tunecatalog.infrastructure.observability import set_correlation_id

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


def resolve_batch_size(
    trigger_reason: TriggerReason, requested: int | None, configured: int
) -> int:
    """Batch size for a run.

    Args:
        trigger_reason: Why the run was started
        requested: Manual size, or the number of new tracks for post_scan
        configured: enrichment.batch_size

    Returns:
        The limit to use. 0 means "nothing to do"
    """
    if trigger_reason is TriggerReason.POST_SCAN:
        return max(0, min(requested or 0, configured))
    if trigger_reason is TriggerReason.MANUAL and requested:
        return requested
    return configured


def batch_backoff_delay(attempt: int, initial: float, maximum: float) -> float:
    """Exponential backoff before batch retry number ``attempt`` (1-based).

    Examples:
        >>> batch_backoff_delay(1, 300.0, 3600.0)
        300.0
        >>> batch_backoff_delay(3, 300.0, 3600.0)
        1200.0
        >>> batch_backoff_delay(10, 300.0, 3600.0)
        3600.0
    """
    return min(initial * (2 ** max(0, attempt - 1)), maximum)


class LibraryEnrichmentWorker:
    """Runs enrichment batches with the trigger policy and transient-error retries."""

    def __init__(
        self,
        orchestrator: EnrichmentOrchestrator,
        settings: Settings,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize worker.

        Args:
            orchestrator: Batch orchestrator
            settings: Application settings
            sleep: Backoff sleep, injected in tests
        """
        self._orchestrator = orchestrator
        self.settings = settings
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._running = False
        self._last_run_at: datetime | None = None
        self._last_trigger: TriggerReason | None = None
        self._last_result: BatchResult | None = None
        self._last_error: str | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(
        self,
        trigger_reason: TriggerReason,
        batch_size: int | None = None,
        progress_callback: ProgressSink | None = None,
    ) -> BatchResult:
        """Run one enrichment batch.

        Overlapping calls are serialized; a second trigger simply runs after the first.

        Args:
            trigger_reason: manual / periodic / post_scan
            batch_size: Requested size (manual) or new-track count (post_scan)
            progress_callback: Optional (current, total, label) sink

        Returns:
            Result of the last batch attempt

        Raises:
            ConfigurationError: No Genius token configured
            PermissionDeniedError: Permanent storage error
            TransientIOError: Still failing after max_batch_retries retries
        """
        enrichment = self.settings.enrichment
        if not enrichment.enabled:
            logger.info(f"Enrichment disabled, ignoring {trigger_reason.value} trigger")
            return BatchResult()
        if not self.settings.genius.access_token:
            error = ConfigurationError(
                "Genius access token missing (TUNECATALOG_GENIUS__ACCESS_TOKEN)"
            )
            self._last_error = error.message
            raise error

        limit = resolve_batch_size(trigger_reason, batch_size, enrichment.batch_size)
        if limit <= 0:
            logger.debug(f"Nothing to enrich for {trigger_reason.value} trigger")
            return BatchResult()

        async with self._lock:
            correlation_id = set_correlation_id()
            self._running = True
            self._last_trigger = trigger_reason
            logger.info(
                f"Enrichment run {correlation_id} started "
                f"(trigger={trigger_reason.value}, limit={limit})"
            )
            try:
                result = await self._run_with_retries(limit, progress_callback)
            except (TransientIOError, PermissionDeniedError, ConfigurationError) as e:
                self._last_error = e.message
                logger.error(f"Enrichment run {correlation_id} failed: {e.message}")
                raise
            finally:
                self._running = False
                self._last_run_at = datetime.now(UTC)

            self._last_result = result
            self._last_error = None
            return result

    async def _run_with_retries(
        self, limit: int, progress_callback: ProgressSink | None
    ) -> BatchResult:
        enrichment = self.settings.enrichment
        attempt = 0
        while True:
            try:
                return await self._orchestrator.run_enrichment_batch(
                    limit,
                    max_attempts=enrichment.max_attempts,
                    progress_callback=progress_callback,
                )
            except TransientIOError as e:
                attempt += 1
                if attempt > enrichment.max_batch_retries:
                    raise
                delay = batch_backoff_delay(
                    attempt,
                    enrichment.initial_backoff_seconds,
                    enrichment.max_backoff_seconds,
                )
                if e.retry_after is not None:
                    delay = max(delay, e.retry_after)
                self._last_error = e.message
                logger.warning(
                    f"Enrichment batch hit a transient error ({e.message}), "
                    f"retry {attempt}/{enrichment.max_batch_retries} in {delay:.0f}s"
                )
                await self._sleep(delay)

    def get_status(self) -> dict[str, Any]:
        """Status snapshot for the API."""
        result = self._last_result
        return {
            "running": self._running,
            "last_trigger": self._last_trigger.value if self._last_trigger else None,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "last_error": self._last_error,
            "last_result": {
                "enriched": result.enriched,
                "partial": result.partial,
                "failed": result.failed,
                "skipped": result.skipped,
                "total": result.total,
                "time_ms": result.time_ms,
            }
            if result
            else None,
        }


__all__ = ["LibraryEnrichmentWorker", "batch_backoff_delay", "resolve_batch_size"]
