# Hey future me - this worker wraps CatalogDiffService.scan() with everything a
# background scan needs and the service shouldn't know about:
#   - the ScanLock (a second scan gets ScanInProgressError, never queues)
#   - a hard timeout (scan.timeout_seconds), recorded as last_error on expiry
#   - a correlation id per run so all scan logs can be grepped together
#   - live progress + last result/error for the status endpoint
#   - a delayed post_scan enrichment when the scan found new tracks
"""Library scan worker for background scans."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from tunecatalog.application.services.catalog_diff_service import CatalogDiffService
from tunecatalog.application.workers.library_enrichment_worker import (
    LibraryEnrichmentWorker,
)
from tunecatalog.application.workers.scan_lock import ScanLock
from tunecatalog.config import Settings
from tunecatalog.domain.entities import ScanProgress, ScanResult, TriggerReason
from tunecatalog.domain.exceptions import DomainException, ScanInProgressError
from tunecatalog.infrastructure.observability import set_correlation_id

logger = logging.getLogger(__name__)


class LibraryScanWorker:
    """Runs library scans one at a time.

    run_scan() is the awaitable version (used by start_scan and tests),
    start_scan() fires it in the background for the API.
    """

    def __init__(
        self,
        diff_service: CatalogDiffService,
        scan_lock: ScanLock,
        settings: Settings,
        enrichment_worker: LibraryEnrichmentWorker | None = None,
    ) -> None:
        """Initialize worker.

        Args:
            diff_service: Catalog reconciliation service
            scan_lock: The shared scan try-lock
            settings: Application settings
            enrichment_worker: Gets a post_scan trigger after scans with new tracks
        """
        self._diff_service = diff_service
        self._scan_lock = scan_lock
        self.settings = settings
        self._enrichment_worker = enrichment_worker

        self._task: asyncio.Task[ScanResult] | None = None
        self._followups: set[asyncio.Task[Any]] = set()
        self._progress: ScanProgress | None = None
        self._started_at: datetime | None = None
        self._finished_at: datetime | None = None
        self._last_result: ScanResult | None = None
        self._last_error: str | None = None

    @property
    def is_running(self) -> bool:
        return self._scan_lock.is_held

    async def _on_progress(self, progress: ScanProgress) -> None:
        self._progress = progress

    async def run_scan(self, force_full: bool = False) -> ScanResult:
        """Run one scan to completion.

        Raises:
            ScanInProgressError: Another scan holds the lock
            TimeoutError: scan.timeout_seconds expired (committed batches stay)
            PermissionDeniedError: Library root unreadable
        """
        async with self._scan_lock.hold():
            correlation_id = set_correlation_id()
            self._started_at = datetime.now(UTC)
            self._finished_at = None
            self._progress = None
            logger.info(f"Library scan {correlation_id} started (force_full={force_full})")

            try:
                async with asyncio.timeout(self.settings.scan.timeout_seconds):
                    result = await self._diff_service.scan(
                        force_full=force_full, progress_callback=self._on_progress
                    )
            except TimeoutError:
                self._last_error = (
                    f"Scan timed out after {self.settings.scan.timeout_seconds:.0f}s"
                )
                logger.error(f"Library scan {correlation_id}: {self._last_error}")
                raise
            except DomainException as e:
                self._last_error = e.message
                logger.error(f"Library scan {correlation_id} failed: {e.message}")
                raise
            except Exception as e:
                self._last_error = f"{e.__class__.__name__}: {e}"
                logger.exception(f"Library scan {correlation_id} crashed")
                raise
            finally:
                self._finished_at = datetime.now(UTC)

            self._last_result = result
            self._last_error = result.last_error

        self._schedule_post_scan_enrichment(result)
        return result

    def start_scan(self, force_full: bool = False) -> asyncio.Task[ScanResult]:
        """Start a scan in the background.

        Raises:
            ScanInProgressError: Immediately, if a scan is already running
        """
        if self._scan_lock.is_held or (self._task is not None and not self._task.done()):
            raise ScanInProgressError()

        self._task = asyncio.create_task(self.run_scan(force_full=force_full))
        self._task.add_done_callback(self._log_task_failure)
        return self._task

    @staticmethod
    def _log_task_failure(task: asyncio.Task[Any]) -> None:
        # Background task: nobody awaits it, so the exception has to be retrieved here
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Background task ended with {error.__class__.__name__}: {error}")

    def _schedule_post_scan_enrichment(self, result: ScanResult) -> None:
        enrichment = self.settings.enrichment
        if self._enrichment_worker is None or not enrichment.auto_after_scan:
            return
        if result.new == 0:
            logger.debug("No new tracks, skipping post-scan enrichment")
            return

        task = asyncio.create_task(
            self._delayed_enrichment(self._enrichment_worker, result.new)
        )
        self._followups.add(task)
        task.add_done_callback(self._followups.discard)
        task.add_done_callback(self._log_task_failure)

    async def _delayed_enrichment(
        self, worker: LibraryEnrichmentWorker, new_tracks: int
    ) -> None:
        # Let the write burst of the scan settle before hammering the catalog again
        await asyncio.sleep(self.settings.enrichment.post_scan_delay_seconds)
        logger.info(f"Triggering post-scan enrichment for {new_tracks} new tracks")
        await worker.run(TriggerReason.POST_SCAN, batch_size=new_tracks)

    async def shutdown(self) -> None:
        """Cancel the running scan and pending follow-ups."""
        tasks = [t for t in (self._task, *self._followups) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def get_status(self) -> dict[str, Any]:
        """Status snapshot for the API."""
        result = self._last_result
        progress = self._progress
        return {
            "running": self.is_running,
            "phase": progress.phase.value if progress and self.is_running else None,
            "progress": round(progress.overall, 3) if progress and self.is_running else None,
            "message": progress.message if progress and self.is_running else None,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "finished_at": self._finished_at.isoformat() if self._finished_at else None,
            "last_error": self._last_error,
            "last_result": {
                "new": result.new,
                "updated": result.updated,
                "deleted": result.deleted,
                "unchanged": result.unchanged,
                "renormalized": result.renormalized,
                "orphans_removed": result.orphans_removed,
                "integrity_errors": result.integrity_errors,
                "failed_batches": result.failed_batches,
                "time_ms": result.time_ms,
            }
            if result
            else None,
        }


__all__ = ["LibraryScanWorker"]
