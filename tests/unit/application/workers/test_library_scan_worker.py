"""Tests for LibraryScanWorker."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from tunecatalog.application.services.catalog_diff_service import CatalogDiffService
from tunecatalog.application.workers import LibraryEnrichmentWorker, LibraryScanWorker, ScanLock
from tunecatalog.config import Settings
from tunecatalog.domain.entities import (
    BatchResult,
    ScanPhase,
    ScanProgress,
    ScanResult,
    TriggerReason,
)
from tunecatalog.domain.exceptions import PermissionDeniedError, ScanInProgressError


@pytest.fixture
def diff_service() -> MagicMock:
    mock = MagicMock(spec=CatalogDiffService)
    mock.scan = AsyncMock(return_value=ScanResult(new=3, unchanged=10))
    return mock


@pytest.fixture
def enrichment_worker() -> MagicMock:
    mock = MagicMock(spec=LibraryEnrichmentWorker)
    mock.run = AsyncMock(return_value=BatchResult())
    return mock


@pytest.fixture
def worker(
    diff_service: MagicMock, enrichment_worker: MagicMock, settings: Settings
) -> LibraryScanWorker:
    return LibraryScanWorker(
        diff_service, ScanLock(), settings, enrichment_worker=enrichment_worker
    )


async def _let_followups_run() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class TestRunScan:
    async def test_successful_scan_is_recorded(
        self, worker: LibraryScanWorker, diff_service: MagicMock
    ) -> None:
        result = await worker.run_scan(force_full=True)

        assert result.new == 3
        assert diff_service.scan.await_args.kwargs["force_full"] is True
        status = worker.get_status()
        assert status["running"] is False
        assert status["last_result"]["new"] == 3
        assert status["last_result"]["unchanged"] == 10
        assert status["last_error"] is None
        assert status["finished_at"] is not None

    async def test_progress_is_visible_while_running(
        self, worker: LibraryScanWorker, diff_service: MagicMock
    ) -> None:
        seen: dict[str, Any] = {}

        async def fake_scan(force_full: bool, progress_callback: Any) -> ScanResult:
            await progress_callback(ScanProgress(ScanPhase.INSERT, 0.5, "Inserting"))
            seen.update(worker.get_status())
            return ScanResult()

        diff_service.scan.side_effect = fake_scan

        await worker.run_scan()

        assert seen["running"] is True
        assert seen["phase"] == "insert"
        assert seen["progress"] == pytest.approx(0.55)
        assert worker.get_status()["phase"] is None

    async def test_batch_errors_end_up_as_last_error(
        self, worker: LibraryScanWorker, diff_service: MagicMock
    ) -> None:
        diff_service.scan.return_value = ScanResult(failed_batches=1, errors=["insert failed"])
        await worker.run_scan()
        assert worker.get_status()["last_error"] == "insert failed"

    async def test_fatal_error_is_recorded_and_raised(
        self, worker: LibraryScanWorker, diff_service: MagicMock
    ) -> None:
        diff_service.scan.side_effect = PermissionDeniedError("Library not readable")

        with pytest.raises(PermissionDeniedError):
            await worker.run_scan()

        assert worker.get_status()["last_error"] == "Library not readable"
        assert not worker.is_running

    async def test_unexpected_error_replaces_previous_last_error(
        self, worker: LibraryScanWorker, diff_service: MagicMock
    ) -> None:
        diff_service.scan.return_value = ScanResult(failed_batches=1, errors=["old"])
        await worker.run_scan()
        diff_service.scan.side_effect = RuntimeError("disk I/O error")

        with pytest.raises(RuntimeError):
            await worker.run_scan()

        status = worker.get_status()
        assert status["last_error"] == "RuntimeError: disk I/O error"
        assert status["running"] is False
        assert status["finished_at"] is not None

    async def test_timeout_releases_lock(
        self, diff_service: MagicMock, settings: Settings
    ) -> None:
        settings = settings.model_copy(
            update={"scan": settings.scan.model_copy(update={"timeout_seconds": 0.01})}
        )
        worker = LibraryScanWorker(diff_service, ScanLock(), settings)

        async def slow_scan(**_: Any) -> ScanResult:
            await asyncio.sleep(10)
            return ScanResult()

        diff_service.scan.side_effect = slow_scan

        with pytest.raises(TimeoutError):
            await worker.run_scan()

        assert "timed out" in worker.get_status()["last_error"]
        assert not worker.is_running


class TestConcurrency:
    async def test_second_scan_is_rejected_not_queued(
        self, worker: LibraryScanWorker, diff_service: MagicMock
    ) -> None:
        release = asyncio.Event()

        async def blocking_scan(**_: Any) -> ScanResult:
            await release.wait()
            return ScanResult()

        diff_service.scan.side_effect = blocking_scan

        task = worker.start_scan()
        with pytest.raises(ScanInProgressError):
            worker.start_scan()
        await asyncio.sleep(0)
        with pytest.raises(ScanInProgressError):
            await worker.run_scan()

        release.set()
        await task
        assert diff_service.scan.await_count == 1
        assert not worker.is_running

    async def test_shutdown_cancels_running_scan(
        self, worker: LibraryScanWorker, diff_service: MagicMock
    ) -> None:
        async def endless_scan(**_: Any) -> ScanResult:
            await asyncio.sleep(3600)
            return ScanResult()

        diff_service.scan.side_effect = endless_scan
        task = worker.start_scan()
        await asyncio.sleep(0)

        await worker.shutdown()

        assert task.cancelled()
        assert not worker.is_running


class TestPostScanEnrichment:
    async def test_new_tracks_trigger_enrichment(
        self, worker: LibraryScanWorker, enrichment_worker: MagicMock
    ) -> None:
        await worker.run_scan()
        await _let_followups_run()

        enrichment_worker.run.assert_awaited_once_with(TriggerReason.POST_SCAN, batch_size=3)

    async def test_no_new_tracks_no_enrichment(
        self,
        worker: LibraryScanWorker,
        diff_service: MagicMock,
        enrichment_worker: MagicMock,
    ) -> None:
        diff_service.scan.return_value = ScanResult(new=0, updated=4)
        await worker.run_scan()
        await _let_followups_run()
        enrichment_worker.run.assert_not_awaited()

    async def test_auto_after_scan_disabled(
        self,
        diff_service: MagicMock,
        enrichment_worker: MagicMock,
        settings: Settings,
    ) -> None:
        settings = settings.model_copy(
            update={
                "enrichment": settings.enrichment.model_copy(update={"auto_after_scan": False})
            }
        )
        worker = LibraryScanWorker(
            diff_service, ScanLock(), settings, enrichment_worker=enrichment_worker
        )
        await worker.run_scan()
        await _let_followups_run()
        enrichment_worker.run.assert_not_awaited()
