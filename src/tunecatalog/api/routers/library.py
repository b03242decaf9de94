"""Library scan endpoints.

Route prefix: /api/library/*

POST /scan only STARTS the scan (202). Progress and the outcome come from
GET /scan/status - the scan itself can run for minutes.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from tunecatalog.api.dependencies import get_scan_worker
from tunecatalog.application.workers import LibraryScanWorker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/library", tags=["library"])


class ScanRequest(BaseModel):
    """Scan options."""

    # Re-read and re-normalize every file, not just the modified ones
    force_full: bool = False


class ScanStartedResponse(BaseModel):
    message: str
    force_full: bool


class ScanStatusResponse(BaseModel):
    """Live scan progress plus the last outcome."""

    running: bool
    phase: str | None = None
    progress: float | None = None
    message: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    last_error: str | None = None
    last_result: dict[str, Any] | None = None


@router.post(
    "/scan",
    response_model=ScanStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_scan(
    request: ScanRequest | None = None,
    worker: LibraryScanWorker = Depends(get_scan_worker),
) -> ScanStartedResponse:
    """Start a library scan in the background.

    409 if a scan is already running (ScanInProgressError handler).
    """
    force_full = request.force_full if request else False
    worker.start_scan(force_full=force_full)
    logger.info(f"Library scan requested via API (force_full={force_full})")
    return ScanStartedResponse(message="Library scan started", force_full=force_full)


@router.get("/scan/status", response_model=ScanStatusResponse)
async def get_scan_status(
    worker: LibraryScanWorker = Depends(get_scan_worker),
) -> ScanStatusResponse:
    """Current scan progress, last result and last error."""
    return ScanStatusResponse(**worker.get_status())


__all__ = ["router"]
