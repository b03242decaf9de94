"""Enrichment endpoints - these are the ones that talk to EXTERNAL APIs.

Route prefix: /api/enrichment/*

POST /run waits for the batch and returns its counters, unlike the scan.
Batches are bounded (enrichment.batch_size) and paced, so that's fine for a
manual trigger. The periodic trigger is an external scheduler calling the same
worker with reason "periodic".
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from tunecatalog.api.dependencies import (
    get_catalog,
    get_enrichment_worker,
    get_orchestrator,
)
from tunecatalog.application.services import EnrichmentOrchestrator
from tunecatalog.application.workers import LibraryEnrichmentWorker
from tunecatalog.domain.entities import EnrichmentStatus, TriggerReason
from tunecatalog.infrastructure.persistence import SqlCatalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/enrichment", tags=["enrichment"])


# =============================================================================
# Response Models
# =============================================================================


class EnrichmentRunRequest(BaseModel):
    """Manual run options."""

    batch_size: int | None = Field(default=None, ge=1, le=1000)
    trigger_reason: TriggerReason = TriggerReason.MANUAL


class EnrichmentRunResponse(BaseModel):
    """Counters of one batch."""

    enriched: int
    partial: int
    failed: int
    skipped: int
    total: int
    time_ms: int


class EnrichmentStatusResponse(BaseModel):
    """Catalog-wide enrichment counters plus worker state."""

    counts: dict[str, int]
    running: bool
    last_trigger: str | None = None
    last_run_at: str | None = None
    last_error: str | None = None
    last_result: dict[str, Any] | None = None


class TrackEnrichmentResponse(BaseModel):
    id: str
    title: str
    artist: str
    enrichment_status: EnrichmentStatus
    enrichment_attempts: int


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/run", response_model=EnrichmentRunResponse)
async def run_enrichment(
    request: EnrichmentRunRequest | None = None,
    worker: LibraryEnrichmentWorker = Depends(get_enrichment_worker),
) -> EnrichmentRunResponse:
    """Run one enrichment batch now.

    503 when no Genius token is configured or storage stays busy after retries.
    """
    request = request or EnrichmentRunRequest()
    result = await worker.run(request.trigger_reason, batch_size=request.batch_size)
    return EnrichmentRunResponse(
        enriched=result.enriched,
        partial=result.partial,
        failed=result.failed,
        skipped=result.skipped,
        total=result.total,
        time_ms=result.time_ms,
    )


@router.get("/status", response_model=EnrichmentStatusResponse)
async def get_enrichment_status(
    catalog: SqlCatalog = Depends(get_catalog),
    worker: LibraryEnrichmentWorker = Depends(get_enrichment_worker),
) -> EnrichmentStatusResponse:
    """How many tracks are in which enrichment state."""
    counts = await catalog.count_by_status()
    # Always report every state, zeros included, so dashboards don't need defaults
    full_counts = {status.value: counts.get(status.value, 0) for status in EnrichmentStatus}
    return EnrichmentStatusResponse(counts=full_counts, **worker.get_status())


@router.post("/tracks/{track_id}/reset", response_model=TrackEnrichmentResponse)
async def reset_track_enrichment(
    track_id: str,
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
) -> TrackEnrichmentResponse:
    """Put a track back to PENDING with 0 attempts (the way out of EXHAUSTED).

    404 if the track doesn't exist.
    """
    track = await orchestrator.reset_enrichment(track_id)
    return TrackEnrichmentResponse(
        id=track.id,
        title=track.title,
        artist=track.artist,
        enrichment_status=track.enrichment_status,
        enrichment_attempts=track.enrichment_attempts,
    )


__all__ = ["router"]
