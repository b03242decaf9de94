"""Application services: scan reconciliation, entity resolution, enrichment."""

from tunecatalog.application.services.catalog_diff_service import (
    CatalogDiffService,
    reconcile,
)
from tunecatalog.application.services.enrichment_orchestrator import (
    EnrichmentOrchestrator,
    pacing_delay,
)
from tunecatalog.application.services.entity_resolver import EntityResolver

__all__ = [
    "CatalogDiffService",
    "EnrichmentOrchestrator",
    "EntityResolver",
    "pacing_delay",
    "reconcile",
]
