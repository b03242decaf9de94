"""FastAPI dependency providers.

Use them in endpoint params like: "worker: LibraryScanWorker = Depends(get_scan_worker)"
Everything comes from app.state.components, built once by the lifespan.
"""

from fastapi import Request

from tunecatalog.application.services import EnrichmentOrchestrator
from tunecatalog.application.workers import LibraryEnrichmentWorker, LibraryScanWorker
from tunecatalog.config import Settings
from tunecatalog.infrastructure.lifecycle import AppComponents
from tunecatalog.infrastructure.persistence import SqlCatalog


def get_components(request: Request) -> AppComponents:
    components: AppComponents = request.app.state.components
    return components


def get_app_settings(request: Request) -> Settings:
    return get_components(request).settings


def get_catalog(request: Request) -> SqlCatalog:
    return get_components(request).catalog


def get_orchestrator(request: Request) -> EnrichmentOrchestrator:
    return get_components(request).orchestrator


def get_scan_worker(request: Request) -> LibraryScanWorker:
    return get_components(request).scan_worker


def get_enrichment_worker(request: Request) -> LibraryEnrichmentWorker:
    return get_components(request).enrichment_worker


__all__ = [
    "get_app_settings",
    "get_catalog",
    "get_components",
    "get_enrichment_worker",
    "get_orchestrator",
    "get_scan_worker",
]
