"""Application lifecycle: wiring of all components plus the FastAPI lifespan."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI

from tunecatalog.application.services import (
    CatalogDiffService,
    EnrichmentOrchestrator,
    EntityResolver,
)
from tunecatalog.application.workers import (
    LibraryEnrichmentWorker,
    LibraryScanWorker,
    ScanLock,
)
from tunecatalog.config import Settings, get_settings
from tunecatalog.infrastructure.asset_store import HttpAssetStore
from tunecatalog.infrastructure.file_observer import MutagenFileObserver
from tunecatalog.infrastructure.integrations import GeniusClient
from tunecatalog.infrastructure.observability import configure_logging
from tunecatalog.infrastructure.persistence import Database, SqlCatalog
from tunecatalog.infrastructure.rate_limiter import get_genius_throttle

logger = logging.getLogger(__name__)


@dataclass
class AppComponents:
    """Everything the routes and the scheduler talk to. Lives on app.state."""

    settings: Settings
    database: Database
    catalog: SqlCatalog
    genius_client: GeniusClient
    asset_store: HttpAssetStore
    orchestrator: EnrichmentOrchestrator
    scan_worker: LibraryScanWorker
    enrichment_worker: LibraryEnrichmentWorker

    async def close(self) -> None:
        """Stop background work and release connections (reverse wiring order)."""
        await self.scan_worker.shutdown()
        await self.asset_store.close()
        await self.genius_client.close()
        await self.database.close()


def build_components(settings: Settings) -> AppComponents:
    """Wire ports to adapters.

    Hey future me - there's exactly ONE throttle per external source per process.
    get_genius_throttle() returns the shared instance, so even if something else
    builds a second resolver it still queues behind the same interval.
    """
    database = Database(settings)
    catalog = SqlCatalog(
        database,
        resolving_timeout_seconds=settings.enrichment.resolving_timeout_seconds,
    )
    observer = MutagenFileObserver(
        settings.storage.music_path,
        min_duration_ms=settings.scan.min_duration_ms,
        follow_symlinks=settings.scan.follow_symlinks,
    )
    genius_client = GeniusClient(settings.genius)
    asset_store = HttpAssetStore(
        settings.storage.artwork_path, target_size=settings.storage.cover_size
    )
    resolver = EntityResolver(
        genius_client,
        get_genius_throttle(settings.genius.min_interval_seconds),
        settings.matching,
        timeout_seconds=settings.genius.timeout_seconds,
    )
    orchestrator = EnrichmentOrchestrator(
        catalog, resolver, asset_store, settings.enrichment
    )
    enrichment_worker = LibraryEnrichmentWorker(orchestrator, settings)
    scan_worker = LibraryScanWorker(
        CatalogDiffService(catalog, observer, settings),
        ScanLock(),
        settings,
        enrichment_worker=enrichment_worker,
    )
    return AppComponents(
        settings=settings,
        database=database,
        catalog=catalog,
        genius_client=genius_client,
        asset_store=asset_store,
        orchestrator=orchestrator,
        scan_worker=scan_worker,
        enrichment_worker=enrichment_worker,
    )


# Listen future me, everything before `yield` runs at STARTUP, everything after at
# SHUTDOWN. The finally makes sure clients and the engine get closed even when
# startup blew up halfway. create_app() may pre-seed app.state.settings (tests do).
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.observability.log_level,
        json_format=settings.observability.json_logs,
        app_name=settings.app_name,
    )
    logger.info(
        f"Starting {settings.app_name} (mode={settings.processing_mode.value})"
    )

    components = build_components(settings)
    app.state.components = components
    try:
        await components.database.create_tables()
        logger.info(f"Database initialized: {settings.database.url}")
        if not settings.genius.access_token:
            logger.warning(
                "No Genius access token configured - enrichment runs will be rejected"
            )
        yield
    finally:
        logger.info("Shutting down")
        await components.close()


__all__ = ["AppComponents", "build_components", "lifespan"]
