"""Background workers: library scans and enrichment runs."""

from tunecatalog.application.workers.library_enrichment_worker import (
    LibraryEnrichmentWorker,
)
from tunecatalog.application.workers.library_scan_worker import LibraryScanWorker
from tunecatalog.application.workers.scan_lock import ScanLock

__all__ = ["LibraryEnrichmentWorker", "LibraryScanWorker", "ScanLock"]
