"""HTTP API: scan and enrichment triggers and status."""

from tunecatalog.api.exception_handlers import register_exception_handlers
from tunecatalog.api.routers import api_router

__all__ = ["api_router", "register_exception_handlers"]
