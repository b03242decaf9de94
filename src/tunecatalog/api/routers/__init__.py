"""API routers."""

from fastapi import APIRouter

from tunecatalog.api.routers import enrichment, library

api_router = APIRouter()
api_router.include_router(library.router)
api_router.include_router(enrichment.router)

__all__ = ["api_router"]
