"""FastAPI application entry point.

Run with: uvicorn tunecatalog.main:app
"""

from fastapi import FastAPI

from tunecatalog import __version__
from tunecatalog.api import api_router, register_exception_handlers
from tunecatalog.config import Settings
from tunecatalog.infrastructure.lifecycle import lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Explicit settings (tests); get_settings() otherwise
    """
    app = FastAPI(
        title="tunecatalog",
        version=__version__,
        description="Local music catalog with external metadata enrichment",
        lifespan=lifespan,
    )
    if settings is not None:
        app.state.settings = settings

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
