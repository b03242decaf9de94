"""Custom exception handlers for FastAPI application.

This module registers global exception handlers that convert domain exceptions
into HTTP responses with the right status codes.

Hey future me - the routes NEVER catch domain exceptions themselves. They let them
bubble up and land here, so the error -> status mapping lives in ONE place:

    ScanInProgressError      409
    EntityNotFoundException  404
    PermissionDeniedError    403
    TransientIOError         503 (+ Retry-After when we know it)
    ConfigurationError       503
    ValidationException      422
    InvalidStateException    400
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tunecatalog.domain.exceptions import (
    ConfigurationError,
    EntityNotFoundException,
    InvalidStateException,
    PermissionDeniedError,
    ScanInProgressError,
    TransientIOError,
    ValidationException,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for the domain exceptions.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(ScanInProgressError)
    async def scan_in_progress_handler(
        request: Request, exc: ScanInProgressError
    ) -> JSONResponse:
        """A scan is already running: 409 Conflict."""
        logger.info("Scan rejected at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message},
        )

    @app.exception_handler(EntityNotFoundException)
    async def entity_not_found_exception_handler(
        request: Request, exc: EntityNotFoundException
    ) -> JSONResponse:
        """Handle entity not found exceptions with 404 Not Found."""
        logger.info(
            "Entity not found at %s: %s %s",
            request.url.path,
            exc.entity_type,
            exc.entity_id,
            extra={
                "path": request.url.path,
                "entity_type": exc.entity_type,
                "entity_id": exc.entity_id,
            },
        )
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message},
        )

    @app.exception_handler(PermissionDeniedError)
    async def permission_denied_handler(
        request: Request, exc: PermissionDeniedError
    ) -> JSONResponse:
        logger.error(
            "Permission denied at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "resource": exc.resource},
        )
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": exc.message},
        )

    @app.exception_handler(TransientIOError)
    async def transient_io_handler(
        request: Request, exc: TransientIOError
    ) -> JSONResponse:
        """Storage busy or external source unavailable: 503, try again later."""
        logger.warning("Transient failure at %s: %s", request.url.path, exc.message)
        headers = {}
        if exc.retry_after is not None:
            headers["Retry-After"] = str(int(exc.retry_after))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
            headers=headers,
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
        )

    @app.exception_handler(ValidationException)
    async def validation_exception_handler(
        request: Request, exc: ValidationException
    ) -> JSONResponse:
        """Handle domain validation exceptions with 422 Unprocessable Entity."""
        logger.warning(
            "Validation error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.message},
        )

    @app.exception_handler(InvalidStateException)
    async def invalid_state_exception_handler(
        request: Request, exc: InvalidStateException
    ) -> JSONResponse:
        """Handle invalid state exceptions with 400 Bad Request."""
        logger.warning("Invalid state at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message},
        )


__all__ = ["register_exception_handlers"]
