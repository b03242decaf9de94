"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - always use a specific subclass so callers
    # can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input or entity validation fails."""

    pass


class InvalidStateException(DomainException):
    """Raised when an entity is in an invalid state for the requested operation.

    Example: moving a track from ENRICHED straight to RESOLVING.
    """

    pass


class ConfigurationError(DomainException):
    """Required configuration is missing or invalid.

    Example:
        raise ConfigurationError("Genius access token not configured")
    """

    pass


class TransientIOError(DomainException):
    """Network or storage hiccup that is worth retrying.

    Hey future me - this is the ONLY error class that triggers the whole-batch
    retry in LibraryEnrichmentWorker. Timeouts, 429/5xx responses and SQLite
    "database is locked" after exhausted retries all end up here.
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class PermissionDeniedError(DomainException):
    """Access to a required resource was denied.

    Fatal for the current run and surfaced to the caller. Never retried
    automatically - a missing permission doesn't fix itself.
    """

    def __init__(self, message: str, resource: str | None = None) -> None:
        super().__init__(message)
        self.resource = resource


class DataIntegrityViolation(DomainException):
    """A record violates a catalog constraint (e.g. duplicate external URI).

    The offending record is logged and skipped; it never crashes a batch.
    """

    def __init__(self, message: str, external_uri: str | None = None) -> None:
        super().__init__(message)
        self.external_uri = external_uri


class ScanInProgressError(DomainException):
    """A scan was requested while another one is still running."""

    def __init__(self, message: str = "A library scan is already running") -> None:
        super().__init__(message)


class ExternalServiceError(DomainException):
    """External service returned a non-retryable error.

    Example:
        raise ExternalServiceError("Genius API error: 401 Unauthorized")
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "ConfigurationError",
    "DataIntegrityViolation",
    "DomainException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "InvalidStateException",
    "PermissionDeniedError",
    "ScanInProgressError",
    "TransientIOError",
    "ValidationException",
]
