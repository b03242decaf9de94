"""External integration client implementations."""

from tunecatalog.infrastructure.integrations.genius_client import GeniusClient

__all__ = ["GeniusClient"]
