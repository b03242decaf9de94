"""Configuration module for tunecatalog."""

from .settings import (
    DatabaseSettings,
    EnrichmentSettings,
    GeniusSettings,
    MatchingSettings,
    ProcessingMode,
    ScanSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "EnrichmentSettings",
    "GeniusSettings",
    "MatchingSettings",
    "ProcessingMode",
    "ScanSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
