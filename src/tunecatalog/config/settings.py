"""Application settings for tunecatalog.

Hey future me - ALL tunables live here, nothing is hard-coded in the services!
Values come from environment variables with the TUNECATALOG_ prefix and "__" as
the nested delimiter, e.g.:

    TUNECATALOG_DATABASE__URL=sqlite+aiosqlite:///./catalog.db
    TUNECATALOG_MATCHING__MIN_TITLE_SIMILARITY=0.5
    TUNECATALOG_GENIUS__ACCESS_TOKEN=...

The similarity thresholds are empirically chosen heuristics, not validated
invariants. That's why they are settings and not constants.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProcessingMode(str, Enum):
    """Preset bundles for matching and enrichment behaviour."""

    FAST_LOCAL_ONLY = "fast_local_only"
    BALANCED = "balanced"
    FULL_ENRICHMENT = "full_enrichment"
    CONSERVATIVE = "conservative"


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./tunecatalog.db"
    echo: bool = False
    pool_pre_ping: bool = True
    # SQLite busy timeout (seconds) handed to the driver
    busy_timeout: float = 30.0


class StorageSettings(BaseModel):
    """Filesystem locations."""

    music_path: Path = Path("./music")
    artwork_path: Path = Path("./artwork")
    # Covers are stored as square-fit WebP of this edge length
    cover_size: int = Field(default=500, ge=32)


class ScanSettings(BaseModel):
    """Library scan (catalog reconciliation) settings."""

    batch_size: int = Field(default=50, ge=1)
    fallback_batch_size: int = Field(default=25, ge=1)
    delete_chunk_size: int = Field(default=50, ge=1)
    min_duration_ms: int = Field(default=10_000, ge=0)
    timeout_seconds: float = Field(default=300.0, gt=0)
    follow_symlinks: bool = True


class EnrichmentSettings(BaseModel):
    """Enrichment batch and retry settings."""

    enabled: bool = True
    batch_size: int = Field(default=50, ge=1)
    max_attempts: int = Field(default=3, ge=1)
    # Pause between two tracks of a batch, on top of the search throttle
    base_delay_seconds: float = Field(default=0.5, ge=0)
    max_delay_seconds: float = Field(default=8.0, ge=0)
    # Whole-batch retries after a transient failure
    max_batch_retries: int = Field(default=2, ge=0)
    initial_backoff_seconds: float = Field(default=300.0, ge=0)
    max_backoff_seconds: float = Field(default=3600.0, ge=0)
    auto_after_scan: bool = True
    post_scan_delay_seconds: float = Field(default=30.0, ge=0)
    # A RESOLVING row older than this is treated as abandoned
    resolving_timeout_seconds: float = Field(default=600.0, gt=0)
    download_covers: bool = True
    fetch_lyrics: bool = True


class MatchingSettings(BaseModel):
    """Heuristic thresholds for parsing and candidate filtering."""

    min_title_similarity: float = Field(default=0.4, ge=0.0, le=1.0)
    min_artist_similarity: float = Field(default=0.3, ge=0.0, le=1.0)
    separator_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    min_music_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    denylist: tuple[str, ...] = (
        "discography",
        "album",
        "collection",
        "calendar",
        "review",
        "translation",
        "traducción",
        "cover",
        "mix",
        "remix",
        "annotated",
        "interview",
        "unreleased",
        "demo",
        "preview",
        "snippet",
        "tracklist",
        "setlist",
    )


class GeniusSettings(BaseModel):
    """Genius API settings."""

    access_token: str = ""
    api_base_url: str = "https://api.genius.com"
    min_interval_seconds: float = Field(default=2.5, ge=0)
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_results: int = Field(default=10, ge=1)
    user_agent: str = "tunecatalog/0.1"


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="TUNECATALOG_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "tunecatalog"
    app_env: str = "development"
    processing_mode: ProcessingMode = ProcessingMode.BALANCED

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    scan: ScanSettings = Field(default_factory=ScanSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    genius: GeniusSettings = Field(default_factory=GeniusSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def apply_mode(self, mode: ProcessingMode | None = None) -> "Settings":
        """Return a copy with the preset for ``mode`` applied.

        FAST_LOCAL_ONLY switches enrichment off, CONSERVATIVE raises both
        similarity thresholds, FULL_ENRICHMENT fetches everything in bigger
        batches. BALANCED leaves the configured values alone.
        """
        mode = mode or self.processing_mode
        enrichment = self.enrichment.model_copy()
        matching = self.matching.model_copy()

        if mode is ProcessingMode.FAST_LOCAL_ONLY:
            enrichment.enabled = False
            enrichment.auto_after_scan = False
        elif mode is ProcessingMode.FULL_ENRICHMENT:
            enrichment.enabled = True
            enrichment.fetch_lyrics = True
            enrichment.download_covers = True
            enrichment.batch_size = max(enrichment.batch_size, 100)
        elif mode is ProcessingMode.CONSERVATIVE:
            matching.min_title_similarity = max(matching.min_title_similarity, 0.7)
            matching.min_artist_similarity = max(matching.min_artist_similarity, 0.6)

        return self.model_copy(
            update={
                "processing_mode": mode,
                "enrichment": enrichment,
                "matching": matching,
            }
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings with the configured processing mode applied."""
    return Settings().apply_mode()
