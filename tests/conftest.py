"""Shared fixtures.

Hey future me - catalog tests run against a REAL in-memory SQLite (aiosqlite),
not mocks. The guarded UPDATEs in SqlCatalog only mean something against a DB.
"""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import pytest

from tunecatalog.config import Settings
from tunecatalog.domain.entities import EnrichmentStatus, LibraryTrack, ObservedFile
from tunecatalog.infrastructure.persistence import Database, SqlCatalog


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, in-memory DB, tmp folders."""
    return Settings(
        _env_file=None,
        database={"url": "sqlite+aiosqlite:///:memory:"},
        storage={
            "music_path": tmp_path / "music",
            "artwork_path": tmp_path / "artwork",
        },
        genius={"access_token": "test-token", "min_interval_seconds": 0.0},
        enrichment={"base_delay_seconds": 0.0, "post_scan_delay_seconds": 0.0},
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def catalog(database: Database) -> SqlCatalog:
    return SqlCatalog(database)


@pytest.fixture
def make_track() -> Callable[..., LibraryTrack]:
    """Factory for LibraryTrack with sensible defaults."""

    def _make(uri: str = "file:///music/a.mp3", **overrides: Any) -> LibraryTrack:
        values: dict[str, Any] = {
            "external_uri": uri,
            "title": "Bohemian Rhapsody",
            "artist": "Queen",
            "album": "A Night at the Opera",
            "duration_seconds": 355,
            "last_modified": 100,
            "raw_title": "Queen - Bohemian Rhapsody",
            "raw_artist": "Queen",
            "enrichment_status": EnrichmentStatus.PENDING,
        }
        values.update(overrides)
        return LibraryTrack(**values)

    return _make


@pytest.fixture
def make_observed() -> Callable[..., ObservedFile]:
    """Factory for ObservedFile with sensible defaults."""

    def _make(uri: str = "file:///music/a.mp3", **overrides: Any) -> ObservedFile:
        values: dict[str, Any] = {
            "external_uri": uri,
            "raw_title": "Queen - Bohemian Rhapsody",
            "raw_artist": "Queen",
            "duration_ms": 355_000,
            "last_modified": 100,
        }
        values.update(overrides)
        return ObservedFile(**values)

    return _make
