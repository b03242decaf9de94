"""Domain ports (interfaces) for dependency inversion.

Hey future me - the core services only ever talk to these ABCs. Concrete
implementations live in tunecatalog.infrastructure (mutagen observer, SQLAlchemy
catalog, Genius client, httpx asset store); tests plug in fakes.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from tunecatalog.domain.entities import (
    LibraryTrack,
    MatchCandidate,
    MatchDetails,
    ObservedFile,
)


class IFileObserver(ABC):
    """Port for the on-device file enumeration."""

    @abstractmethod
    def list_audio_files(self) -> list[ObservedFile]:
        """
        Snapshot of all audio files currently on disk.

        Only files meeting the minimum-duration filter are returned.

        Raises:
            PermissionDeniedError: If the library location can't be read
        """
        pass


class ICatalog(ABC):
    """Port for the persisted catalog. Every call is its own transaction."""

    @abstractmethod
    async def get_all_tracks(self) -> list[LibraryTrack]:
        """Return every catalog entry."""
        pass

    @abstractmethod
    async def get_track(self, track_id: str) -> LibraryTrack | None:
        """Return one entry by id, or None."""
        pass

    @abstractmethod
    async def insert_batch(self, tracks: Sequence[LibraryTrack]) -> int:
        """
        Insert new tracks (plus their artist/album/genre rows) atomically.

        Returns:
            Number of inserted tracks

        Raises:
            DataIntegrityViolation: If any track violates a constraint; nothing
                of the batch is kept
            TransientIOError: If the store stays locked/busy
        """
        pass

    @abstractmethod
    async def update_batch(self, tracks: Sequence[LibraryTrack]) -> int:
        """Persist metadata changes of existing tracks atomically."""
        pass

    @abstractmethod
    async def delete_by_ids(self, track_ids: Sequence[str]) -> int:
        """Delete tracks by id. Returns number of deleted rows."""
        pass

    @abstractmethod
    async def find_pending_enrichment(
        self, max_attempts: int, limit: int
    ) -> list[LibraryTrack]:
        """
        Select up to ``limit`` tracks eligible for enrichment, oldest first.

        Eligible means status PENDING or FAILED and
        enrichment_attempts < max_attempts.
        """
        pass

    @abstractmethod
    async def mark_resolving(
        self, track_id: str, expected_attempts: int, max_attempts: int
    ) -> bool:
        """
        Claim a track for an enrichment attempt.

        Increments enrichment_attempts and sets RESOLVING, but only if the row
        is still eligible and its attempts still equal ``expected_attempts``.

        Returns:
            False if another path got there first (stale selection)
        """
        pass

    @abstractmethod
    async def save_enrichment(self, track: LibraryTrack) -> None:
        """Persist the enrichment fields and status of a track."""
        pass

    @abstractmethod
    async def reset_enrichment(self, track_id: str) -> LibraryTrack:
        """
        Explicit manual reset: status PENDING, attempts 0.

        Raises:
            EntityNotFoundException: If the track doesn't exist
        """
        pass

    @abstractmethod
    async def count_by_status(self) -> dict[str, int]:
        """Track counts per enrichment status value."""
        pass

    @abstractmethod
    async def garbage_collect_orphans(self) -> int:
        """Remove artist/album/genre rows without tracks. Returns rows removed."""
        pass


class IExternalSearch(ABC):
    """Port for the external metadata source. Unreliable by definition."""

    @abstractmethod
    async def search(self, query: str) -> list[MatchCandidate]:
        """
        Search the external source.

        Returns:
            Candidates in the source's own relevance order

        Raises:
            TransientIOError: On timeouts, 429 and 5xx
            ExternalServiceError: On other request failures
        """
        pass

    @abstractmethod
    async def fetch_details(self, url: str) -> MatchDetails:
        """Fetch lyrics and cover art for an accepted candidate."""
        pass


class IAssetStore(ABC):
    """Port for asset (cover image) download and caching."""

    @abstractmethod
    async def download_and_cache(self, url: str) -> str | None:
        """
        Download ``url`` into the local cache.

        Best effort: returns the local path, or None on any failure.
        """
        pass


__all__ = [
    "IAssetStore",
    "ICatalog",
    "IExternalSearch",
    "IFileObserver",
]
