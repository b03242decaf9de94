"""Domain entities."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


def _utc_now() -> datetime:
    return datetime.now(UTC)


# Hey future me, EnrichmentStatus is the closed set of states a catalog entry can be in.
# PENDING -> RESOLVING -> ENRICHED | PARTIAL | FAILED, and FAILED goes back into the pool
# until enrichment_attempts hits max_attempts - then it's EXHAUSTED and only an explicit
# manual reset brings it back. Stored as the lowercase string value in the DB.
class EnrichmentStatus(str, Enum):
    """Enrichment state of a library track."""

    PENDING = "pending"
    RESOLVING = "resolving"
    ENRICHED = "enriched"
    PARTIAL = "partial"
    FAILED = "failed"
    EXHAUSTED = "exhausted"

    @property
    def is_selectable(self) -> bool:
        """Whether batch selection may pick a track in this state."""
        return self in (EnrichmentStatus.PENDING, EnrichmentStatus.FAILED)

    def can_transition_to(self, target: "EnrichmentStatus") -> bool:
        """Check a status change against the state machine."""
        return target.value in _STATUS_TRANSITIONS[self.value]


# Yo, adding a status means adding its row here too - can_transition_to raises
# KeyError for unknown states rather than silently allowing them.
_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"resolving"}),
    # Stale RESOLVING rows (crashed worker) may be re-claimed
    "resolving": frozenset({"enriched", "partial", "failed", "exhausted", "resolving"}),
    "enriched": frozenset(),
    "partial": frozenset(),
    "failed": frozenset({"pending", "resolving"}),
    "exhausted": frozenset(),
}


@dataclass(frozen=True)
class EnrichmentOutcome:
    """Result classification of one enrichment attempt.

    ``missing_fields`` is only populated for PARTIAL, e.g. ("lyrics",).
    """

    status: EnrichmentStatus
    missing_fields: tuple[str, ...] = ()

    @classmethod
    def enriched(cls) -> "EnrichmentOutcome":
        return cls(EnrichmentStatus.ENRICHED)

    @classmethod
    def partial(cls, missing_fields: tuple[str, ...]) -> "EnrichmentOutcome":
        return cls(EnrichmentStatus.PARTIAL, tuple(missing_fields))

    @classmethod
    def failed(cls) -> "EnrichmentOutcome":
        return cls(EnrichmentStatus.FAILED)

    @classmethod
    def exhausted(cls) -> "EnrichmentOutcome":
        return cls(EnrichmentStatus.EXHAUSTED)


class TriggerReason(str, Enum):
    """Why an enrichment batch was started."""

    MANUAL = "manual"
    POST_SCAN = "post_scan"
    PERIODIC = "periodic"


@dataclass(frozen=True)
class ObservedFile:
    """One audio file as currently seen on disk. Recomputed every scan."""

    external_uri: str
    raw_title: str
    raw_artist: str | None = None
    raw_album: str | None = None
    duration_ms: int = 0
    track_number: int | None = None
    year: int | None = None
    last_modified: int = 0
    raw_genre: str | None = None
    size_bytes: int | None = None


# Listen up, LibraryTrack is the catalog entry. external_uri is THE join key with
# ObservedFile - one row per URI, enforced by a unique constraint in the DB.
# raw_title/raw_artist remember what produced title/artist so an update only
# re-normalizes when the raw input actually changed.
@dataclass
class LibraryTrack:
    """A persisted catalog entry."""

    external_uri: str
    title: str
    artist: str
    album: str | None = None
    duration_seconds: int = 0
    year: int | None = None
    track_number: int | None = None
    last_modified: int = 0
    enrichment_status: EnrichmentStatus = EnrichmentStatus.PENDING
    enrichment_attempts: int = 0
    external_id: str | None = None
    external_url: str | None = None
    lyrics: str | None = None
    lyrics_available: bool = False
    cover_path: str | None = None
    raw_title: str = ""
    raw_artist: str | None = None
    genre: str | None = None
    version_tag: str | None = None
    featured_artists: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utc_now)
    last_enrichment_at: datetime | None = None

    @property
    def label(self) -> str:
        """Human-readable "Artist - Title" label for logs and progress."""
        return f"{self.artist} - {self.title}"

    def is_eligible_for_enrichment(self, max_attempts: int) -> bool:
        """Whether this track may be picked for an enrichment attempt."""
        return (
            self.enrichment_status.is_selectable
            and self.enrichment_attempts < max_attempts
        )


@dataclass(frozen=True)
class MatchCandidate:
    """An external search result being evaluated as a match. Not persisted."""

    external_id: str
    title: str
    artist_name: str | None
    url: str
    artist_external_id: str | None = None
    cover_art_url: str | None = None


@dataclass(frozen=True)
class MatchDetails:
    """Long-form data fetched for an accepted candidate."""

    lyrics: str | None = None
    cover_art_url: str | None = None


@dataclass
class ReconcilePlan:
    """The minimal set of catalog mutations for one observation."""

    to_insert: list[ObservedFile] = field(default_factory=list)
    to_update: list[tuple[LibraryTrack, ObservedFile]] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_insert or self.to_update or self.to_delete)


class ScanPhase(str, Enum):
    """Phases of a library scan with their share of overall progress."""

    READ = "read"
    ANALYZE = "analyze"
    DELETE = "delete"
    INSERT = "insert"
    UPDATE = "update"
    CLEANUP = "cleanup"

    @property
    def weight(self) -> float:
        return _PHASE_WEIGHTS[self.value]

    @property
    def offset(self) -> float:
        """Overall progress at which this phase starts."""
        total = 0.0
        for phase in ScanPhase:
            if phase is self:
                return total
            total += phase.weight
        return total


_PHASE_WEIGHTS: dict[str, float] = {
    "read": 0.20,
    "analyze": 0.15,
    "delete": 0.05,
    "insert": 0.30,
    "update": 0.20,
    "cleanup": 0.10,
}


@dataclass(frozen=True)
class ScanProgress:
    """Progress snapshot handed to the scan progress callback."""

    phase: ScanPhase
    phase_progress: float
    message: str = ""

    @property
    def overall(self) -> float:
        """Overall progress in [0, 1]."""
        return min(1.0, self.phase.offset + self.phase.weight * self.phase_progress)


@dataclass
class ScanResult:
    """Aggregate counters of one scan run."""

    new: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    renormalized: int = 0
    orphans_removed: int = 0
    integrity_errors: int = 0
    failed_batches: int = 0
    time_ms: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def last_error(self) -> str | None:
        return self.errors[-1] if self.errors else None


@dataclass
class BatchResult:
    """Aggregate counters of one enrichment batch."""

    enriched: int = 0
    partial: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    time_ms: int = 0

    @property
    def processed(self) -> int:
        return self.enriched + self.partial + self.failed


__all__ = [
    "BatchResult",
    "EnrichmentOutcome",
    "EnrichmentStatus",
    "LibraryTrack",
    "MatchCandidate",
    "MatchDetails",
    "ObservedFile",
    "ReconcilePlan",
    "ScanPhase",
    "ScanProgress",
    "ScanResult",
    "TriggerReason",
]
