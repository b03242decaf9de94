"""SQLAlchemy ORM models for tunecatalog."""

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import (
    BigInteger,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Hey future me, utc_now() ensures ALL timestamps are UTC! Never use datetime.now() without
# timezone - naive datetimes break every comparison against the stale-RESOLVING cutoff.
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Values come back naive.
# Attach UTC before comparing with datetime.now(UTC).
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, name_key is catalog_key(name): lowercase, accent-folded, squashed.
# "Beyoncé" and "beyonce " are ONE artist row. The unique constraint on name_key
# is what makes the per-batch get-or-create safe to repeat.
class ArtistModel(Base):
    """SQLAlchemy model for a catalog artist."""

    __tablename__ = "catalog_artists"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    name_key: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    albums: Mapped[list["AlbumModel"]] = relationship(
        "AlbumModel", back_populates="artist", cascade="all, delete-orphan"
    )
    tracks: Mapped[list["TrackModel"]] = relationship(
        "TrackModel", back_populates="artist", cascade="all, delete-orphan"
    )


class AlbumModel(Base):
    """SQLAlchemy model for a catalog album. Same title + artist = same album."""

    __tablename__ = "catalog_albums"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    title_key: Mapped[str] = mapped_column(String(255), nullable=False)
    artist_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("catalog_artists.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    artist: Mapped["ArtistModel"] = relationship("ArtistModel", back_populates="albums")
    tracks: Mapped[list["TrackModel"]] = relationship(
        "TrackModel", back_populates="album"
    )

    __table_args__ = (
        UniqueConstraint("title_key", "artist_id", name="uq_album_title_artist"),
    )


class GenreModel(Base):
    """SQLAlchemy model for a genre name taken from file tags."""

    __tablename__ = "catalog_genres"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    name_key: Mapped[str] = mapped_column(
        String(100), nullable=False, unique=True, index=True
    )

    tracks: Mapped[list["TrackModel"]] = relationship(
        "TrackModel", back_populates="genre"
    )


# Hey future me - external_uri is THE join key between what's on disk and the catalog.
# unique=True is the DataIntegrityViolation source: inserting a second row for the same
# URI fails the whole batch, and the diff service falls back to smaller batches.
# enrichment_status is the lowercase EnrichmentStatus value (plain string, SQLite-friendly).
class TrackModel(Base):
    """SQLAlchemy model for a catalog track."""

    __tablename__ = "catalog_tracks"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    external_uri: Mapped[str] = mapped_column(
        String(1024), nullable=False, unique=True, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    artist_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("catalog_artists.id", ondelete="CASCADE"),
        nullable=False,
    )
    album_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("catalog_albums.id", ondelete="SET NULL"), nullable=True
    )
    genre_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("catalog_genres.id", ondelete="SET NULL"), nullable=True
    )
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    track_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_modified: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    # What produced title/artist - compared on update to skip re-normalization
    raw_title: Mapped[str] = mapped_column(Text, default="", nullable=False)
    raw_artist: Mapped[str | None] = mapped_column(Text, nullable=True)
    version_tag: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # JSON list of names, serialized by the repository
    featured_artists: Mapped[str | None] = mapped_column(Text, nullable=True)

    enrichment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )
    enrichment_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_enrichment_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    external_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    lyrics: Mapped[str | None] = mapped_column(Text, nullable=True)
    lyrics_available: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False
    )
    cover_path: Mapped[str | None] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    artist: Mapped["ArtistModel"] = relationship("ArtistModel", back_populates="tracks")
    album: Mapped["AlbumModel | None"] = relationship(
        "AlbumModel", back_populates="tracks"
    )
    genre: Mapped["GenreModel | None"] = relationship(
        "GenreModel", back_populates="tracks"
    )

    __table_args__ = (
        Index("ix_tracks_title_artist", "title", "artist_id"),
        # Batch selection: status filter + oldest first
        Index("ix_tracks_enrichment_queue", "enrichment_status", "created_at"),
    )
