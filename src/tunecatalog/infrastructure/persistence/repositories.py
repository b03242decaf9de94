"""SQLAlchemy implementation of the catalog port."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import timedelta

from sqlalchemy import ColumnElement, Select, and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tunecatalog.domain.entities import EnrichmentStatus, LibraryTrack
from tunecatalog.domain.exceptions import DataIntegrityViolation, EntityNotFoundException
from tunecatalog.domain.ports import ICatalog
from tunecatalog.domain.value_objects import album_key, catalog_key

from .database import Database
from .models import (
    AlbumModel,
    ArtistModel,
    GenreModel,
    TrackModel,
    ensure_utc_aware,
    utc_now,
)
from .retry import with_db_retry

logger = logging.getLogger(__name__)

_SELECTABLE = [EnrichmentStatus.PENDING.value, EnrichmentStatus.FAILED.value]
# Statuses whose stored match is invalidated when re-normalization renames a track
_REOPENABLE = {
    EnrichmentStatus.ENRICHED.value,
    EnrichmentStatus.PARTIAL.value,
    EnrichmentStatus.FAILED.value,
}


def _track_query() -> Select[tuple[TrackModel]]:
    """Track select with artist/album/genre eagerly loaded (no lazy IO in async)."""
    return select(TrackModel).options(
        selectinload(TrackModel.artist),
        selectinload(TrackModel.album),
        selectinload(TrackModel.genre),
    )


def _to_entity(model: TrackModel) -> LibraryTrack:
    return LibraryTrack(
        id=model.id,
        external_uri=model.external_uri,
        title=model.title,
        artist=model.artist.name,
        album=model.album.title if model.album else None,
        genre=model.genre.name if model.genre else None,
        duration_seconds=model.duration_seconds,
        year=model.year,
        track_number=model.track_number,
        last_modified=model.last_modified,
        raw_title=model.raw_title,
        raw_artist=model.raw_artist,
        version_tag=model.version_tag,
        featured_artists=json.loads(model.featured_artists)
        if model.featured_artists
        else [],
        enrichment_status=EnrichmentStatus(model.enrichment_status),
        enrichment_attempts=model.enrichment_attempts,
        last_enrichment_at=ensure_utc_aware(model.last_enrichment_at)
        if model.last_enrichment_at
        else None,
        external_id=model.external_id,
        external_url=model.external_url,
        lyrics=model.lyrics,
        lyrics_available=model.lyrics_available,
        cover_path=model.cover_path,
        created_at=ensure_utc_aware(model.created_at),
    )


# Hey future me - this is the per-batch name -> id cache! One instance per
# insert_batch/update_batch call, thrown away afterwards. 50 tracks of the same album
# hit the DB for the artist ONCE. Never make this a module-level cache: it would go
# stale the moment garbage_collect_orphans deletes a row.
class _BatchLookups:
    """Get-or-create helper for artist/album/genre rows within one transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._artists: dict[str, str] = {}
        self._albums: dict[str, str] = {}
        self._genres: dict[str, str] = {}

    async def artist_id(self, name: str) -> str:
        key = catalog_key(name)
        if key in self._artists:
            return self._artists[key]

        result = await self._session.execute(
            select(ArtistModel.id).where(ArtistModel.name_key == key)
        )
        artist_id = result.scalar_one_or_none()
        if artist_id is None:
            model = ArtistModel(name=name, name_key=key)
            self._session.add(model)
            await self._session.flush()
            artist_id = model.id

        self._artists[key] = artist_id
        return artist_id

    async def album_id(self, title: str | None, artist_id: str) -> str | None:
        if not title or not title.strip():
            return None
        key = album_key(title, artist_id)
        if key in self._albums:
            return self._albums[key]

        title_key = catalog_key(title)
        result = await self._session.execute(
            select(AlbumModel.id).where(
                AlbumModel.title_key == title_key, AlbumModel.artist_id == artist_id
            )
        )
        album_id = result.scalar_one_or_none()
        if album_id is None:
            model = AlbumModel(title=title.strip(), title_key=title_key, artist_id=artist_id)
            self._session.add(model)
            await self._session.flush()
            album_id = model.id

        self._albums[key] = album_id
        return album_id

    async def genre_id(self, name: str | None) -> str | None:
        if not name or not name.strip():
            return None
        key = catalog_key(name)
        if key in self._genres:
            return self._genres[key]

        result = await self._session.execute(
            select(GenreModel.id).where(GenreModel.name_key == key)
        )
        genre_id = result.scalar_one_or_none()
        if genre_id is None:
            model = GenreModel(name=name.strip(), name_key=key)
            self._session.add(model)
            await self._session.flush()
            genre_id = model.id

        self._genres[key] = genre_id
        return genre_id


class SqlCatalog(ICatalog):
    """SQLAlchemy implementation of the catalog.

    Every public method is its own transaction (session_scope) and retried on
    SQLite lock errors.
    """

    def __init__(self, database: Database, resolving_timeout_seconds: float = 600.0) -> None:
        """Initialize catalog.

        Args:
            database: Database connection manager
            resolving_timeout_seconds: Age after which a RESOLVING row counts as
                abandoned (worker crashed mid-attempt) and may be claimed again
        """
        self._db = database
        self._resolving_timeout = timedelta(seconds=resolving_timeout_seconds)

    def _stale_resolving(self) -> ColumnElement[bool]:
        cutoff = utc_now() - self._resolving_timeout
        return and_(
            TrackModel.enrichment_status == EnrichmentStatus.RESOLVING.value,
            TrackModel.last_enrichment_at < cutoff,
        )

    @with_db_retry()
    async def get_all_tracks(self) -> list[LibraryTrack]:
        async with self._db.session_scope() as session:
            result = await session.execute(_track_query())
            return [_to_entity(model) for model in result.scalars().all()]

    @with_db_retry()
    async def get_track(self, track_id: str) -> LibraryTrack | None:
        async with self._db.session_scope() as session:
            result = await session.execute(_track_query().where(TrackModel.id == track_id))
            model = result.scalar_one_or_none()
            return _to_entity(model) if model else None

    @with_db_retry()
    async def insert_batch(self, tracks: Sequence[LibraryTrack]) -> int:
        """Insert tracks atomically. Any constraint violation rolls back the batch."""
        if not tracks:
            return 0

        try:
            async with self._db.session_scope() as session:
                lookups = _BatchLookups(session)
                for track in tracks:
                    artist_id = await lookups.artist_id(track.artist)
                    album_id = await lookups.album_id(track.album, artist_id)
                    genre_id = await lookups.genre_id(track.genre)
                    session.add(
                        TrackModel(
                            id=track.id,
                            external_uri=track.external_uri,
                            title=track.title,
                            artist_id=artist_id,
                            album_id=album_id,
                            genre_id=genre_id,
                            duration_seconds=track.duration_seconds,
                            year=track.year,
                            track_number=track.track_number,
                            last_modified=track.last_modified,
                            raw_title=track.raw_title,
                            raw_artist=track.raw_artist,
                            version_tag=track.version_tag,
                            featured_artists=json.dumps(track.featured_artists)
                            if track.featured_artists
                            else None,
                            enrichment_status=track.enrichment_status.value,
                            enrichment_attempts=track.enrichment_attempts,
                            created_at=track.created_at,
                        )
                    )
                await session.flush()
        except IntegrityError as e:
            uri = tracks[0].external_uri if len(tracks) == 1 else None
            raise DataIntegrityViolation(
                f"Insert batch of {len(tracks)} violates a catalog constraint",
                external_uri=uri,
            ) from e

        return len(tracks)

    @with_db_retry()
    async def update_batch(self, tracks: Sequence[LibraryTrack]) -> int:
        """Persist metadata of existing tracks atomically.

        Hey future me - enrichment fields are NOT written here, an enrichment save
        may be running concurrently. The one exception: if the title or artist
        changed, a finished match no longer describes this track, so ENRICHED /
        PARTIAL / FAILED rows go back to PENDING. Attempts are kept (they only
        ever grow), and EXHAUSTED / RESOLVING rows are left alone.
        """
        if not tracks:
            return 0

        updated = 0
        async with self._db.session_scope() as session:
            result = await session.execute(
                select(TrackModel).where(TrackModel.id.in_([t.id for t in tracks]))
            )
            models = {model.id: model for model in result.scalars().all()}
            lookups = _BatchLookups(session)

            for track in tracks:
                model = models.get(track.id)
                if model is None:
                    # Deleted since the diff was computed
                    logger.debug(f"Track {track.id} vanished before update, skipping")
                    continue

                artist_id = await lookups.artist_id(track.artist)
                identity_changed = model.title != track.title or model.artist_id != artist_id

                model.title = track.title
                model.artist_id = artist_id
                model.album_id = await lookups.album_id(track.album, artist_id)
                model.genre_id = await lookups.genre_id(track.genre)
                model.duration_seconds = track.duration_seconds
                model.year = track.year
                model.track_number = track.track_number
                model.last_modified = track.last_modified
                model.raw_title = track.raw_title
                model.raw_artist = track.raw_artist
                model.version_tag = track.version_tag
                model.featured_artists = (
                    json.dumps(track.featured_artists) if track.featured_artists else None
                )

                if identity_changed and model.enrichment_status in _REOPENABLE:
                    model.enrichment_status = EnrichmentStatus.PENDING.value
                updated += 1

        return updated

    @with_db_retry()
    async def delete_by_ids(self, track_ids: Sequence[str]) -> int:
        if not track_ids:
            return 0
        async with self._db.session_scope() as session:
            result = await session.execute(
                delete(TrackModel)
                .where(TrackModel.id.in_(list(track_ids)))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0  # type: ignore[attr-defined]

    @with_db_retry()
    async def find_pending_enrichment(
        self, max_attempts: int, limit: int
    ) -> list[LibraryTrack]:
        """Oldest-first PENDING/FAILED tracks below the attempt cap.

        Abandoned RESOLVING rows (older than the resolving timeout) count as
        pending too, otherwise a crash would freeze them forever.
        """
        if limit <= 0:
            return []
        async with self._db.session_scope() as session:
            stmt = (
                _track_query()
                .where(
                    TrackModel.enrichment_attempts < max_attempts,
                    or_(
                        TrackModel.enrichment_status.in_(_SELECTABLE),
                        self._stale_resolving(),
                    ),
                )
                .order_by(TrackModel.created_at.asc(), TrackModel.id.asc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_to_entity(model) for model in result.scalars().all()]

    @with_db_retry()
    async def mark_resolving(
        self, track_id: str, expected_attempts: int, max_attempts: int
    ) -> bool:
        """Guarded claim: one UPDATE, matched on status AND attempts.

        If a scan or another enrichment path touched the row since selection the
        predicate fails, rowcount is 0 and the caller skips the track.
        """
        async with self._db.session_scope() as session:
            result = await session.execute(
                update(TrackModel)
                .where(
                    TrackModel.id == track_id,
                    TrackModel.enrichment_attempts == expected_attempts,
                    TrackModel.enrichment_attempts < max_attempts,
                    or_(
                        TrackModel.enrichment_status.in_(_SELECTABLE),
                        self._stale_resolving(),
                    ),
                )
                .values(
                    enrichment_status=EnrichmentStatus.RESOLVING.value,
                    enrichment_attempts=TrackModel.enrichment_attempts + 1,
                    last_enrichment_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            return (result.rowcount or 0) == 1  # type: ignore[attr-defined]

    @with_db_retry()
    async def save_enrichment(self, track: LibraryTrack) -> None:
        """Write the outcome of an attempt. Only applies to rows still RESOLVING."""
        async with self._db.session_scope() as session:
            result = await session.execute(
                update(TrackModel)
                .where(
                    TrackModel.id == track.id,
                    TrackModel.enrichment_status == EnrichmentStatus.RESOLVING.value,
                )
                .values(
                    enrichment_status=track.enrichment_status.value,
                    external_id=track.external_id,
                    external_url=track.external_url,
                    lyrics=track.lyrics,
                    lyrics_available=track.lyrics_available,
                    cover_path=track.cover_path,
                    last_enrichment_at=track.last_enrichment_at or utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:  # type: ignore[attr-defined]
                logger.warning(
                    f"Enrichment result for {track.label} dropped: "
                    "track is no longer RESOLVING (reset or deleted meanwhile)"
                )

    @with_db_retry()
    async def reset_enrichment(self, track_id: str) -> LibraryTrack:
        async with self._db.session_scope() as session:
            result = await session.execute(
                update(TrackModel)
                .where(TrackModel.id == track_id)
                .values(
                    enrichment_status=EnrichmentStatus.PENDING.value,
                    enrichment_attempts=0,
                    last_enrichment_at=None,
                )
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:  # type: ignore[attr-defined]
                raise EntityNotFoundException("Track", track_id)

            refreshed = await session.execute(
                _track_query().where(TrackModel.id == track_id)
            )
            return _to_entity(refreshed.scalar_one())

    @with_db_retry()
    async def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in EnrichmentStatus}
        async with self._db.session_scope() as session:
            result = await session.execute(
                select(TrackModel.enrichment_status, func.count(TrackModel.id)).group_by(
                    TrackModel.enrichment_status
                )
            )
            for status, count in result.all():
                counts[status] = count
        return counts

    @with_db_retry()
    async def garbage_collect_orphans(self) -> int:
        """Delete albums, then artists, then genres that no track references."""
        async with self._db.session_scope() as session:
            albums = await session.execute(
                delete(AlbumModel)
                .where(~select(TrackModel.id).where(TrackModel.album_id == AlbumModel.id).exists())
                .execution_options(synchronize_session=False)
            )
            artists = await session.execute(
                delete(ArtistModel)
                .where(
                    ~select(TrackModel.id).where(TrackModel.artist_id == ArtistModel.id).exists(),
                    ~select(AlbumModel.id).where(AlbumModel.artist_id == ArtistModel.id).exists(),
                )
                .execution_options(synchronize_session=False)
            )
            genres = await session.execute(
                delete(GenreModel)
                .where(~select(TrackModel.id).where(TrackModel.genre_id == GenreModel.id).exists())
                .execution_options(synchronize_session=False)
            )
            removed = sum(
                r.rowcount or 0  # type: ignore[attr-defined]
                for r in (albums, artists, genres)
            )

        if removed:
            logger.info(f"Garbage collected {removed} orphaned artist/album/genre rows")
        return removed


__all__ = ["SqlCatalog"]
