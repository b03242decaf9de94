# Hey future me - this is the INCREMENTAL library scan!
#
# Two halves:
#   1. reconcile() - PURE set reconciliation of "what's on disk" vs "what's in the
#      catalog", keyed by external_uri. No fuzzy matching, no I/O. Easy to test.
#   2. CatalogDiffService - applies that plan through ICatalog in bounded batches,
#      normalizing new titles with TitleNormalizer on the way.
#
# Every batch is its own transaction. A crash mid-scan leaves the catalog consistent
# up to the last committed batch, and the next scan just re-diffs from scratch.
"""Catalog reconciliation: diff observed files against the persisted catalog."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import replace
from typing import TypeVar

from tunecatalog.config import Settings
from tunecatalog.domain.entities import (
    LibraryTrack,
    ObservedFile,
    ReconcilePlan,
    ScanPhase,
    ScanProgress,
    ScanResult,
)
from tunecatalog.domain.exceptions import DataIntegrityViolation, PermissionDeniedError
from tunecatalog.domain.ports import ICatalog, IFileObserver
from tunecatalog.domain.value_objects import TitleNormalizer

logger = logging.getLogger(__name__)

ScanProgressCallback = Callable[[ScanProgress], Awaitable[None]]

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    for start in range(0, len(items), max(1, size)):
        yield items[start : start + max(1, size)]


def reconcile(
    observed: Sequence[ObservedFile],
    persisted: Sequence[LibraryTrack],
    force_full: bool = False,
) -> ReconcilePlan:
    """Compute the minimal catalog mutations for one observation.

    Every observed URI ends up in exactly one of to_insert / to_update / unchanged,
    every persisted URI that wasn't observed in to_delete.

    Args:
        observed: Files currently on disk (duplicate URIs: the last one wins)
        persisted: Current catalog entries
        force_full: Put every known file in to_update, even with an unchanged
            last_modified (forced full rescan)

    Returns:
        ReconcilePlan with disjoint partitions
    """
    plan = ReconcilePlan()

    by_uri: dict[str, LibraryTrack] = {}
    for track in persisted:
        if track.external_uri in by_uri:
            # Can't happen with the unique constraint, but never keep two rows per URI
            plan.to_delete.append(track.id)
            continue
        by_uri[track.external_uri] = track

    latest: dict[str, ObservedFile] = {}
    for observed_file in observed:
        latest[observed_file.external_uri] = observed_file

    for uri, observed_file in latest.items():
        track = by_uri.get(uri)
        if track is None:
            plan.to_insert.append(observed_file)
        elif force_full or track.last_modified != observed_file.last_modified:
            plan.to_update.append((track, observed_file))
        else:
            plan.unchanged.append(uri)

    plan.to_delete.extend(
        track.id for uri, track in by_uri.items() if uri not in latest
    )
    return plan


class CatalogDiffService:
    """Runs a library scan: observe, reconcile, apply in batches, clean up."""

    def __init__(
        self,
        catalog: ICatalog,
        file_observer: IFileObserver,
        settings: Settings,
        normalizer: TitleNormalizer | None = None,
    ) -> None:
        """Initialize service.

        Args:
            catalog: Persisted catalog
            file_observer: Source of the on-disk snapshot
            settings: Application settings (scan batch sizes)
            normalizer: Title normalizer, defaults to one built from matching settings
        """
        self._catalog = catalog
        self._observer = file_observer
        self._settings = settings
        self._normalizer = normalizer or TitleNormalizer(
            separator_confidence=settings.matching.separator_confidence
        )

    # =========================================================================
    # TRACK BUILDING
    # =========================================================================

    def build_track(self, observed: ObservedFile) -> LibraryTrack:
        """Turn a newly seen file into a catalog entry (PENDING, 0 attempts)."""
        parsed = self._normalizer.parse(observed.raw_title, observed.raw_artist)
        return LibraryTrack(
            external_uri=observed.external_uri,
            title=parsed.title,
            artist=parsed.artist,
            album=(observed.raw_album or "").strip() or None,
            duration_seconds=observed.duration_ms // 1000,
            year=observed.year or parsed.year,
            track_number=observed.track_number,
            last_modified=observed.last_modified,
            raw_title=observed.raw_title,
            raw_artist=observed.raw_artist,
            genre=(observed.raw_genre or "").strip() or None,
            version_tag=parsed.version_tag.value if parsed.version_tag else None,
            featured_artists=list(parsed.featured_artists),
        )

    def refresh_track(
        self, track: LibraryTrack, observed: ObservedFile, force: bool = False
    ) -> tuple[LibraryTrack, bool]:
        """Apply a changed file to its catalog entry.

        Title/artist are only re-derived if the raw inputs changed (or force).
        Enrichment state is untouched here - that's the catalog's call.

        Returns:
            (updated track, whether it was re-normalized)
        """
        refreshed = replace(
            track,
            album=(observed.raw_album or "").strip() or None,
            duration_seconds=observed.duration_ms // 1000,
            year=observed.year or track.year,
            track_number=observed.track_number,
            last_modified=observed.last_modified,
            genre=(observed.raw_genre or "").strip() or None,
        )

        raw_changed = (
            observed.raw_title != track.raw_title or observed.raw_artist != track.raw_artist
        )
        if not (raw_changed or force):
            return refreshed, False

        parsed = self._normalizer.parse(observed.raw_title, observed.raw_artist)
        refreshed = replace(
            refreshed,
            title=parsed.title,
            artist=parsed.artist,
            year=observed.year or parsed.year,
            raw_title=observed.raw_title,
            raw_artist=observed.raw_artist,
            version_tag=parsed.version_tag.value if parsed.version_tag else None,
            featured_artists=list(parsed.featured_artists),
        )
        return refreshed, True

    # =========================================================================
    # SCAN
    # =========================================================================

    async def scan(
        self,
        force_full: bool = False,
        progress_callback: ScanProgressCallback | None = None,
    ) -> ScanResult:
        """Observe the library, reconcile and apply.

        Raises:
            PermissionDeniedError: If the library can't be read (fatal for the run)
            asyncio.CancelledError: Between batches; committed batches stay
        """
        start = time.monotonic()
        report = _ProgressReporter(progress_callback)

        await report(ScanPhase.READ, 0.0, "Reading library")
        # Listing + tag reading is blocking file I/O, keep it off the event loop
        observed = await asyncio.to_thread(self._observer.list_audio_files)
        await report(ScanPhase.READ, 0.5, f"Found {len(observed)} audio files")
        persisted = await self._catalog.get_all_tracks()
        await report(ScanPhase.READ, 1.0, f"{len(persisted)} tracks in catalog")

        plan = reconcile(observed, persisted, force_full=force_full)
        logger.info(
            f"Scan plan: {len(plan.to_insert)} new, {len(plan.to_update)} changed, "
            f"{len(plan.to_delete)} gone, {len(plan.unchanged)} unchanged"
        )
        await report(ScanPhase.ANALYZE, 1.0, "Diff computed")

        result = await self.apply(
            plan, force_renormalize=force_full, progress_callback=progress_callback
        )
        result.time_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Scan complete in {result.time_ms}ms: {result.new} new, "
            f"{result.updated} updated, {result.deleted} deleted, "
            f"{result.integrity_errors} integrity errors, {result.failed_batches} failed batches"
        )
        return result

    async def apply(
        self,
        plan: ReconcilePlan,
        force_renormalize: bool = False,
        progress_callback: ScanProgressCallback | None = None,
    ) -> ScanResult:
        """Drive the plan through the catalog: delete, insert, update, clean up.

        These batches touch disjoint id sets, so their relative order doesn't
        matter for correctness. Deleting first frees memory and orphan rows early.
        """
        result = ScanResult(unchanged=len(plan.unchanged))
        report = _ProgressReporter(progress_callback)

        await self._apply_deletes(plan.to_delete, result, report)
        await self._apply_inserts(plan.to_insert, result, report)
        await self._apply_updates(plan.to_update, force_renormalize, result, report)

        await report(ScanPhase.CLEANUP, 0.0, "Removing orphaned artists/albums/genres")
        try:
            result.orphans_removed = await self._catalog.garbage_collect_orphans()
        except PermissionDeniedError:
            raise
        except Exception as e:
            logger.error(f"Orphan cleanup failed: {e}", exc_info=True)
            result.failed_batches += 1
            result.errors.append(f"Orphan cleanup failed: {e}")
        await report(ScanPhase.CLEANUP, 1.0, "Scan finished")

        return result

    async def _apply_deletes(
        self, track_ids: list[str], result: ScanResult, report: "_ProgressReporter"
    ) -> None:
        chunks = list(chunked(track_ids, self._settings.scan.delete_chunk_size))
        for index, chunk in enumerate(chunks, 1):
            try:
                result.deleted += await self._catalog.delete_by_ids(list(chunk))
            except PermissionDeniedError:
                raise
            except Exception as e:
                logger.error(f"Delete batch {index}/{len(chunks)} failed: {e}", exc_info=True)
                result.failed_batches += 1
                result.errors.append(f"Delete batch failed: {e}")
            await report(ScanPhase.DELETE, index / len(chunks), f"Deleted {result.deleted}")

    async def _apply_inserts(
        self, observed: list[ObservedFile], result: ScanResult, report: "_ProgressReporter"
    ) -> None:
        batches = list(chunked(observed, self._settings.scan.batch_size))
        for index, batch in enumerate(batches, 1):
            # Normalize per batch so peak memory stays at one batch of tracks
            tracks = [self.build_track(observed_file) for observed_file in batch]
            await self._insert_with_fallback(tracks, result)
            await report(
                ScanPhase.INSERT,
                index / len(batches),
                f"Inserted {result.new}/{len(observed)} new tracks",
            )

    # Hey future me - the fallback ladder for inserts!
    # 50 at once -> on failure 25 at a time -> on failure one by one.
    # One duplicate URI among 50 files would otherwise lose 49 good tracks. At the
    # single-row level the bad row is counted and skipped, never re-raised.
    async def _insert_with_fallback(
        self, tracks: Sequence[LibraryTrack], result: ScanResult
    ) -> None:
        try:
            result.new += await self._catalog.insert_batch(tracks)
            return
        except PermissionDeniedError:
            raise
        except DataIntegrityViolation as e:
            if len(tracks) == 1:
                logger.warning(
                    f"Skipping {tracks[0].external_uri}: {e.message}"
                )
                result.integrity_errors += 1
                result.errors.append(f"Integrity violation for {tracks[0].external_uri}")
                return
            failure: Exception = e
        except Exception as e:
            if len(tracks) == 1:
                logger.error(
                    f"Insert of {tracks[0].external_uri} failed: {e}", exc_info=True
                )
                result.failed_batches += 1
                result.errors.append(f"Insert failed for {tracks[0].external_uri}: {e}")
                return
            failure = e

        fallback = self._settings.scan.fallback_batch_size
        sub_size = fallback if len(tracks) > fallback else 1
        logger.warning(
            f"Insert batch of {len(tracks)} failed ({failure}), "
            f"retrying in batches of {sub_size}"
        )
        for sub_batch in chunked(tracks, sub_size):
            await self._insert_with_fallback(sub_batch, result)

    async def _apply_updates(
        self,
        pairs: list[tuple[LibraryTrack, ObservedFile]],
        force_renormalize: bool,
        result: ScanResult,
        report: "_ProgressReporter",
    ) -> None:
        batches = list(chunked(pairs, self._settings.scan.batch_size))
        for index, batch in enumerate(batches, 1):
            tracks: list[LibraryTrack] = []
            renormalized = 0
            for track, observed_file in batch:
                refreshed, was_renormalized = self.refresh_track(
                    track, observed_file, force=force_renormalize
                )
                tracks.append(refreshed)
                renormalized += int(was_renormalized)

            try:
                result.updated += await self._catalog.update_batch(tracks)
                result.renormalized += renormalized
            except PermissionDeniedError:
                raise
            except Exception as e:
                logger.error(f"Update batch {index}/{len(batches)} failed: {e}", exc_info=True)
                result.failed_batches += 1
                result.errors.append(f"Update batch failed: {e}")

            await report(
                ScanPhase.UPDATE,
                index / len(batches),
                f"Updated {result.updated}/{len(pairs)} changed tracks",
            )


class _ProgressReporter:
    """Wraps the optional callback so the scan code can call it unconditionally."""

    def __init__(self, callback: ScanProgressCallback | None) -> None:
        self._callback = callback

    async def __call__(self, phase: ScanPhase, phase_progress: float, message: str) -> None:
        if self._callback is not None:
            await self._callback(ScanProgress(phase, min(1.0, phase_progress), message))


__all__ = [
    "CatalogDiffService",
    "ScanProgressCallback",
    "chunked",
    "reconcile",
]
