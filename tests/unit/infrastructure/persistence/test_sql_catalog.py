"""Tests for SqlCatalog against in-memory SQLite."""

import asyncio
from collections.abc import Callable
from dataclasses import replace

import pytest

from tunecatalog.domain.entities import EnrichmentStatus, LibraryTrack
from tunecatalog.domain.exceptions import DataIntegrityViolation, EntityNotFoundException
from tunecatalog.infrastructure.persistence import Database, SqlCatalog

MakeTrack = Callable[..., LibraryTrack]


class TestInsertAndRead:
    async def test_round_trip_with_lookups(self, catalog: SqlCatalog, make_track: MakeTrack) -> None:
        track = make_track("a", genre="Rock", featured_artists=["David Bowie"], year=1975)

        assert await catalog.insert_batch([track]) == 1

        loaded = await catalog.get_track(track.id)
        assert loaded is not None
        assert loaded.artist == "Queen"
        assert loaded.album == "A Night at the Opera"
        assert loaded.genre == "Rock"
        assert loaded.featured_artists == ["David Bowie"]
        assert loaded.year == 1975
        assert loaded.enrichment_status is EnrichmentStatus.PENDING

    async def test_artist_rows_are_shared_case_insensitively(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        await catalog.insert_batch([make_track("a", artist="Beyoncé", album=None)])
        await catalog.insert_batch([make_track("b", artist="beyonce", album=None)])

        tracks = await catalog.get_all_tracks()

        # First spelling wins, both point at the same row
        assert {t.artist for t in tracks} == {"Beyoncé"}

    async def test_duplicate_uri_rolls_back_whole_batch(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        await catalog.insert_batch([make_track("dup")])

        with pytest.raises(DataIntegrityViolation):
            await catalog.insert_batch([make_track("new"), make_track("dup")])

        uris = {t.external_uri for t in await catalog.get_all_tracks()}
        assert uris == {"dup"}

    async def test_single_row_violation_names_the_uri(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        await catalog.insert_batch([make_track("dup")])
        with pytest.raises(DataIntegrityViolation) as exc_info:
            await catalog.insert_batch([make_track("dup")])
        assert exc_info.value.external_uri == "dup"

    async def test_unknown_track(self, catalog: SqlCatalog) -> None:
        assert await catalog.get_track("missing") is None


class TestUpdateAndDelete:
    async def test_metadata_update_keeps_enrichment(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        track = make_track("a", enrichment_status=EnrichmentStatus.ENRICHED)
        await catalog.insert_batch([track])

        await catalog.update_batch([replace(track, album="Greatest Hits", last_modified=200)])

        loaded = await catalog.get_track(track.id)
        assert loaded is not None
        assert loaded.album == "Greatest Hits"
        assert loaded.enrichment_status is EnrichmentStatus.ENRICHED

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (EnrichmentStatus.ENRICHED, EnrichmentStatus.PENDING),
            (EnrichmentStatus.PARTIAL, EnrichmentStatus.PENDING),
            (EnrichmentStatus.FAILED, EnrichmentStatus.PENDING),
            (EnrichmentStatus.EXHAUSTED, EnrichmentStatus.EXHAUSTED),
        ],
    )
    async def test_identity_change_reopens_enrichment(
        self,
        catalog: SqlCatalog,
        make_track: MakeTrack,
        status: EnrichmentStatus,
        expected: EnrichmentStatus,
    ) -> None:
        track = make_track("a", enrichment_status=status, enrichment_attempts=1)
        await catalog.insert_batch([track])

        await catalog.update_batch([replace(track, title="Bohemian Rhapsody (Live)")])

        loaded = await catalog.get_track(track.id)
        assert loaded is not None
        assert loaded.enrichment_status is expected
        assert loaded.enrichment_attempts == 1

    async def test_update_of_vanished_track_is_skipped(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        assert await catalog.update_batch([make_track("ghost")]) == 0

    async def test_delete_and_garbage_collect(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        keep = make_track("keep")
        gone = make_track("gone", artist="Muse", album="Absolution", genre="Alt")
        await catalog.insert_batch([keep, gone])

        assert await catalog.delete_by_ids([gone.id]) == 1
        # album + artist + genre of the deleted track
        assert await catalog.garbage_collect_orphans() == 3
        assert await catalog.garbage_collect_orphans() == 0
        assert await catalog.get_track(keep.id) is not None


class TestEnrichmentState:
    async def test_find_pending_respects_attempt_cap(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        await catalog.insert_batch(
            [
                make_track("p", enrichment_status=EnrichmentStatus.PENDING),
                make_track("f1", enrichment_status=EnrichmentStatus.FAILED, enrichment_attempts=1),
                make_track("f3", enrichment_status=EnrichmentStatus.FAILED, enrichment_attempts=3),
                make_track("e", enrichment_status=EnrichmentStatus.ENRICHED),
            ]
        )

        pending = await catalog.find_pending_enrichment(max_attempts=3, limit=10)

        assert {t.external_uri for t in pending} == {"p", "f1"}
        assert await catalog.find_pending_enrichment(max_attempts=3, limit=0) == []

    async def test_mark_resolving_guards(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        track = make_track("a")
        await catalog.insert_batch([track])

        # stale expected attempts
        assert not await catalog.mark_resolving(track.id, expected_attempts=1, max_attempts=3)
        assert await catalog.mark_resolving(track.id, expected_attempts=0, max_attempts=3)

        loaded = await catalog.get_track(track.id)
        assert loaded is not None
        assert loaded.enrichment_status is EnrichmentStatus.RESOLVING
        assert loaded.enrichment_attempts == 1
        # RESOLVING (fresh) is not claimable
        assert not await catalog.mark_resolving(track.id, expected_attempts=1, max_attempts=3)

    async def test_mark_resolving_refuses_at_cap(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        track = make_track("a", enrichment_status=EnrichmentStatus.FAILED, enrichment_attempts=3)
        await catalog.insert_batch([track])
        assert not await catalog.mark_resolving(track.id, expected_attempts=3, max_attempts=3)

    async def test_abandoned_resolving_is_reclaimable(
        self, database: Database, make_track: MakeTrack
    ) -> None:
        catalog = SqlCatalog(database, resolving_timeout_seconds=0.01)
        track = make_track("a")
        await catalog.insert_batch([track])
        assert await catalog.mark_resolving(track.id, expected_attempts=0, max_attempts=3)

        await asyncio.sleep(0.05)

        pending = await catalog.find_pending_enrichment(max_attempts=3, limit=10)
        assert [t.id for t in pending] == [track.id]
        assert await catalog.mark_resolving(track.id, expected_attempts=1, max_attempts=3)

    async def test_save_enrichment_only_applies_to_resolving(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        track = make_track("a")
        await catalog.insert_batch([track])

        result = replace(track, enrichment_status=EnrichmentStatus.ENRICHED, external_id="42")
        await catalog.save_enrichment(result)
        loaded = await catalog.get_track(track.id)
        assert loaded is not None
        assert loaded.enrichment_status is EnrichmentStatus.PENDING

        await catalog.mark_resolving(track.id, expected_attempts=0, max_attempts=3)
        await catalog.save_enrichment(result)
        loaded = await catalog.get_track(track.id)
        assert loaded is not None
        assert loaded.enrichment_status is EnrichmentStatus.ENRICHED
        assert loaded.external_id == "42"

    async def test_reset(self, catalog: SqlCatalog, make_track: MakeTrack) -> None:
        track = make_track("a", enrichment_status=EnrichmentStatus.EXHAUSTED, enrichment_attempts=3)
        await catalog.insert_batch([track])

        reset = await catalog.reset_enrichment(track.id)

        assert (reset.enrichment_status, reset.enrichment_attempts) == (EnrichmentStatus.PENDING, 0)
        with pytest.raises(EntityNotFoundException):
            await catalog.reset_enrichment("missing")

    async def test_count_by_status_includes_zeros(
        self, catalog: SqlCatalog, make_track: MakeTrack
    ) -> None:
        await catalog.insert_batch(
            [make_track("a"), make_track("b"), make_track("c", enrichment_status=EnrichmentStatus.FAILED)]
        )

        counts = await catalog.count_by_status()

        assert counts["pending"] == 2
        assert counts["failed"] == 1
        assert counts["enriched"] == 0
        assert set(counts) == {s.value for s in EnrichmentStatus}
