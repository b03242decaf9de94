"""Tests for MutagenFileObserver and tag extraction."""

from pathlib import Path
from types import SimpleNamespace

import pytest

from tunecatalog.domain.exceptions import PermissionDeniedError
from tunecatalog.infrastructure.file_observer import MutagenFileObserver, extract_tags


def _touch(path: Path, content: bytes = b"not really audio") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


class TestExtractTags:
    def test_vorbis_comments(self) -> None:
        audio = SimpleNamespace(
            tags={
                "title": ["Bohemian Rhapsody"],
                "artist": ["Queen"],
                "tracknumber": ["11/12"],
                "date": ["1975-10-31"],
                "genre": ["  "],
            }
        )

        tags = extract_tags(audio)

        assert tags == {
            "title": "Bohemian Rhapsody",
            "artist": "Queen",
            "track_number": 11,
            "year": 1975,
        }

    def test_id3_frames(self) -> None:
        audio = SimpleNamespace(
            tags={
                "TIT2": SimpleNamespace(text=["Under Pressure"]),
                "TPE1": SimpleNamespace(text=["Queen & David Bowie"]),
                "TDRC": SimpleNamespace(text=["1981"]),
            }
        )

        tags = extract_tags(audio)

        assert tags["title"] == "Under Pressure"
        assert tags["artist"] == "Queen & David Bowie"
        assert tags["year"] == 1981

    def test_mp4_track_tuple(self) -> None:
        audio = SimpleNamespace(tags={"©nam": ["Song"], "trkn": [(3, 12)]})
        assert extract_tags(audio) == {"title": "Song", "track_number": 3}

    def test_garbage_numbers_are_dropped(self) -> None:
        audio = SimpleNamespace(tags={"tracknumber": ["A1"], "date": ["unknown"]})
        assert extract_tags(audio) == {}

    def test_no_tags(self) -> None:
        assert extract_tags(SimpleNamespace(tags=None)) == {}


class TestMutagenFileObserver:
    def test_walks_audio_files_only(self, tmp_path: Path) -> None:
        _touch(tmp_path / "Queen" / "Queen - Bohemian Rhapsody.mp3")
        _touch(tmp_path / "Queen" / "cover.jpg")
        _touch(tmp_path / "Muse" / "Uprising.FLAC")
        observer = MutagenFileObserver(tmp_path, min_duration_ms=0)

        observed = observer.list_audio_files()

        # Unreadable tags fall back to the file name
        assert sorted(o.raw_title for o in observed) == ["Queen - Bohemian Rhapsody", "Uprising"]
        for item in observed:
            assert item.external_uri.startswith("file://")
            assert item.last_modified > 0
            assert item.raw_artist is None

    def test_short_files_are_ignored(self, tmp_path: Path) -> None:
        _touch(tmp_path / "jingle.mp3")
        observer = MutagenFileObserver(tmp_path, min_duration_ms=10_000)
        assert observer.list_audio_files() == []

    def test_missing_root_observes_nothing(self, tmp_path: Path) -> None:
        observer = MutagenFileObserver(tmp_path / "nope")
        assert observer.list_audio_files() == []

    def test_unreadable_root_is_permission_denied(self, tmp_path: Path, mocker) -> None:
        mocker.patch("tunecatalog.infrastructure.file_observer.os.access", return_value=False)
        observer = MutagenFileObserver(tmp_path)

        with pytest.raises(PermissionDeniedError) as exc_info:
            observer.list_audio_files()

        assert exc_info.value.resource == str(tmp_path)

    def test_uri_is_stable_across_runs(self, tmp_path: Path) -> None:
        _touch(tmp_path / "a.mp3")
        observer = MutagenFileObserver(tmp_path, min_duration_ms=0)
        first = observer.list_audio_files()
        second = observer.list_audio_files()
        assert [o.external_uri for o in first] == [o.external_uri for o in second]
