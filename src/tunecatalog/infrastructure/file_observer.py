"""Filesystem observer: walks the music folder and reads tags with mutagen."""

import logging
import os
from pathlib import Path
from typing import Any

from mutagen import File as MutagenFile
from mutagen import MutagenError

from tunecatalog.domain.entities import ObservedFile
from tunecatalog.domain.exceptions import PermissionDeniedError
from tunecatalog.domain.ports import IFileObserver

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset(
    {
        # Lossy
        ".mp3",
        ".m4a",
        ".aac",
        ".ogg",
        ".opus",
        ".wma",
        # Lossless
        ".flac",
        ".wav",
        ".aiff",
        ".alac",
    }
)

# Hey future me - one table for all three tag families mutagen hands us.
# ID3 (MP3) frames, Vorbis comments (FLAC/OGG) and MP4 atoms (M4A) all land on the
# same field names. First hit wins, so order TDRC before TYER isn't needed.
TAG_MAPPINGS: dict[str, str] = {
    # ID3 (MP3)
    "TIT2": "title",
    "TPE1": "artist",
    "TALB": "album",
    "TRCK": "track_number",
    "TYER": "year",
    "TDRC": "year",
    "TCON": "genre",
    # Vorbis (FLAC, OGG)
    "title": "title",
    "artist": "artist",
    "album": "album",
    "tracknumber": "track_number",
    "date": "year",
    "genre": "genre",
    # MP4 (M4A)
    "©nam": "title",
    "©ART": "artist",
    "©alb": "album",
    "©day": "year",
    "©gen": "genre",
    "trkn": "track_number",
}


def _first_value(value: Any) -> Any:
    if isinstance(value, list) and value:
        value = value[0]
    if hasattr(value, "text"):
        value = value.text[0] if isinstance(value.text, list) and value.text else value.text
    return value


def _to_int(value: Any, field_name: str) -> int | None:
    """Parse "3/12", (3, 12), "1999-05-01" style values."""
    if isinstance(value, tuple):
        value = value[0] if value else None
    if value is None:
        return None
    text = str(value)
    if field_name == "track_number" and "/" in text:
        text = text.split("/")[0]
    if field_name == "year":
        text = text[:4]
    try:
        return int(text)
    except ValueError:
        return None


def extract_tags(audio: Any) -> dict[str, Any]:
    """Map mutagen tags onto title/artist/album/track_number/year/genre."""
    tags: dict[str, Any] = {}
    audio_tags = getattr(audio, "tags", None)
    if not audio_tags:
        return tags

    for tag_key, field_name in TAG_MAPPINGS.items():
        if field_name in tags:
            continue
        try:
            if tag_key not in audio_tags:
                continue
            value = _first_value(audio_tags[tag_key])
        except (KeyError, ValueError):
            # ID3 objects raise ValueError for non-frame keys like "title"
            continue

        if field_name in ("track_number", "year"):
            value = _to_int(value, field_name)
        elif value is not None:
            value = str(value).strip() or None

        if value is not None:
            tags[field_name] = value

    return tags


class MutagenFileObserver(IFileObserver):
    """Snapshot of audio files under a root folder.

    Args:
        root: Music library root
        min_duration_ms: Files shorter than this (ringtones, jingles) are ignored
        follow_symlinks: Follow directory symlinks while walking
    """

    def __init__(
        self, root: Path, min_duration_ms: int = 10_000, follow_symlinks: bool = True
    ) -> None:
        self.root = Path(root)
        self.min_duration_ms = min_duration_ms
        self.follow_symlinks = follow_symlinks

    def list_audio_files(self) -> list[ObservedFile]:
        """Walk the library and read every audio file. Blocking - run in a thread."""
        if not self.root.exists():
            logger.warning(f"Music path {self.root} does not exist, observing nothing")
            return []
        if not os.access(self.root, os.R_OK | os.X_OK):
            raise PermissionDeniedError(
                f"Cannot read music library at {self.root}", resource=str(self.root)
            )

        observed: list[ObservedFile] = []
        too_short = 0

        def on_walk_error(error: OSError) -> None:
            if error.filename and Path(error.filename) == self.root:
                raise PermissionDeniedError(
                    f"Cannot read music library at {self.root}: {error}",
                    resource=str(self.root),
                ) from error
            logger.warning(f"Skipping unreadable directory {error.filename}: {error}")

        for dirpath, _dirs, files in os.walk(
            self.root, onerror=on_walk_error, followlinks=self.follow_symlinks
        ):
            for filename in files:
                path = Path(dirpath) / filename
                if path.suffix.lower() not in AUDIO_EXTENSIONS:
                    continue
                observed_file = self.read_file(path)
                if observed_file is None:
                    continue
                if observed_file.duration_ms < self.min_duration_ms:
                    too_short += 1
                    continue
                observed.append(observed_file)

        logger.info(
            f"Observed {len(observed)} audio files under {self.root} "
            f"({too_short} below {self.min_duration_ms}ms skipped)"
        )
        return observed

    def read_file(self, path: Path) -> ObservedFile | None:
        """Build an ObservedFile from one path, or None if it vanished."""
        try:
            stat = path.stat()
        except FileNotFoundError:
            return None
        except PermissionError as e:
            logger.warning(f"Skipping unreadable file {path}: {e}")
            return None

        duration_ms = 0
        tags: dict[str, Any] = {}
        try:
            audio = MutagenFile(path)
            if audio is not None:
                if getattr(audio.info, "length", None):
                    duration_ms = int(audio.info.length * 1000)
                tags = extract_tags(audio)
        except (MutagenError, OSError) as e:
            logger.debug(f"Could not read tags from {path.name}: {e}")

        return ObservedFile(
            external_uri=path.resolve().as_uri(),
            raw_title=tags.get("title") or path.stem,
            raw_artist=tags.get("artist"),
            raw_album=tags.get("album"),
            duration_ms=duration_ms,
            track_number=tags.get("track_number"),
            year=tags.get("year"),
            last_modified=stat.st_mtime_ns // 1_000_000,
            raw_genre=tags.get("genre"),
            size_bytes=stat.st_size,
        )


__all__ = ["AUDIO_EXTENSIONS", "MutagenFileObserver", "extract_tags"]
