"""Artist name cleanup for hints and catalog lookups.

Hey future me - two different jobs live here:

1. clean_artist_hint(): the tag/uploader string we get from the file is often
   a video-channel name ("QueenVEVO", "Queen - Topic", "Queen Official").
   Strip that noise BEFORE scoring it against the separator sides.
2. catalog_key(): the key for the per-batch artist/album caches and the
   case-insensitive DB lookup. "Beyoncé " and "beyonce" are the same artist.

Examples:
    >>> clean_artist_hint("Queen - Topic")
    'Queen'
    >>> clean_artist_hint("QueenVEVO")
    'Queen'
    >>> clean_artist_hint("<unknown>") is None
    True
    >>> catalog_key("  Beyoncé  Knowles ")
    'beyonce knowles'
"""

import re
import unicodedata

# =============================================================================
# CHANNEL DECORATIONS
# Hey future me - only SUFFIX/bracket forms! Removing "Official" or "Music"
# anywhere in the string mangles real names ("Musical Youth").
# =============================================================================

ARTIST_DECORATION_PATTERNS: tuple[str, ...] = (
    r"\s*-\s*topic\s*$",
    r"\s*vevo\s*$",
    r"\s*[\(\[]\s*official\s*[\)\]]\s*",
    r"\s+official\s*$",
    r"\s+official\s+channel\s*$",
)

# Placeholders that media scanners write when the tag is missing
UNKNOWN_ARTIST_PLACEHOLDERS: frozenset[str] = frozenset(
    {"<unknown>", "unknown", "unknown artist", "various", ""}
)

_DECORATIONS = [re.compile(p, re.IGNORECASE) for p in ARTIST_DECORATION_PATTERNS]
_WHITESPACE = re.compile(r"\s+")


def clean_artist_hint(hint: str | None) -> str | None:
    """Clean an artist hint, or return None if it carries no information.

    Args:
        hint: Raw artist tag / uploader name

    Returns:
        Cleaned name, or None for blank and placeholder values
    """
    if hint is None:
        return None

    cleaned = hint.strip()
    if cleaned.lower() in UNKNOWN_ARTIST_PLACEHOLDERS:
        return None

    for pattern in _DECORATIONS:
        cleaned = pattern.sub(" ", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()

    return cleaned or None


def catalog_key(name: str) -> str:
    """Case- and accent-insensitive lookup key for artist/album/genre names."""
    decomposed = unicodedata.normalize("NFKD", name or "")
    folded = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _WHITESPACE.sub(" ", folded).strip().lower()


def album_key(title: str, artist_id: str) -> str:
    """Cache key for an album: the same title under two artists is two albums."""
    return f"{catalog_key(title)}_{artist_id}"


__all__ = [
    "ARTIST_DECORATION_PATTERNS",
    "UNKNOWN_ARTIST_PLACEHOLDERS",
    "album_key",
    "catalog_key",
    "clean_artist_hint",
]
