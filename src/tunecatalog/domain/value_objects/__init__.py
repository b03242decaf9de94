"""Domain value objects: pure text processing used across the catalog."""

from tunecatalog.domain.value_objects.artist_normalization import (
    album_key,
    catalog_key,
    clean_artist_hint,
)
from tunecatalog.domain.value_objects.similarity import (
    best_similarity,
    similarity,
    token_similarity,
)
from tunecatalog.domain.value_objects.title_normalization import (
    UNKNOWN_ARTIST,
    UNKNOWN_TITLE,
    ParsedTitle,
    TitleNormalizer,
    VersionTag,
    build_search_query,
    music_confidence,
    parse_title,
)

__all__ = [
    "UNKNOWN_ARTIST",
    "UNKNOWN_TITLE",
    "ParsedTitle",
    "TitleNormalizer",
    "VersionTag",
    "album_key",
    "best_similarity",
    "build_search_query",
    "catalog_key",
    "clean_artist_hint",
    "music_confidence",
    "parse_title",
    "similarity",
    "token_similarity",
]
