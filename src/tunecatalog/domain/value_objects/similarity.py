"""String similarity scoring for title/artist matching.

Hey future me - everything in here is PURE: no I/O, no state, never raises.
Every score is a float in [0, 1] where 1.0 means "same thing".

- similarity(): character-level, Levenshtein on the lowercase alphanumeric core.
  "Bohemian Rhapsody" vs "bohemian-rhapsody!!" is 1.0.
- token_similarity(): word-level Jaccard overlap. Catches reordering that kills
  the character score ("Beatles, The" vs "The Beatles").
- best_similarity(): the better of the two, for artist-hint checks.

Examples:
    >>> similarity("Queen", "queen")
    1.0
    >>> similarity("", "Queen")
    0.0
    >>> token_similarity("Beatles, The", "The Beatles")
    1.0
"""

import re
import unicodedata

from rapidfuzz.distance import Levenshtein

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_TOKEN_SPLIT = re.compile(r"[^\w]+", re.UNICODE)


def _fold(text: str) -> str:
    """Lowercase and strip accents ("Beyoncé" -> "beyonce")."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def clean_for_comparison(text: str) -> str:
    """Reduce a string to its lowercase alphanumeric core."""
    return _NON_ALNUM.sub("", _fold(text))


def tokenize(text: str) -> set[str]:
    """Split into a set of lowercase word tokens on whitespace/punctuation."""
    return {token for token in _TOKEN_SPLIT.split(_fold(text)) if token}


def similarity(a: str, b: str) -> float:
    """Character-level similarity: ``1 - levenshtein / max_len``.

    Args:
        a: First string
        b: Second string

    Returns:
        Score in [0, 1]; 0.0 if either string is empty after cleaning
        (unless both are the same non-empty string)
    """
    if a and a == b:
        return 1.0
    clean_a = clean_for_comparison(a)
    clean_b = clean_for_comparison(b)
    if not clean_a or not clean_b:
        return 0.0
    if clean_a == clean_b:
        return 1.0

    distance = Levenshtein.distance(clean_a, clean_b)
    return 1.0 - distance / max(len(clean_a), len(clean_b))


def token_similarity(a: str, b: str) -> float:
    """Jaccard overlap of word token sets.

    Returns:
        |A ∩ B| / |A ∪ B|, or 0.0 if either side has no tokens
    """
    tokens_a = tokenize(a)
    tokens_b = tokenize(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def best_similarity(a: str, b: str) -> float:
    """Max of character and token similarity."""
    return max(similarity(a, b), token_similarity(a, b))


__all__ = [
    "best_similarity",
    "clean_for_comparison",
    "similarity",
    "token_similarity",
    "tokenize",
]
