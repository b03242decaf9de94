"""Turn messy file titles into (artist, title, version) triples.

Hey future me - this is where "queen - bohemian rhapsody (Official Video) [HD]"
becomes Artist="Queen", Title="Bohemian Rhapsody". The pipeline is:

1. Separators: spaced "|", "/" and "\\" become " - ", whitespace collapses
2. Decorations: "(Official Video)", "[HD]", "- Topic", site tags... are removed.
   The pattern lists below are CONFIGURATION - add patterns, don't add code.
3. Split on the first separator and score both sides against the artist hint
4. No separator + hint -> hint is the artist, whole string is the title
5. Nothing to go on -> UNKNOWN_ARTIST
6. Featured artists, a trailing version marker ("(Live)") and a bracketed
   year are pulled out of the title
7. Title-case pass that keeps acronyms and domains verbatim

Everything here is PURE and TOTAL: no I/O, never raises, never returns an empty
artist or title. parse() is idempotent: parse(parse(x).format()) == parse(x).
"""

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum

from tunecatalog.domain.value_objects.artist_normalization import clean_artist_hint
from tunecatalog.domain.value_objects.similarity import best_similarity, similarity

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_TITLE = "Unknown Title"


class VersionTag(str, Enum):
    """Edition/version marker detected at the end of a title."""

    ACOUSTIC = "acoustic"
    LIVE = "live"
    REMIX = "remix"
    COVER = "cover"
    INSTRUMENTAL = "instrumental"
    KARAOKE = "karaoke"
    DEMO = "demo"
    RADIO_EDIT = "radio_edit"
    EXTENDED = "extended"
    SLOWED_REVERB = "slowed_reverb"
    SPED_UP = "sped_up"

    @property
    def display(self) -> str:
        """Display form used by ParsedTitle.format(), e.g. "Radio Edit"."""
        return self.value.replace("_", " ").title()


# =============================================================================
# DECORATION PATTERNS
# Hey future me - bracket patterns match the CONTENT of (...) / [...] groups,
# the group is dropped entirely. Suffix/prefix patterns are anchored regexes.
# All case-insensitive.
# =============================================================================

BRACKET_DECORATIONS: tuple[str, ...] = (
    # Video sites
    r"official(?:\s+(?:music|lyrics?|hd))?(?:\s+(?:video|audio|visualizer|clip))?",
    r"oficial(?:\s+(?:video|audio))?",
    r"(?:music|lyrics?|vertical)\s+video",
    r"lyrics?",
    r"audio",
    r"video(?:\s*clip)?",
    r"visuali[sz]er",
    r"behind\s+the\s+scenes",
    r"explicit(?:\s+version)?",
    r"clean(?:\s+version)?",
    r"censored",
    # Streaming platforms
    r"spotify\s+(?:sessions?|singles?)",
    r"apple\s+music\s+(?:edition|live)",
    r"amazon\s+original",
    r"deezer\s+sessions?",
    r"tidal\s+rising",
    r"soundcloud\s+go\+?",
    r"youtube\s+music\s+sessions?",
    # Quality markers
    r"hd|hq|4k|8k|\d{3,4}p",
    r"high\s+(?:quality|definition)",
    r"(?:\d{4}\s+)?(?:digital(?:ly)?\s+)?remaster(?:ed)?(?:\s+\d{4})?(?:\s+version)?",
    r"\d{3}\s*kbps|flac|lossless|hi-?res|hi-?fi",
    r"dolby\s+atmos|spatial\s+audio",
    # Site tags
    r"(?:www\.)?[\w-]+\.(?:com|net|org|ru|info|io|me|to|cc)",
    r"free\s+download|ncs\s+release|premiere|exclusive",
)

SUFFIX_DECORATIONS: tuple[str, ...] = (
    r"\s*[-–—]\s*topic$",
    r"\s*[-–—]\s*spotify\s+singles?$",
    r"\s*[-–—]\s*recorded\s+at\s+spotify\s+studios.*$",
    r"\s*[-–—]\s*(?:apple|amazon|youtube)\s+music$",
    r"\s*[-–—]\s*(?:deezer|tidal)$",
    r"\s*[-–—]\s*(?:\d{4}\s+)?(?:digital(?:ly)?\s+)?remaster(?:ed)?(?:\s+\d{4})?(?:\s+version)?$",
    r"\s+(?:hd|hq|4k|8k|1080p|720p)$",
)

PREFIX_DECORATIONS: tuple[str, ...] = (
    r"^(?:www\.)?[\w-]+\.(?:com|net|org|ru|info|io|me|to|cc)\s*[-–—|:]\s*",
    r"^[\[\(][^\]\)]*(?:release|free\s+download|premiere|exclusive)[^\]\)]*[\]\)]\s*",
    r"^\d{1,3}\s*[.)]\s+(?=\S)",  # "01. " track-number prefixes from filenames
)

# Hey future me - ordered by priority, the first match wins ("Live Acoustic" is ACOUSTIC)
VERSION_PATTERNS: tuple[tuple[VersionTag, str], ...] = (
    (VersionTag.ACOUSTIC, r"\bacoustic\b|\bac[uú]stic[oa]\b|\bunplugged\b"),
    (VersionTag.LIVE, r"\blive\b|\ben vivo\b|\ben directo\b|\bconcert\b"),
    (VersionTag.REMIX, r"\bremix\b|\brmx\b"),
    (VersionTag.COVER, r"\bcover\b"),
    (VersionTag.INSTRUMENTAL, r"\binstrumental\b|\binst\."),
    (VersionTag.KARAOKE, r"\bkaraoke\b"),
    (VersionTag.DEMO, r"\bdemo\b"),
    (VersionTag.RADIO_EDIT, r"\bradio\s+(?:edit|version|mix)\b"),
    (VersionTag.EXTENDED, r"\bextended\b"),
    (VersionTag.SLOWED_REVERB, r"\bslowed\b|\breverb\b"),
    (VersionTag.SPED_UP, r"\bsped\s+up\b|\bnightcore\b"),
)

FEATURED_PATTERNS: tuple[str, ...] = (
    r"\s*[\(\[]\s*(?:feat\.?|ft\.?|featuring|with|con)\s+([^\)\]]+)[\)\]]",
    r"\s+(?:feat\.?|ft\.?|featuring)\s+(.+?)(?=\s*[-–—\(\[]|$)",
)

ARTIST_SEPARATORS = re.compile(r"\s+(?:&|and|y|e|x|vs\.?)\s+|\s*,\s*|\s+/\s+", re.IGNORECASE)

# Title-case vocabulary
MINOR_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "the", "and", "but", "or", "nor", "for", "of", "to", "in",
        "on", "at", "by", "as", "vs", "de", "del", "la", "las", "el", "los",
        "y", "e", "o",
    }
)  # fmt: skip

ALWAYS_UPPERCASE: dict[str, str] = {
    word.lower(): word
    for word in (
        "DJ", "MC", "TV", "CD", "DVD", "EP", "LP", "UK", "USA", "NYC", "BBC",
        "MTV", "VIP", "EDM", "R&B", "AC/DC", "FM", "HD", "HQ", "II", "III",
        "IV", "VI", "VII", "VIII", "IX", "XI", "XII",
    )
}  # fmt: skip

# Weighted indicators for music_confidence()
NON_MUSIC_INDICATORS: dict[str, float] = {
    "podcast": 1.0,
    "episode": 0.9,
    "audiobook": 1.0,
    "audiolibro": 1.0,
    "documentary": 0.9,
    "documental": 0.9,
    "interview": 0.6,
    "entrevista": 0.6,
    "lecture": 0.7,
    "speech": 0.6,
    "ted talk": 0.8,
    "behind the scenes": 0.5,
    "making of": 0.5,
    "trailer": 0.7,
    "teaser": 0.6,
    "tutorial": 0.4,
    "how to": 0.4,
    "review": 0.4,
    "reaction": 0.5,
    "commentary": 0.4,
    "hour mix": 0.3,
    "full album": 0.2,
}

MUSIC_INDICATORS: dict[str, float] = {
    "official": 0.15,
    "audio": 0.10,
    "music": 0.10,
    "song": 0.10,
    "single": 0.15,
    "remix": 0.20,
    "cover": 0.15,
    "acoustic": 0.15,
    "live": 0.10,
    "unplugged": 0.15,
    "session": 0.10,
    "version": 0.10,
}

_SEPARATOR = re.compile(r"\s+[-–—]\s+|\s*(?:\|\||//|::)\s*|\s*\|\s*|\s*[–—]\s*")
_SPACED_SLASH_OR_PIPE = re.compile(r"\s+[|/\\]\s+")
_WHITESPACE = re.compile(r"\s+")
_UNDERSCORES = re.compile(r"_+")
_EDGE_JUNK = re.compile(r"^[\s\-–—|:/]+|[\s\-–—|:/]+$")
_EMPTY_BRACKETS = re.compile(r"\(\s*\)|\[\s*\]")
_TRAILING_BRACKET = re.compile(r"\s*[\(\[]([^\(\)\[\]]*)[\)\]]\s*$")
_TRAILING_DASH_SEGMENT = re.compile(r"\s+[-–—]\s+([^-–—]+)$")
_BRACKETED_YEAR = re.compile(r"\s*[\(\[]\s*((?:19|20)\d{2})\s*[\)\]]")
_ACRONYM = re.compile(r"^[A-Z0-9$#&]+$")
_DURATION_HINT = re.compile(r"(\d+)\s*(?:hour|hr|hora)", re.IGNORECASE)
_EPISODE_HINT = re.compile(r"\b(?:episode|ep\.?|chapter|cap\.?)\s*\d+", re.IGNORECASE)


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def _squash(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def detect_version(text: str) -> VersionTag | None:
    """Classify a marker text ("Live at Wembley") into a VersionTag."""
    lowered = text.lower()
    for tag, pattern in VERSION_PATTERNS:
        if re.search(pattern, lowered):
            return tag
    return None


def extract_year(text: str) -> int | None:
    """Year from a bracketed "(1975)" / "[1975]" marker, if any."""
    match = _BRACKETED_YEAR.search(text)
    return int(match.group(1)) if match else None


def split_artists(text: str) -> list[str]:
    """Split "Drake & 21 Savage" into ["Drake", "21 Savage"]."""
    names = [_squash(part) for part in ARTIST_SEPARATORS.split(text)]
    seen: list[str] = []
    for name in names:
        if len(name) >= 2 and name.lower() not in MINOR_WORDS and name not in seen:
            seen.append(name)
    return seen


def music_confidence(title: str, artist: str | None = None) -> float:
    """Heuristic confidence in [0, 1] that a title is music and not a podcast etc.

    Base 0.5, minus half the weight of each non-music indicator, plus each music
    indicator's bonus, minus 0.3 for "2 hour" style durations and 0.4 for
    episode/chapter numbering.
    """
    combined = _fold(" ".join([title or "", artist or ""]))
    text = " " + _squash(re.sub(r"[^a-z0-9]+", " ", combined)) + " "
    confidence = 0.5
    for indicator, weight in NON_MUSIC_INDICATORS.items():
        if f" {indicator} " in text:
            confidence -= weight * 0.5
    for indicator, bonus in MUSIC_INDICATORS.items():
        if f" {indicator} " in text:
            confidence += bonus
    if _DURATION_HINT.search(title or ""):
        confidence -= 0.3
    if _EPISODE_HINT.search(title or ""):
        confidence -= 0.4
    return max(0.0, min(1.0, confidence))


def build_search_query(title: str, artist: str | None = None) -> str:
    """Lowercase, accent-free "title artist" query for external search."""
    parts = [title, artist or ""]
    query = " ".join(re.sub(r"[^a-z0-9\s]", " ", _fold(part)) for part in parts)
    return _squash(query)


def _capitalize_word(word: str) -> str:
    for index, char in enumerate(word):
        if char.isalpha():
            return word[:index] + char.upper() + word[index + 1 :]
    return word


def to_title_case(text: str) -> str:
    """Title-case pass that leaves acronyms and dotted tokens alone.

    Examples:
        >>> to_title_case("the sound of silence")
        'The Sound of Silence'
        >>> to_title_case("live at BBC in london.com style")
        'Live at BBC in london.com Style'
    """
    words = text.split()
    result: list[str] = []
    for index, word in enumerate(words):
        lowered = word.lower()
        if _ACRONYM.match(word) and any(c.isalpha() for c in word):
            result.append(word)
        elif "." in word and not word.endswith("."):
            result.append(word)
        elif lowered in ALWAYS_UPPERCASE:
            result.append(ALWAYS_UPPERCASE[lowered])
        elif index == 0:
            result.append(_capitalize_word(word))
        elif lowered in MINOR_WORDS:
            result.append(lowered)
        else:
            result.append(_capitalize_word(word))
    return " ".join(result)


@dataclass(frozen=True)
class ParsedTitle:
    """Structured result of TitleNormalizer.parse()."""

    artist: str
    title: str
    version_tag: VersionTag | None = None
    featured_artists: tuple[str, ...] = ()
    year: int | None = None

    def format(self) -> str:
        """Canonical "Artist - Title (feat. X) (Version)" rendering."""
        text = f"{self.artist} - {self.title}"
        if self.featured_artists:
            text += f" (feat. {', '.join(self.featured_artists)})"
        if self.version_tag is not None:
            text += f" ({self.version_tag.display})"
        return text


class TitleNormalizer:
    """Parses raw titles into ParsedTitle values.

    Hey future me - the pattern tuples are injectable so a deployment can add
    site tags without touching the logic. The defaults are the module constants.
    """

    def __init__(
        self,
        separator_confidence: float = 0.6,
        bracket_decorations: tuple[str, ...] = BRACKET_DECORATIONS,
        suffix_decorations: tuple[str, ...] = SUFFIX_DECORATIONS,
        prefix_decorations: tuple[str, ...] = PREFIX_DECORATIONS,
    ) -> None:
        self.separator_confidence = separator_confidence
        self._bracket = re.compile(
            r"\s*[\(\[]\s*(?:" + "|".join(bracket_decorations) + r")\s*[\)\]]",
            re.IGNORECASE,
        )
        self._suffixes = [re.compile(p, re.IGNORECASE) for p in suffix_decorations]
        self._prefixes = [re.compile(p, re.IGNORECASE) for p in prefix_decorations]
        self._featured = [re.compile(p, re.IGNORECASE) for p in FEATURED_PATTERNS]

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def parse(self, raw_title: str | None, raw_artist_hint: str | None = None) -> ParsedTitle:
        """Parse a raw title (and optional artist tag) into artist/title/version.

        Args:
            raw_title: Title tag or filename stem, any amount of noise
            raw_artist_hint: Artist tag / uploader, may be blank or "<unknown>"

        Returns:
            ParsedTitle with non-empty artist and title
        """
        hint = clean_artist_hint(raw_artist_hint)
        text = self.strip_decorations(raw_title or "")

        artist_part: str | None = None
        title_part = text
        sides = self._split_on_separator(text)
        if sides is not None:
            left, right = sides
            if self._left_is_artist(left, right, hint):
                artist_part, title_part = left, right
            else:
                artist_part, title_part = right, left
        elif hint:
            artist_part = hint

        featured: list[str] = []
        if artist_part:
            artist_part, artist_featured = self._extract_featured(artist_part)
            featured.extend(artist_featured)
        title_part, title_featured = self._extract_featured(title_part)
        featured.extend(name for name in title_featured if name not in featured)

        # The year goes first so a trailing "(1999)" can't hide "(Live)" behind it
        year = extract_year(title_part)
        title_part = self._tidy(_BRACKETED_YEAR.sub("", title_part))
        title_part, version = self._extract_version(title_part)
        # Extraction can leave a decoration at the very end ("Song HD (1999)")
        title_part = self.strip_decorations(title_part)
        if version is None:
            title_part, version = self._extract_version(title_part)
        artist_part = self.strip_decorations(artist_part or "")

        return ParsedTitle(
            artist=to_title_case(artist_part) if artist_part else UNKNOWN_ARTIST,
            title=to_title_case(title_part) if title_part else UNKNOWN_TITLE,
            version_tag=version,
            featured_artists=tuple(featured),
            year=year,
        )

    def strip_decorations(self, text: str) -> str:
        """Steps 1-2: normalize separators and drop non-musical decorations."""
        text = unicodedata.normalize("NFC", text)
        text = _UNDERSCORES.sub(" ", text)
        text = _SPACED_SLASH_OR_PIPE.sub(" - ", text)
        text = _squash(text)

        # A removal can expose another one ("Song (Audio) [HD]"), so loop until stable
        for _ in range(4):
            before = text
            text = self._bracket.sub("", text)
            for pattern in self._suffixes:
                text = pattern.sub("", text)
            for pattern in self._prefixes:
                text = pattern.sub("", text)
            text = self._tidy(text)
            if text == before:
                break
        return text

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _split_on_separator(self, text: str) -> tuple[str, str] | None:
        # Only separators outside brackets count: "Song (A - B Remix)" has none
        for match in _SEPARATOR.finditer(text):
            before = text[: match.start()]
            depth = before.count("(") + before.count("[") - before.count(")") - before.count("]")
            if depth > 0:
                continue
            left = self._tidy(before)
            right = self._tidy(text[match.end() :])
            if left and right:
                return left, right
        return None

    def _side_confidence(self, side: str, hint: str | None) -> float:
        """How much a separator side looks like the hinted artist."""
        if not hint:
            return 0.3
        side, _ = self._extract_featured(side)
        score = similarity(side, hint)
        if score > 0.8:
            return 1.0
        if score > 0.5:
            return 0.7
        if score > 0.3:
            return 0.4
        if best_similarity(side, hint) > 0.4:
            return 0.6
        return 0.2

    def _left_is_artist(self, left: str, right: str, hint: str | None) -> bool:
        # Ties go left: "Artist - Title" is by far the common layout
        conf_left = self._side_confidence(left, hint)
        conf_right = self._side_confidence(right, hint)
        return conf_left >= conf_right or conf_left > self.separator_confidence

    def _extract_featured(self, text: str) -> tuple[str, list[str]]:
        featured: list[str] = []
        for pattern in self._featured:
            for match in pattern.finditer(text):
                for name in split_artists(match.group(1)):
                    if name not in featured:
                        featured.append(name)
            text = pattern.sub("", text)
        return self._tidy(text), featured

    def _extract_version(self, title: str) -> tuple[str, VersionTag | None]:
        for pattern in (_TRAILING_BRACKET, _TRAILING_DASH_SEGMENT):
            match = pattern.search(title)
            if match is None:
                continue
            version = detect_version(match.group(1))
            if version is not None:
                return self._tidy(title[: match.start()]), version
        return title, None

    @staticmethod
    def _tidy(text: str) -> str:
        text = _EMPTY_BRACKETS.sub("", text)
        return _EDGE_JUNK.sub("", _squash(text))


_default_normalizer = TitleNormalizer()


def parse_title(raw_title: str | None, raw_artist_hint: str | None = None) -> ParsedTitle:
    """Parse with the default TitleNormalizer."""
    return _default_normalizer.parse(raw_title, raw_artist_hint)


__all__ = [
    "ALWAYS_UPPERCASE",
    "BRACKET_DECORATIONS",
    "MINOR_WORDS",
    "PREFIX_DECORATIONS",
    "SUFFIX_DECORATIONS",
    "UNKNOWN_ARTIST",
    "UNKNOWN_TITLE",
    "ParsedTitle",
    "TitleNormalizer",
    "VersionTag",
    "build_search_query",
    "detect_version",
    "extract_year",
    "music_confidence",
    "parse_title",
    "split_artists",
    "to_title_case",
]
