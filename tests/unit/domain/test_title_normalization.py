"""Tests for title parsing and normalization.

Hey future me - the idempotence property is the important one here: a title
we already cleaned must come back unchanged when the file is re-scanned.
"""

import pytest

from tunecatalog.domain.value_objects.title_normalization import (
    UNKNOWN_ARTIST,
    UNKNOWN_TITLE,
    ParsedTitle,
    TitleNormalizer,
    VersionTag,
    build_search_query,
    detect_version,
    extract_year,
    music_confidence,
    parse_title,
    split_artists,
    to_title_case,
)


@pytest.fixture
def normalizer() -> TitleNormalizer:
    return TitleNormalizer()


class TestParse:
    """Artist/title extraction."""

    def test_artist_dash_title_with_video_decoration(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Queen - Bohemian Rhapsody (Official Video)")
        assert parsed.artist == "Queen"
        assert parsed.title == "Bohemian Rhapsody"

    def test_lowercase_input_is_title_cased(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("queen - bohemian rhapsody [HD]")
        assert (parsed.artist, parsed.title) == ("Queen", "Bohemian Rhapsody")

    def test_hint_decides_which_side_is_the_artist(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Bohemian Rhapsody - Queen", "Queen")
        assert parsed.artist == "Queen"
        assert parsed.title == "Bohemian Rhapsody"

    def test_tie_goes_to_the_left_side(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Foo - Bar")
        assert (parsed.artist, parsed.title) == ("Foo", "Bar")

    def test_no_separator_uses_cleaned_hint(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Bohemian Rhapsody", "QueenVEVO")
        assert parsed.artist == "Queen"
        assert parsed.title == "Bohemian Rhapsody"

    def test_no_separator_no_hint_gives_unknown_artist(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("bohemian rhapsody")
        assert parsed.artist == UNKNOWN_ARTIST
        assert parsed.title == "Bohemian Rhapsody"

    @pytest.mark.parametrize("raw", [None, "", "   ", "(Official Video)"])
    def test_empty_input_never_gives_empty_fields(
        self, normalizer: TitleNormalizer, raw: str | None
    ) -> None:
        parsed = normalizer.parse(raw)
        assert parsed.artist == UNKNOWN_ARTIST
        assert parsed.title == UNKNOWN_TITLE

    def test_placeholder_hint_is_ignored(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Some Song", "<unknown>")
        assert parsed.artist == UNKNOWN_ARTIST

    def test_featured_artists_are_extracted(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Drake - Jimmy Cooks (feat. 21 Savage)")
        assert parsed.artist == "Drake"
        assert parsed.title == "Jimmy Cooks"
        assert parsed.featured_artists == ("21 Savage",)

    def test_version_marker_is_extracted(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Oasis - Wonderwall (Live)")
        assert parsed.title == "Wonderwall"
        assert parsed.version_tag is VersionTag.LIVE
        assert parsed.format() == "Oasis - Wonderwall (Live)"

    def test_bracketed_year_is_extracted(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Queen - Bohemian Rhapsody (1975)")
        assert parsed.title == "Bohemian Rhapsody"
        assert parsed.year == 1975

    def test_remaster_suffix_is_removed(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Queen - Bohemian Rhapsody - Remastered 2011")
        assert (parsed.artist, parsed.title) == ("Queen", "Bohemian Rhapsody")

    def test_spaced_pipe_is_a_separator(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Daft Punk | Get Lucky")
        assert (parsed.artist, parsed.title) == ("Daft Punk", "Get Lucky")

    def test_underscored_filename(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("01. Queen_-_Bohemian_Rhapsody")
        assert (parsed.artist, parsed.title) == ("Queen", "Bohemian Rhapsody")

    def test_separator_inside_brackets_does_not_split(self, normalizer: TitleNormalizer) -> None:
        parsed = normalizer.parse("Song (A - B)", "Band")
        assert parsed.artist == "Band"

    @pytest.mark.parametrize(
        ("raw", "hint"),
        [
            ("Queen - Bohemian Rhapsody (Official Video)", None),
            ("Oasis - Wonderwall (Live)", None),
            ("Drake - Jimmy Cooks (feat. 21 Savage)", None),
            ("Bohemian Rhapsody - Queen", "Queen"),
            ("bohemian rhapsody", None),
            ("", None),
            ("the sound of silence", "Simon & Garfunkel"),
            ("Song (Live) (1999)", None),
            ("Artist - Song (Remix) [HD] (2001)", None),
        ],
    )
    def test_parse_is_idempotent(
        self, normalizer: TitleNormalizer, raw: str, hint: str | None
    ) -> None:
        first = normalizer.parse(raw, hint)
        second = normalizer.parse(first.format(), hint)
        assert (second.artist, second.title) == (first.artist, first.title)

    def test_module_level_parse_title(self) -> None:
        assert parse_title("Queen - Bohemian Rhapsody") == ParsedTitle(
            artist="Queen", title="Bohemian Rhapsody"
        )


class TestHelpers:
    """Small pure helpers."""

    def test_detect_version_priority(self) -> None:
        assert detect_version("Live Acoustic Session") is VersionTag.ACOUSTIC
        assert detect_version("Radio Edit") is VersionTag.RADIO_EDIT
        assert detect_version("Part 2") is None

    def test_version_display(self) -> None:
        assert VersionTag.SLOWED_REVERB.display == "Slowed Reverb"

    def test_extract_year_only_from_brackets(self) -> None:
        assert extract_year("Song [1999]") == 1999
        assert extract_year("Song 1999") is None
        assert extract_year("Song (1850)") is None

    def test_split_artists(self) -> None:
        assert split_artists("Drake & 21 Savage, Future") == ["Drake", "21 Savage", "Future"]

    def test_title_case_keeps_acronyms_and_domains(self) -> None:
        assert to_title_case("the sound of silence") == "The Sound of Silence"
        assert to_title_case("live at BBC in london.com style") == "Live at BBC in london.com Style"
        assert to_title_case("dj set") == "DJ Set"

    def test_build_search_query(self) -> None:
        assert build_search_query("Beyoncé", "Jay-Z") == "beyonce jay z"
        assert build_search_query("Halo") == "halo"

    def test_music_confidence(self) -> None:
        assert music_confidence("Bohemian Rhapsody (Official Audio)") == pytest.approx(0.75)
        assert music_confidence("Podcast Episode 12") == 0.0
        assert 0.0 <= music_confidence("", None) <= 1.0
