"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from tunecatalog.config import ProcessingMode, Settings


class TestEnvironment:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.enrichment.batch_size == 50
        assert settings.enrichment.max_attempts == 3
        assert settings.genius.min_interval_seconds == 2.5
        assert settings.matching.min_title_similarity == 0.4
        assert settings.storage.cover_size == 500

    def test_nested_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TUNECATALOG_GENIUS__ACCESS_TOKEN", "abc")
        monkeypatch.setenv("TUNECATALOG_MATCHING__MIN_TITLE_SIMILARITY", "0.55")
        monkeypatch.setenv("TUNECATALOG_OBSERVABILITY__LOG_LEVEL", "debug")

        settings = Settings(_env_file=None)

        assert settings.genius.access_token == "abc"
        assert settings.matching.min_title_similarity == 0.55
        assert settings.observability.log_level == "DEBUG"

    def test_out_of_range_threshold_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TUNECATALOG_MATCHING__MIN_TITLE_SIMILARITY", "1.5")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestProcessingModes:
    def test_balanced_changes_nothing(self) -> None:
        settings = Settings(_env_file=None)
        applied = settings.apply_mode(ProcessingMode.BALANCED)
        assert applied.enrichment == settings.enrichment
        assert applied.matching == settings.matching

    def test_fast_local_only_disables_enrichment(self) -> None:
        applied = Settings(_env_file=None).apply_mode(ProcessingMode.FAST_LOCAL_ONLY)
        assert applied.enrichment.enabled is False
        assert applied.enrichment.auto_after_scan is False
        assert applied.processing_mode is ProcessingMode.FAST_LOCAL_ONLY

    def test_conservative_raises_thresholds(self) -> None:
        applied = Settings(_env_file=None).apply_mode(ProcessingMode.CONSERVATIVE)
        assert applied.matching.min_title_similarity == 0.7
        assert applied.matching.min_artist_similarity == 0.6

    def test_full_enrichment_bigger_batches(self) -> None:
        applied = Settings(_env_file=None).apply_mode(ProcessingMode.FULL_ENRICHMENT)
        assert applied.enrichment.batch_size == 100
        assert applied.enrichment.fetch_lyrics and applied.enrichment.download_covers

    def test_apply_mode_does_not_mutate_original(self) -> None:
        settings = Settings(_env_file=None)
        settings.apply_mode(ProcessingMode.FAST_LOCAL_ONLY)
        assert settings.enrichment.enabled is True
