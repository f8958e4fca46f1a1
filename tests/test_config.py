"""Tests for environment-driven settings."""

import pytest

from services.quality_validator import QualityThresholds
from utils.config import get_settings


@pytest.fixture()
def fresh_settings():
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


class TestSettings:
    def test_reads_environment(self, fresh_settings, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")
        monkeypatch.setenv("LOG_BUFFER_SIZE", "50")
        monkeypatch.setenv("QUALITY_MIN_HANDOFFS", "7")
        monkeypatch.setenv("QUALITY_MAX_MISSING_RATIO", "0.5")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")

        settings = fresh_settings()

        assert settings.openai_model == "gpt-4o-mini"
        assert settings.log_buffer_size == 50
        assert settings.quality_min_handoffs == 7
        assert settings.quality_max_missing_ratio == 0.5
        assert settings.cors_origins == ["https://a.example", "https://b.example"]

    def test_empty_api_key_means_unset(self, fresh_settings, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "")
        assert fresh_settings().openai_api_key is None

    def test_cached(self, fresh_settings):
        assert fresh_settings() is fresh_settings()

    def test_thresholds_built_from_settings(self, fresh_settings, monkeypatch):
        monkeypatch.setenv("QUALITY_MIN_HANDOFFS", "9")
        thresholds = QualityThresholds.from_settings(fresh_settings())

        assert thresholds.min_handoffs == 9
        assert thresholds.max_missing_ratio == QualityThresholds().max_missing_ratio
