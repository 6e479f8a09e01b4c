"""Tests for settings loading and cache root resolution."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from gandalf.config import CacheSettings, Settings, get_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run every test from an empty directory with no GANDALF_ overrides."""
    monkeypatch.chdir(tmp_path)
    for var in (
        "GANDALF_CACHE_DIR",
        "GANDALF_MAX_MEMORY_ENTRIES",
        "GANDALF_SWEEP_INTERVAL_SECONDS",
        "GANDALF_LOADER_TIMEOUT_SECONDS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestCacheRoot:

    def test_explicit_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GANDALF_CACHE_DIR", str(tmp_path / "custom"))

        assert Settings().resolve_cache_root() == tmp_path / "custom"

    def test_home_directory(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.setenv("USERPROFILE", str(tmp_path / "profile"))

        assert Settings().resolve_cache_root() == tmp_path / "home" / ".gandalf-cache"

    def test_userprofile_when_home_missing(self, monkeypatch, tmp_path):
        monkeypatch.delenv("HOME", raising=False)
        monkeypatch.setenv("USERPROFILE", str(tmp_path / "profile"))

        assert Settings().resolve_cache_root() == tmp_path / "profile" / ".gandalf-cache"

    def test_working_directory_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("HOME", raising=False)
        monkeypatch.delenv("USERPROFILE", raising=False)

        assert Settings().resolve_cache_root() == Path.cwd() / "cache"

    def test_resolution_creates_nothing(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GANDALF_CACHE_DIR", str(tmp_path / "lazy"))

        Settings().resolve_cache_root()

        assert not (tmp_path / "lazy").exists()


class TestValidation:

    def test_defaults(self):
        settings = Settings()

        assert settings.cache.max_memory_entries == 1000
        assert settings.cache.sweep_interval_seconds == 300
        assert settings.cache.state_ttl_seconds == 3600
        assert settings.cache.loader_timeout_seconds is None
        assert settings.cache.single_flight is True
        assert settings.sleeper.base_url == "https://api.sleeper.app/v1"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("GANDALF_MAX_MEMORY_ENTRIES", "50")
        monkeypatch.setenv("GANDALF_LOADER_TIMEOUT_SECONDS", "2.5")

        settings = Settings()

        assert settings.cache.max_memory_entries == 50
        assert settings.cache.loader_timeout_seconds == 2.5

    @pytest.mark.parametrize(
        "field", ["max_memory_entries", "sweep_interval_seconds", "state_ttl_seconds"]
    )
    def test_non_positive_rejected(self, field):
        with pytest.raises(ValidationError):
            CacheSettings(**{field: 0})

    def test_loader_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            CacheSettings(loader_timeout_seconds=-1)

    def test_log_level_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            Settings(log_level="loud")

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
