"""Tests for environment-driven settings."""

from collections.abc import Iterator

import pytest

from offsync import APP_SHELL, clear_settings_cache, get_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start every test from defaults and never leak cached settings."""
    for name in (
        "OFFSYNC_CACHE_PREFIX",
        "OFFSYNC_CACHE_VERSION",
        "OFFSYNC_API_PREFIX",
        "OFFSYNC_SHELL_MANIFEST",
        "OFFSYNC_SYNC_URL",
        "OFFSYNC_SYNC_INTERVAL",
        "OFFSYNC_SUBMIT_TIMEOUT",
        "OFFSYNC_DB_NAME",
        "OFFSYNC_DB_VERSION",
        "OFFSYNC_RUNTIME_CACHE_MAX_ITEMS",
        "OFFSYNC_REDIS_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


class TestGetSettings:
    """Tests for get_settings."""

    def test_defaults(self) -> None:
        settings = get_settings()

        assert settings.cache_prefix == "notepad"
        assert settings.cache_version == "v1"
        assert settings.api_prefix == "/api/"
        assert settings.shell_manifest == APP_SHELL
        assert settings.sync_url == "http://localhost:3000/api/notes"
        assert settings.sync_interval == "30s"
        assert settings.submit_timeout == "10s"
        assert settings.db_name == "NotePadDB"
        assert settings.db_version == 1
        assert settings.runtime_cache_max_items is None
        assert settings.redis_url is None

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OFFSYNC_CACHE_VERSION", "v7")
        monkeypatch.setenv("OFFSYNC_SHELL_MANIFEST", "/, /index.html ,,/app.js")
        monkeypatch.setenv("OFFSYNC_SYNC_INTERVAL", "5m")
        monkeypatch.setenv("OFFSYNC_DB_VERSION", "3")
        monkeypatch.setenv("OFFSYNC_RUNTIME_CACHE_MAX_ITEMS", "100")
        monkeypatch.setenv("OFFSYNC_REDIS_URL", "redis://localhost:6379/0")

        settings = get_settings()

        assert settings.cache_version == "v7"
        assert settings.shell_manifest == ("/", "/index.html", "/app.js")
        assert settings.sync_interval == "5m"
        assert settings.db_version == 3
        assert settings.runtime_cache_max_items == 100
        assert settings.redis_url == "redis://localhost:6379/0"

    def test_invalid_values_fall_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OFFSYNC_SYNC_INTERVAL", "soon")
        monkeypatch.setenv("OFFSYNC_DB_VERSION", "two")
        monkeypatch.setenv("OFFSYNC_RUNTIME_CACHE_MAX_ITEMS", "lots")

        settings = get_settings()

        assert settings.sync_interval == "30s"
        assert settings.db_version == 1
        assert settings.runtime_cache_max_items is None

    def test_settings_are_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_settings()
        monkeypatch.setenv("OFFSYNC_CACHE_VERSION", "v9")

        assert get_settings() is first
        clear_settings_cache()
        assert get_settings().cache_version == "v9"
