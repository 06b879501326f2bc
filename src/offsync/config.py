"""Settings loaded via python-decouple with typed helpers."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Final

from decouple import (
    Config as DecoupleConfig,
    RepositoryEmpty,
    RepositoryEnv,
)

from offsync.duration import parse_duration
from offsync.lifecycle import APP_SHELL

_DOTENV_PATH: Final[Path] = Path(".env")


def _build_decouple_config() -> DecoupleConfig:
    # A missing .env (CI, tests) falls back to os.environ only.
    try:
        return DecoupleConfig(RepositoryEnv(str(_DOTENV_PATH)))
    except FileNotFoundError:
        return DecoupleConfig(RepositoryEmpty())


_decouple_config: Final[DecoupleConfig] = _build_decouple_config()


@dataclass(slots=True, frozen=True)
class Settings:
    """Runtime configuration for the cache and sync engine."""

    cache_prefix: str
    cache_version: str
    api_prefix: str
    shell_manifest: tuple[str, ...]
    sync_url: str
    sync_interval: str
    submit_timeout: str
    db_name: str
    db_version: int
    runtime_cache_max_items: int | None
    redis_url: str | None


def _int(value: str, *, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _int_optional(value: str) -> int | None:
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return int(text)
    except (TypeError, ValueError):
        return None


def _duration(value: str, *, default: str) -> str:
    try:
        parse_duration(value)
    except ValueError:
        return default
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings built from the environment and .env."""

    def _csv(name: str, default: str) -> tuple[str, ...]:
        raw = _decouple_config(name, default=default)
        return tuple(part.strip() for part in raw.split(",") if part.strip())

    return Settings(
        cache_prefix=_decouple_config("OFFSYNC_CACHE_PREFIX", default="notepad"),
        cache_version=_decouple_config("OFFSYNC_CACHE_VERSION", default="v1"),
        api_prefix=_decouple_config("OFFSYNC_API_PREFIX", default="/api/"),
        shell_manifest=_csv("OFFSYNC_SHELL_MANIFEST", default=",".join(APP_SHELL)),
        sync_url=_decouple_config(
            "OFFSYNC_SYNC_URL", default="http://localhost:3000/api/notes"
        ),
        sync_interval=_duration(
            _decouple_config("OFFSYNC_SYNC_INTERVAL", default="30s"), default="30s"
        ),
        submit_timeout=_duration(
            _decouple_config("OFFSYNC_SUBMIT_TIMEOUT", default="10s"), default="10s"
        ),
        db_name=_decouple_config("OFFSYNC_DB_NAME", default="NotePadDB"),
        db_version=_int(_decouple_config("OFFSYNC_DB_VERSION", default="1"), default=1),
        runtime_cache_max_items=_int_optional(
            _decouple_config("OFFSYNC_RUNTIME_CACHE_MAX_ITEMS", default="")
        ),
        redis_url=_decouple_config("OFFSYNC_REDIS_URL", default="") or None,
    )


def clear_settings_cache() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
