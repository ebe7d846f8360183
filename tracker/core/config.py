"""Runtime settings for the tracker service.

Values come from built-in defaults, then an optional YAML file named by
``TRACKER_CONFIG``, then individual environment variables.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from tracker.core.errors import ConfigurationError

STORES = ("memory", "duckdb")

DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


@dataclass(frozen=True)
class Settings:
    store: str = "memory"
    db_path: str = "tracker.duckdb"
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    work_item_limit: int = 50
    recent_completed_limit: int = 2
    feed_limit: int = 200


_ENV_MAP: dict[str, str] = {
    "TRACKER_STORE": "store",
    "TRACKER_DB_PATH": "db_path",
    "TRACKER_LOG_LEVEL": "log_level",
    "API_CORS_ORIGINS": "cors_origins",
    "TRACKER_WORK_ITEM_LIMIT": "work_item_limit",
    "TRACKER_RECENT_COMPLETED_LIMIT": "recent_completed_limit",
    "TRACKER_FEED_LIMIT": "feed_limit",
}

_INT_FIELDS = {"work_item_limit", "recent_completed_limit", "feed_limit"}


def _split_origins(value: Any) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value]
    else:
        items = [origin.strip() for origin in str(value or "").split(",")]
    return tuple(item for item in items if item)


def _coerce(name: str, value: Any) -> Any:
    if name in _INT_FIELDS:
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be an integer", value=value) from None
        if number <= 0:
            raise ConfigurationError(f"{name} must be positive", value=number)
        return number
    if name == "cors_origins":
        return _split_origins(value) or DEFAULT_CORS_ORIGINS
    if name == "store":
        store = str(value).strip().lower()
        if store not in STORES:
            raise ConfigurationError("unknown store backend", store=store, supported=list(STORES))
        return store
    return str(value)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError("config file not found", path=str(path))
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("config file must contain a mapping", path=str(path))
    return data


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    settings = Settings()
    known = {item.name for item in fields(Settings)}

    config_path = env.get("TRACKER_CONFIG")
    if config_path:
        data = _load_yaml(Path(config_path).expanduser())
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError("unknown config keys", keys=unknown)
        settings = replace(settings, **{key: _coerce(key, value) for key, value in data.items()})

    overrides = {name: _coerce(name, env[var]) for var, name in _ENV_MAP.items() if env.get(var)}
    if overrides:
        settings = replace(settings, **overrides)
    return settings
