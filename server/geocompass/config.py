"""Server configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: GEOCOMPASS_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class GameConfig:
    round_timer: int = 15
    max_members: int = 8
    min_members_to_start: int = 1
    code_attempts: int = 10


@dataclass
class StoreConfig:
    backend: str = "memory"  # "memory" or "file"
    base_dir: str = "data/store"


@dataclass
class PlacesConfig:
    base_url: str = "https://maps.googleapis.com/maps/api/place"
    api_key: str = ""
    max_pages: int = 3
    timeout_seconds: float = 10.0
    page_delay_seconds: float = 2.0
    cache_enabled: bool = True
    cache_ttl_seconds: float = 7 * 24 * 3600


@dataclass
class CatalogConfig:
    admin_uids: list[str] = field(default_factory=list)


@dataclass
class LimitsConfig:
    active_window_seconds: float = 120.0


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"
    file: str = ""


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    game: GameConfig = field(default_factory=GameConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    places: PlacesConfig = field(default_factory=PlacesConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "GEOCOMPASS_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "GEOCOMPASS_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "GEOCOMPASS_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "GEOCOMPASS_GAME_ROUND_TIMER": lambda v: setattr(config.game, "round_timer", int(v)),
        "GEOCOMPASS_GAME_MAX_MEMBERS": lambda v: setattr(config.game, "max_members", int(v)),
        "GEOCOMPASS_GAME_MIN_MEMBERS_TO_START": lambda v: setattr(config.game, "min_members_to_start", int(v)),
        "GEOCOMPASS_GAME_CODE_ATTEMPTS": lambda v: setattr(config.game, "code_attempts", int(v)),
        "GEOCOMPASS_STORE_BACKEND": lambda v: setattr(config.store, "backend", v),
        "GEOCOMPASS_STORE_BASE_DIR": lambda v: setattr(config.store, "base_dir", v),
        "GEOCOMPASS_PLACES_BASE_URL": lambda v: setattr(config.places, "base_url", v),
        "GEOCOMPASS_PLACES_API_KEY": lambda v: setattr(config.places, "api_key", v),
        "GEOCOMPASS_PLACES_MAX_PAGES": lambda v: setattr(config.places, "max_pages", int(v)),
        "GEOCOMPASS_PLACES_TIMEOUT": lambda v: setattr(config.places, "timeout_seconds", float(v)),
        "GEOCOMPASS_PLACES_CACHE_ENABLED": lambda v: setattr(config.places, "cache_enabled", _parse_bool(v)),
        "GEOCOMPASS_PLACES_CACHE_TTL": lambda v: setattr(config.places, "cache_ttl_seconds", float(v)),
        "GEOCOMPASS_CATALOG_ADMIN_UIDS": lambda v: setattr(config.catalog, "admin_uids", _parse_list(v)),
        "GEOCOMPASS_LIMITS_ACTIVE_WINDOW": lambda v: setattr(config.limits, "active_window_seconds", float(v)),
        "GEOCOMPASS_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "GEOCOMPASS_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
        "GEOCOMPASS_LOG_FILE": lambda v: setattr(config.logging, "file", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path(os.environ.get("GEOCOMPASS_CONFIG", "config.yaml"))
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section in fields(config):
            values = raw.get(section.name)
            if not isinstance(values, dict):
                continue
            target = getattr(config, section.name)
            for k, v in values.items():
                if hasattr(target, k):
                    setattr(target, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
