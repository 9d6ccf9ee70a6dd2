"""GeoCompass server: main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, store, places, and API layers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from geocompass.api.catalog import router as catalog_router
from geocompass.api.live import router as live_router
from geocompass.api.monitoring import router as monitoring_router
from geocompass.api.sessions import router as sessions_router
from geocompass.config import AppConfig, load_config
from geocompass.core.catalog import LocationCatalog
from geocompass.core.coordinator import SessionCoordinator
from geocompass.core.errors import GameError
from geocompass.core.lobby import SessionManager
from geocompass.core.stats import ServerStats
from geocompass.places.cache import CachedPlaceSearch, GeoCache
from geocompass.places.http_places import HttpPlaceSearch
from geocompass.store.file_store import FileDocumentStore
from geocompass.store.memory_store import MemoryDocumentStore

log = structlog.get_logger()

VERSION = "0.1.0"

# Module-level singletons (set during startup)
_config: AppConfig | None = None
_stats: ServerStats | None = None
_store: MemoryDocumentStore | None = None
_places: CachedPlaceSearch | HttpPlaceSearch | None = None
_catalog: LocationCatalog | None = None
_sessions: SessionManager | None = None
_coordinator: SessionCoordinator | None = None


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def get_stats() -> ServerStats:
    assert _stats is not None, "Server not initialized"
    return _stats


def get_store() -> MemoryDocumentStore:
    assert _store is not None, "Server not initialized"
    return _store


def get_places() -> CachedPlaceSearch | HttpPlaceSearch:
    assert _places is not None, "Server not initialized"
    return _places


def get_catalog() -> LocationCatalog:
    assert _catalog is not None, "Server not initialized"
    return _catalog


def get_sessions() -> SessionManager:
    assert _sessions is not None, "Server not initialized"
    return _sessions


def get_coordinator() -> SessionCoordinator:
    assert _coordinator is not None, "Server not initialized"
    return _coordinator


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=not config.logging.file))

    logger_factory = None
    if config.logging.file:
        path = Path(config.logging.file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger_factory = structlog.WriteLoggerFactory(file=path.open("a"))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
        logger_factory=logger_factory or structlog.PrintLoggerFactory(),
    )


def build_components(config: AppConfig, places=None) -> None:
    """Create every singleton from ``config``. ``places`` overrides the HTTP client."""
    global _config, _stats, _store, _places, _catalog, _sessions, _coordinator

    _config = config
    _stats = ServerStats(active_window_seconds=config.limits.active_window_seconds)
    if config.store.backend == "file":
        _store = FileDocumentStore(base_dir=config.store.base_dir)
    else:
        _store = MemoryDocumentStore()

    if places is None:
        places = HttpPlaceSearch(
            config.places.base_url,
            config.places.api_key,
            max_pages=config.places.max_pages,
            timeout_seconds=config.places.timeout_seconds,
            page_delay_seconds=config.places.page_delay_seconds,
        )
    if config.places.cache_enabled:
        places = CachedPlaceSearch(
            places, GeoCache(_store, ttl_seconds=config.places.cache_ttl_seconds), stats=_stats,
        )
    _places = places

    _catalog = LocationCatalog(_store, _places, admin_uids=config.catalog.admin_uids)
    _sessions = SessionManager(
        _store,
        _stats,
        max_members=config.game.max_members,
        min_members_to_start=config.game.min_members_to_start,
        code_attempts=config.game.code_attempts,
    )
    _coordinator = SessionCoordinator(_sessions, _catalog, _stats)


def reset_components() -> None:
    global _config, _stats, _store, _places, _catalog, _sessions, _coordinator
    _config = _stats = _store = _places = _catalog = _sessions = _coordinator = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    config = load_config()
    _setup_logging(config)

    log.info("server_starting",
             env=config.server.env,
             store=config.store.backend,
             max_members=config.game.max_members)

    build_components(config)

    log.info("server_started",
             host=config.server.host,
             port=config.server.port)

    yield

    # Shutdown
    if _places is not None:
        await _places.aclose()
    log.info("server_stopped")


app = FastAPI(
    title="GeoCompass",
    description="Compass guessing game: sessions, rounds and location catalog",
    version=VERSION,
    lifespan=lifespan,
)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(sessions_router)
app.include_router(live_router)
app.include_router(catalog_router)
app.include_router(monitoring_router)
