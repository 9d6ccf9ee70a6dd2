"""Health check and monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from geocompass.main import VERSION, get_stats, get_store
    from geocompass.core.lobby import COLLECTION as SESSIONS

    snapshot = get_stats().snapshot()
    return {
        "status": "ok",
        "version": VERSION,
        "uptime_seconds": snapshot["uptime_seconds"],
        "open_sessions": get_store().count(SESSIONS),
    }


@router.get("/stats")
async def stats() -> dict:
    """Detailed server statistics.

    The ``active_players`` section shows:
    - ``total``: players seen in the last N seconds (configurable window)
    - ``in_session``: of those, players whose last action was in a session
    - ``sessions``: distinct sessions those players touched
    - ``window_seconds``: the time window used for "active" calculation
    """
    from geocompass.main import get_stats

    return get_stats().snapshot()


@router.get("/config")
async def get_client_config() -> dict:
    """Server-controlled game parameters the client reads on startup."""
    from geocompass.main import get_config

    config = get_config()
    return {
        "round_timer": config.game.round_timer,
        "max_members": config.game.max_members,
        "min_members_to_start": config.game.min_members_to_start,
        "code_format": "XXX-XXX",
        "near_me_max_radius_km": 50,
    }
