"""Session API endpoints.

This is the thin FastAPI adapter. It reads the caller identity and request
body, calls the session manager or coordinator, and returns the session
document. Core errors are turned into responses by the app's handler.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from geocompass.api.deps import get_caller
from geocompass.api.schemas import AdvanceRequest, ChooseModeRequest, GuessRequest
from geocompass.core.catalog import parse_mode
from geocompass.core.models import Identity

router = APIRouter(prefix="/api/v1")


@router.post("/sessions", status_code=201)
async def create_session(caller: Identity = Depends(get_caller)) -> dict:
    from geocompass.main import get_sessions

    session = await get_sessions().create_session(caller)
    return session.to_dict()


@router.get("/sessions/{code}")
async def get_session(code: str) -> dict:
    from geocompass.main import get_sessions

    session = await get_sessions().get_session(code)
    return session.to_dict()


@router.post("/sessions/{code}/join")
async def join_session(code: str, caller: Identity = Depends(get_caller)) -> dict:
    from geocompass.main import get_sessions

    session = await get_sessions().join_session(caller, code)
    return session.to_dict()


@router.post("/sessions/{code}/leave", status_code=204)
async def leave_session(code: str, caller: Identity = Depends(get_caller)) -> Response:
    """Leave a session. Always 204: clients call this on their way out."""
    from geocompass.main import get_sessions

    await get_sessions().leave_session(caller, code)
    return Response(status_code=204)


@router.post("/sessions/{code}/start")
async def start_session(code: str, caller: Identity = Depends(get_caller)) -> dict:
    from geocompass.main import get_sessions

    session = await get_sessions().start_session(caller, code)
    return session.to_dict()


@router.post("/sessions/{code}/mode")
async def choose_mode(
    code: str, body: ChooseModeRequest, caller: Identity = Depends(get_caller),
) -> dict:
    """Host picks the mode; the target set is fixed for the rest of the session."""
    from geocompass.main import get_coordinator

    options = body.near_me.to_model() if body.near_me else None
    mode = parse_mode(body.mode_id, options)
    center = body.center.to_model() if body.center else None

    authority = await get_coordinator().authority(caller, code)
    session = await authority.choose_mode(mode, center=center, rounds=body.rounds)
    return session.to_dict()


@router.post("/sessions/{code}/advance")
async def advance_round(
    code: str, body: AdvanceRequest | None = None, caller: Identity = Depends(get_caller),
) -> dict:
    from geocompass.main import get_coordinator

    from_round = body.from_round if body else None
    authority = await get_coordinator().authority(caller, code)
    session = await authority.advance_round(from_round=from_round)
    return session.to_dict()


@router.post("/sessions/{code}/end", status_code=204)
async def end_session(code: str, caller: Identity = Depends(get_caller)) -> Response:
    from geocompass.main import get_coordinator

    authority = await get_coordinator().authority(caller, code)
    await authority.end_session()
    return Response(status_code=204)


@router.post("/sessions/{code}/guesses")
async def submit_guess(
    code: str, body: GuessRequest, caller: Identity = Depends(get_caller),
) -> dict:
    """Record the caller's guess, scored against the caller's own position."""
    from geocompass.main import get_coordinator

    position = body.position.to_model() if body.position else None
    session, result = await get_coordinator().submit_guess(
        caller, code, body.round, body.angle, position,
    )
    player = session.members[caller.uid]
    return {"result": result.to_dict(), "score": player.score, "round": body.round}


@router.get("/sessions/{code}/view")
async def member_view(code: str, caller: Identity = Depends(get_caller)) -> dict:
    """The caller's phase and target, derived from the session."""
    from geocompass.main import get_coordinator

    view = await get_coordinator().view(caller, code)
    return view.to_dict()
