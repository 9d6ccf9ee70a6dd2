"""Live session feed over WebSocket.

Every committed change to the session document is pushed to the socket as
``{"type": "session", "session": {...}}``. When the session is deleted the
client gets ``{"type": "session_deleted"}`` and the socket is closed.

Clients may send ``{"type": "ping"}`` or ``{"type": "leave"}``; a dropped
connection does not remove the member.
"""

from __future__ import annotations

import asyncio
import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from geocompass.core.errors import GameError
from geocompass.core.models import Identity

router = APIRouter(prefix="/api/v1")

log = structlog.get_logger()


async def _pump(websocket: WebSocket, subscription, code: str) -> None:
    async for snapshot in subscription:
        if not snapshot.exists:
            await websocket.send_json({"type": "session_deleted", "code": code})
            await websocket.close()
            return
        await websocket.send_json({"type": "session", "session": snapshot.data})


@router.websocket("/sessions/{code}/ws")
async def session_ws(websocket: WebSocket, code: str, player_id: str | None = None):
    from geocompass.main import get_sessions

    sessions = get_sessions()
    try:
        session = await sessions.get_session(code)
    except GameError as exc:
        await websocket.accept()
        await websocket.send_json({"type": "error", **exc.to_dict()})
        await websocket.close()
        return

    await websocket.accept()
    subscription = sessions.subscribe(session.code)
    pump = asyncio.create_task(_pump(websocket, subscription, session.code))
    log.info("live_connected", code=session.code, player=player_id)
    try:
        while not pump.done():
            raw = await websocket.receive_text()
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if not isinstance(payload, dict):
                continue
            message_type = payload.get("type")
            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
            elif message_type == "leave" and player_id:
                await sessions.leave_session(Identity(uid=player_id), session.code)
    except (WebSocketDisconnect, RuntimeError):
        # RuntimeError: the pump already closed the socket.
        pass
    finally:
        subscription.close()
        pump.cancel()
        try:
            await pump
        except (asyncio.CancelledError, RuntimeError, WebSocketDisconnect):
            pass
        log.info("live_disconnected", code=session.code, player=player_id)
