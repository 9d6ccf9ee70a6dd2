"""Request dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Header

from geocompass.core.errors import Invalid
from geocompass.core.models import Identity


def get_caller(
    x_player_id: str | None = Header(default=None),
    x_player_name: str | None = Header(default=None),
    x_player_avatar: str | None = Header(default=None),
) -> Identity:
    """Caller identity as forwarded by the auth layer in front of us."""
    if not x_player_id or not x_player_id.strip():
        raise Invalid("X-Player-Id header is required.")
    return Identity(
        uid=x_player_id.strip(),
        display_name=x_player_name,
        avatar=x_player_avatar,
    )
