"""Device sensor interfaces (ports).

The device collaborators normalise their readings before handing them over:
heading is degrees clockwise from north in [0, 360), position is WGS84.
Orientation is a scoped acquisition: ``start`` when a game needs headings,
``stop`` when it leaves play.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from geocompass.core.models import Coordinate


class PermissionState(str, Enum):
    PROMPT = "prompt"
    GRANTED = "granted"
    DENIED = "denied"
    NOT_SUPPORTED = "not_supported"


class OrientationSensor(Protocol):
    """Port: compass heading source."""

    def permission_state(self) -> PermissionState: ...

    async def request_permission(self) -> PermissionState: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def heading(self) -> float: ...


class PositionProvider(Protocol):
    """Port: one-shot position fix. Raises Unavailable when there is none."""

    async def get_position(self) -> Coordinate: ...
