"""Place search interface (port) for the "Near Me" mode and explorer lookups."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from geocompass.core.models import Coordinate, Location


class PlaceSearch(Protocol):
    """Port: finds named places around a point or by free-text query."""

    async def search(
        self, center: Coordinate, radius_m: float, categories: tuple[str, ...],
    ) -> list[Location]: ...

    async def resolve(self, query: str) -> list[Location]: ...

    async def predict(self, query: str) -> list[dict]: ...
