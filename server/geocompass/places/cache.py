"""Geo-spatial cache for place search results.

Entries live in the ``location_cache`` collection as
``{center, radius_m, categories, locations, created_at}``. A cached circle
answers a query when it fully covers the query circle:

    haversine(cached.center, query.center) + query.radius <= cached.radius

and it was fetched for (at least) the requested categories.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from geocompass.core.bearing import haversine_m
from geocompass.core.models import Coordinate, Location

if TYPE_CHECKING:
    from geocompass.core.stats import ServerStats
    from geocompass.places.base import PlaceSearch
    from geocompass.store.base import DocumentStore

log = structlog.get_logger()

COLLECTION = "location_cache"


class GeoCache:
    """Circle-containment cache over the document store."""

    def __init__(self, store: DocumentStore, ttl_seconds: float = 0.0) -> None:
        self._store = store
        self._ttl = ttl_seconds

    def _expired(self, entry: dict, now: float) -> bool:
        return self._ttl > 0 and now - entry.get("created_at", 0) > self._ttl

    async def lookup(
        self, center: Coordinate, radius_m: float, categories: tuple[str, ...],
    ) -> list[Location] | None:
        now = time.time()
        for snap in await self._store.list(COLLECTION):
            entry = snap.data
            if self._expired(entry, now):
                await self._store.delete(COLLECTION, snap.key)
                log.debug("place_cache_expired", key=snap.key)
                continue
            if not set(categories) <= set(entry.get("categories", [])):
                continue
            cached_center = Coordinate.from_dict(entry["center"])
            if haversine_m(cached_center, center) + radius_m > entry["radius_m"]:
                continue

            locations = [Location.from_dict(raw) for raw in entry["locations"]]
            log.debug("place_cache_hit", key=snap.key, cached=len(locations))
            return [loc for loc in locations if haversine_m(center, loc.coordinates) <= radius_m]
        return None

    async def put(
        self,
        center: Coordinate,
        radius_m: float,
        categories: tuple[str, ...],
        locations: list[Location],
    ) -> str:
        key = uuid4().hex
        await self._store.create(COLLECTION, key, {
            "center": center.to_dict(),
            "radius_m": radius_m,
            "categories": list(categories),
            "locations": [loc.to_dict() for loc in locations],
            "created_at": time.time(),
        })
        return key


class CachedPlaceSearch:
    """PlaceSearch that answers from GeoCache when it can."""

    def __init__(self, inner: PlaceSearch, cache: GeoCache, stats: ServerStats | None = None) -> None:
        self._inner = inner
        self._cache = cache
        self._stats = stats

    async def search(
        self, center: Coordinate, radius_m: float, categories: tuple[str, ...],
    ) -> list[Location]:
        cached = await self._cache.lookup(center, radius_m, categories)
        if self._stats is not None:
            self._stats.record_place_search(cache_hit=cached is not None)
        if cached is not None:
            return cached
        locations = await self._inner.search(center, radius_m, categories)
        await self._cache.put(center, radius_m, categories, locations)
        return locations

    async def resolve(self, query: str) -> list[Location]:
        return await self._inner.resolve(query)

    async def predict(self, query: str) -> list[dict]:
        return await self._inner.predict(query)

    async def aclose(self) -> None:
        close = getattr(self._inner, "aclose", None)
        if close is not None:
            await close()
