"""Tests for the HTTP place search client and the geo cache."""

from __future__ import annotations

import httpx
import pytest

from conftest import NEARBY, PARIS, FakePlaceSearch
from geocompass.core.errors import Invalid, Unavailable
from geocompass.core.models import Coordinate
from geocompass.places.cache import COLLECTION, CachedPlaceSearch, GeoCache
from geocompass.places.http_places import HttpPlaceSearch

BASE = "https://places.test/api"


def _result(name, lat, lng):
    return {"name": name, "geometry": {"location": {"lat": lat, "lng": lng}}}


def _client(handler) -> HttpPlaceSearch:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpPlaceSearch(BASE, "secret", max_pages=3, page_delay_seconds=0, client=http)


@pytest.mark.asyncio
async def test_nearby_search_follows_pages_up_to_limit():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        page = len(requests)
        return httpx.Response(200, json={
            "status": "OK",
            "results": [_result(f"Place {page}", 48.85, 2.35)],
            "next_page_token": f"token-{page}",
        })

    places = _client(handler)
    found = await places.search(PARIS, 2500, ("museum",))
    await places.aclose()

    assert [loc.name for loc in found] == ["Place 1", "Place 2", "Place 3"]
    assert len(requests) == 3
    first = requests[0].url.params
    assert first["location"] == "48.8566,2.3522"
    assert first["radius"] == "2500"
    assert first["type"] == "museum"
    assert first["key"] == "secret"
    assert requests[1].url.params["pagetoken"] == "token-1"
    assert "location" not in requests[1].url.params


@pytest.mark.asyncio
async def test_nearby_search_dedupes_across_categories():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "status": "OK",
            "results": [
                _result("Louvre", 48.86, 2.33),
                {"name": "No geometry"},
            ],
        })

    places = _client(handler)
    found = await places.search(PARIS, 1000, ("museum", "tourist_attraction"))
    assert [loc.name for loc in found] == ["Louvre"]


@pytest.mark.asyncio
async def test_zero_results_is_empty():
    places = _client(lambda request: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []}))
    assert await places.search(PARIS, 1000, ("museum",)) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(500, text="boom"),
    httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "bad key"}),
    httpx.Response(200, text="not json"),
])
async def test_upstream_failures_are_unavailable(response):
    places = _client(lambda request: response)
    with pytest.raises(Unavailable):
        await places.search(PARIS, 1000, ("museum",))


@pytest.mark.asyncio
async def test_resolve_text_query():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "status": "OK",
            "results": [{"formatted_address": "1 Main St", "geometry": {"location": {"lat": 1, "lng": 2}}}],
        })

    places = _client(handler)
    found = await places.resolve(" 1 main st ")
    assert found[0].name == "1 Main St"
    assert found[0].coordinates == Coordinate(1.0, 2.0)
    assert seen[0].url.path.endswith("/textsearch/json")
    assert seen[0].url.params["query"] == "1 main st"

    with pytest.raises(Invalid):
        await places.resolve("  ")


@pytest.mark.asyncio
async def test_predict_autocomplete():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "status": "OK",
            "predictions": [
                {"description": "Louvre Museum, Paris, France", "place_id": "abc", "types": ["museum"]},
                {"description": "no id"},
            ],
        })

    places = _client(handler)
    found = await places.predict(" louvre ")
    assert found == [{"description": "Louvre Museum, Paris, France", "place_id": "abc"}]
    assert seen[0].url.path.endswith("/autocomplete/json")
    assert seen[0].url.params["input"] == "louvre"
    assert seen[0].url.params["key"] == "secret"

    assert await places.predict("  ") == []
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_predict_zero_results_and_errors():
    places = _client(lambda request: httpx.Response(200, json={"status": "ZERO_RESULTS", "predictions": []}))
    assert await places.predict("zzz") == []

    places = _client(lambda request: httpx.Response(200, json={"status": "REQUEST_DENIED"}))
    with pytest.raises(Unavailable):
        await places.predict("louvre")


# --- GeoCache ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_cache_hit_requires_containment(store):
    cache = GeoCache(store)
    await cache.put(PARIS, 5000, ("tourist_attraction",), NEARBY)

    # Inside and smaller: hit, filtered to the query circle.
    hit = await cache.lookup(PARIS, 1500, ("tourist_attraction",))
    assert hit is not None
    assert "Sacre-Coeur" not in [loc.name for loc in hit]
    assert "Notre-Dame" in [loc.name for loc in hit]

    # Same center but larger radius: miss.
    assert await cache.lookup(PARIS, 6000, ("tourist_attraction",)) is None
    # Far away: miss.
    assert await cache.lookup(Coordinate(45.76, 4.83), 1000, ("tourist_attraction",)) is None
    # Different categories: miss.
    assert await cache.lookup(PARIS, 1000, ("museum",)) is None


@pytest.mark.asyncio
async def test_cache_entries_expire(store, monkeypatch):
    cache = GeoCache(store, ttl_seconds=60)
    await cache.put(PARIS, 5000, ("museum",), NEARBY)

    import geocompass.places.cache as cache_module
    real_time = cache_module.time.time
    monkeypatch.setattr(cache_module.time, "time", lambda: real_time() + 120)

    assert await cache.lookup(PARIS, 1000, ("museum",)) is None
    assert store.count(COLLECTION) == 0


@pytest.mark.asyncio
async def test_cached_search_calls_upstream_once(store, stats):
    inner = FakePlaceSearch()
    places = CachedPlaceSearch(inner, GeoCache(store), stats=stats)

    first = await places.search(PARIS, 5000, ("tourist_attraction",))
    second = await places.search(PARIS, 5000, ("tourist_attraction",))
    assert [loc.name for loc in first] == [loc.name for loc in second]
    assert len(inner.searches) == 1
    assert stats.place_searches == 2
    assert stats.place_cache_hits == 1

    await places.aclose()
    assert inner.closed
