"""HTTP place search client.

Talks to a Places-style web service: a nearby search that pages through
results with ``next_page_token``, a text search for explorer lookups and
address autocomplete.
Only the fields the game needs (name and point) are read from responses.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog

from geocompass.core.errors import Invalid, Unavailable
from geocompass.core.models import Coordinate, Location

log = structlog.get_logger()

# Statuses that mean "request worked" (possibly with nothing found).
_OK_STATUSES = {"OK", "ZERO_RESULTS"}


def _parse_results(body: dict) -> list[Location]:
    locations = []
    for item in body.get("results", []):
        point = item.get("geometry", {}).get("location", {})
        name = item.get("name") or item.get("formatted_address")
        if not name or "lat" not in point or "lng" not in point:
            continue
        locations.append(Location(
            name=name,
            coordinates=Coordinate(latitude=float(point["lat"]), longitude=float(point["lng"])),
        ))
    return locations


class HttpPlaceSearch:
    """PlaceSearch backed by httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        *,
        max_pages: int = 3,
        timeout_seconds: float = 10.0,
        page_delay_seconds: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._max_pages = max(1, max_pages)
        self._page_delay = page_delay_seconds
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict) -> dict:
        if self._api_key:
            params = {**params, "key": self._api_key}
        try:
            resp = await self._client.get(f"{self._base_url}/{path}", params=params)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as exc:
            log.warning("place_search_failed", path=path, error=str(exc))
            raise Unavailable(f"Place search failed: {exc}") from exc
        except ValueError as exc:
            raise Unavailable("Place search returned invalid JSON.") from exc

        status = body.get("status", "OK")
        if status not in _OK_STATUSES:
            log.warning("place_search_rejected", path=path, status=status,
                        message=body.get("error_message"))
            raise Unavailable(f"Place search returned {status}.")
        return body

    async def search(
        self, center: Coordinate, radius_m: float, categories: tuple[str, ...],
    ) -> list[Location]:
        """Nearby search, one query per category, at most ``max_pages`` pages each."""
        seen: set[str] = set()
        results: list[Location] = []
        for category in categories or ("",):
            params = {
                "location": f"{center.latitude},{center.longitude}",
                "radius": int(radius_m),
            }
            if category:
                params["type"] = category

            page_token = None
            for page in range(self._max_pages):
                if page_token:
                    # Page tokens become valid only after a short delay.
                    if self._page_delay:
                        await asyncio.sleep(self._page_delay)
                    body = await self._get("nearbysearch/json", {"pagetoken": page_token})
                else:
                    body = await self._get("nearbysearch/json", params)

                for loc in _parse_results(body):
                    if loc.name not in seen:
                        seen.add(loc.name)
                        results.append(loc)

                page_token = body.get("next_page_token")
                if not page_token:
                    break

        log.info("place_search_done", radius_m=int(radius_m),
                 categories=list(categories), results=len(results))
        return results

    async def resolve(self, query: str) -> list[Location]:
        """Free-text lookup of an address or landmark."""
        query = (query or "").strip()
        if not query:
            raise Invalid("Query is required.")
        body = await self._get("textsearch/json", {"query": query})
        return _parse_results(body)

    async def predict(self, query: str) -> list[dict]:
        """Autocomplete suggestions for a partially typed address."""
        query = (query or "").strip()
        if not query:
            return []
        body = await self._get("autocomplete/json", {"input": query})
        return [
            {"description": item["description"], "place_id": item["place_id"]}
            for item in body.get("predictions", [])
            if item.get("description") and item.get("place_id")
        ]
