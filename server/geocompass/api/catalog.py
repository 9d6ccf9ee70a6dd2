"""Game mode catalog and place lookup endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from geocompass.api.deps import get_caller
from geocompass.api.schemas import CoordinateIn, CreateModeRequest, LocationIn
from geocompass.core.errors import Invalid, Unavailable
from geocompass.core.models import Identity

router = APIRouter(prefix="/api/v1")


@router.get("/modes")
async def list_modes(owner: str | None = None) -> dict:
    """Built-in packs and public custom modes, or one author's modes with ``?owner=``."""
    from geocompass.main import get_catalog

    modes = await get_catalog().list_modes(owner_uid=owner)
    return {"modes": [mode.to_dict() for mode in modes]}


@router.get("/modes/{mode_id}/locations")
async def mode_locations(mode_id: str) -> dict:
    from geocompass.main import get_catalog

    locations = await get_catalog().locations_for(mode_id)
    return {"mode_id": mode_id, "locations": [loc.to_dict() for loc in locations]}


@router.post("/modes", status_code=201)
async def create_mode(body: CreateModeRequest, caller: Identity = Depends(get_caller)) -> dict:
    from geocompass.main import get_catalog

    mode = await get_catalog().create_mode(
        caller, body.name, [loc.to_model() for loc in body.locations], public=body.public,
    )
    return mode.to_dict()


@router.post("/modes/{mode_id}/locations")
async def append_location(
    mode_id: str, body: LocationIn, caller: Identity = Depends(get_caller),
) -> dict:
    from geocompass.main import get_catalog

    mode = await get_catalog().append_location(caller, mode_id, body.to_model())
    return mode.to_dict()


@router.put("/modes/{mode_id}/locations/{index}")
async def replace_location(
    mode_id: str, index: int, body: LocationIn, caller: Identity = Depends(get_caller),
) -> dict:
    from geocompass.main import get_catalog

    mode = await get_catalog().replace_location(caller, mode_id, index, body.to_model())
    return mode.to_dict()


@router.delete("/modes/{mode_id}/locations/{index}")
async def remove_location(
    mode_id: str, index: int, caller: Identity = Depends(get_caller),
) -> dict:
    from geocompass.main import get_catalog

    mode = await get_catalog().remove_location(caller, mode_id, index)
    return mode.to_dict()


@router.delete("/modes/{mode_id}", status_code=204)
async def delete_mode(mode_id: str, caller: Identity = Depends(get_caller)) -> Response:
    from geocompass.main import get_catalog

    await get_catalog().delete_mode(caller, mode_id)
    return Response(status_code=204)


@router.get("/places/nearby")
async def nearby_places(
    lat: float = Query(ge=-90, le=90),
    lon: float = Query(ge=-180, le=180),
    radius_km: float = Query(default=5.0, gt=0, le=50),
    categories: list[str] = Query(default=["tourist_attraction"]),
) -> dict:
    """Places around a point, served from the geo cache when it covers the circle."""
    from geocompass.main import get_places

    center = CoordinateIn(latitude=lat, longitude=lon).to_model()
    places = await get_places().search(center, radius_km * 1000, tuple(categories))
    return {"places": [loc.to_dict() for loc in places]}


@router.get("/places/resolve")
async def resolve_place(q: str = "") -> dict:
    """Free-text lookup used when authoring a custom mode."""
    from geocompass.main import get_places

    if not q.strip():
        raise Invalid("Query is required.")
    matches = await get_places().resolve(q.strip())
    if not matches:
        raise Unavailable(f"No place matches {q.strip()!r}.")
    return {"places": [loc.to_dict() for loc in matches]}


@router.get("/places/predictions")
async def place_predictions(q: str = "") -> dict:
    """Address autocomplete while typing a custom location."""
    from geocompass.main import get_places

    return {"predictions": await get_places().predict(q.strip())}
