"""Location catalog. Resolves game modes to ordered location sequences.

Built-in packs are static (see packs.py); an administrator may override one,
in which case the override is stored in ``game_modes`` under the pack id.
User-authored modes live in ``game_modes`` keyed by a generated id and can
only be edited by their owner (or an administrator).

Index-based edits shift later entries; indices are only meaningful within
one request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable
from uuid import uuid4

import structlog

from geocompass.core.documents import DELETE, transact
from geocompass.core.errors import Forbidden, Invalid, NotFound, Unavailable
from geocompass.core.models import (
    NEAR_ME,
    BuiltInMode,
    CustomMode,
    GameMode,
    Identity,
    Location,
    Mode,
    NearMeMode,
    NearMeOptions,
)
from geocompass.core.packs import BUILT_IN_PACKS

if TYPE_CHECKING:
    from geocompass.core.models import Coordinate
    from geocompass.places.base import PlaceSearch
    from geocompass.store.base import DocumentStore

log = structlog.get_logger()

COLLECTION = "game_modes"
MAX_NAME_LENGTH = 64


def _clean_name(raw: str | None, what: str) -> str:
    cleaned = (raw or "").strip()
    if not cleaned:
        raise Invalid(f"{what} name is required.")
    return cleaned[:MAX_NAME_LENGTH].rstrip()


def parse_mode(mode_id: str | None, options: NearMeOptions | None = None) -> Mode:
    """Turn a wire mode identifier into the Mode variant."""
    if not mode_id or not mode_id.strip():
        raise Invalid("Mode id is required.")
    mode_id = mode_id.strip()
    if mode_id.upper() == NEAR_ME:
        return NearMeMode(options=options or NearMeOptions())
    if mode_id.upper() in BUILT_IN_PACKS:
        return BuiltInMode(id=mode_id.upper())
    return CustomMode(id=mode_id)


class LocationCatalog:
    """Game modes backed by static packs plus the ``game_modes`` collection."""

    def __init__(
        self,
        store: DocumentStore,
        places: PlaceSearch | None = None,
        *,
        admin_uids: Iterable[str] = (),
    ) -> None:
        self._store = store
        self._places = places
        self._admins = set(admin_uids)

    def is_admin(self, caller: Identity) -> bool:
        return caller.uid in self._admins

    async def list_modes(self, owner_uid: str | None = None) -> list[GameMode]:
        """All built-in and public modes, or only the modes ``owner_uid`` owns."""
        stored = [GameMode.from_dict(snap.data) for snap in await self._store.list(COLLECTION)]
        if owner_uid is not None:
            owned = [mode for mode in stored if mode.owner_uid == owner_uid]
            return sorted(owned, key=lambda m: m.name.lower())

        overrides = {mode.id: mode for mode in stored if mode.built_in}
        built_ins = [overrides.get(pack_id, pack) for pack_id, pack in BUILT_IN_PACKS.items()]
        public = sorted(
            (mode for mode in stored if not mode.built_in and mode.public),
            key=lambda m: m.name.lower(),
        )
        return built_ins + public

    async def get_mode(self, mode_id: str) -> GameMode:
        snap = await self._store.get(COLLECTION, mode_id)
        if snap.exists:
            return GameMode.from_dict(snap.data)
        if mode_id in BUILT_IN_PACKS:
            return BUILT_IN_PACKS[mode_id]
        raise NotFound(f"Game mode {mode_id!r} not found.")

    async def locations_for(self, mode_id: str) -> list[Location]:
        mode = await self.get_mode(mode_id)
        return list(mode.locations)

    async def resolve(self, mode: Mode, center: Coordinate | None = None) -> list[Location]:
        """Target set for any Mode variant."""
        if isinstance(mode, (BuiltInMode, CustomMode)):
            return await self.locations_for(mode.id)
        if isinstance(mode, NearMeMode):
            return await self._near_me(mode.options, center)
        raise Invalid(f"Unsupported mode {mode!r}.")

    async def _near_me(self, options: NearMeOptions, center: Coordinate | None) -> list[Location]:
        if center is None:
            raise Unavailable("A position fix is required for Near Me.")
        if self._places is None:
            raise Unavailable("Place search is not configured.")
        if options.radius_km <= 0 or options.rounds <= 0:
            raise Invalid("Radius and rounds must be positive.")
        found = await self._places.search(center, options.radius_km * 1000, tuple(options.categories))
        if not found:
            raise Unavailable("No places found nearby; try a larger radius.")
        return found[: options.rounds]

    # --- authoring -----------------------------------------------------------

    def _authorize(self, caller: Identity, data: dict) -> None:
        owner = data.get("owner_uid")
        if self.is_admin(caller):
            return
        if owner is None:
            raise Forbidden("Built-in modes can only be edited by an administrator.")
        if owner != caller.uid:
            raise Forbidden("Only the owner can edit this mode.")

    def _current(self, mode_id: str, data: dict | None) -> dict:
        if data is not None:
            return data
        if mode_id in BUILT_IN_PACKS:
            return BUILT_IN_PACKS[mode_id].to_dict()
        raise NotFound(f"Game mode {mode_id!r} not found.")

    async def create_mode(
        self,
        caller: Identity,
        name: str,
        locations: Iterable[Location] = (),
        *,
        public: bool = True,
    ) -> GameMode:
        mode = GameMode(
            id=uuid4().hex[:12],
            name=_clean_name(name, "Mode"),
            locations=list(locations),
            owner_uid=caller.uid,
            public=public,
        )
        await self._store.create(COLLECTION, mode.id, mode.to_dict())
        log.info("mode_created", mode_id=mode.id, owner=caller.uid, locations=len(mode.locations))
        return mode

    async def _edit(self, caller: Identity, mode_id: str, edit) -> GameMode:
        def mutate(data: dict | None) -> dict:
            current = self._current(mode_id, data)
            self._authorize(caller, current)
            locations = current.get("locations", [])
            edit(locations)
            return {**current, "locations": locations}

        snap = await transact(self._store, COLLECTION, mode_id, mutate)
        return GameMode.from_dict(snap.data)

    async def append_location(self, caller: Identity, mode_id: str, location: Location) -> GameMode:
        _clean_name(location.name, "Location")
        mode = await self._edit(caller, mode_id, lambda locs: locs.append(location.to_dict()))
        log.info("mode_location_added", mode_id=mode_id, count=len(mode.locations))
        return mode

    async def replace_location(
        self, caller: Identity, mode_id: str, index: int, location: Location,
    ) -> GameMode:
        _clean_name(location.name, "Location")

        def edit(locs: list) -> None:
            _check_index(locs, index)
            locs[index] = location.to_dict()

        return await self._edit(caller, mode_id, edit)

    async def remove_location(self, caller: Identity, mode_id: str, index: int) -> GameMode:
        def edit(locs: list) -> None:
            _check_index(locs, index)
            del locs[index]

        mode = await self._edit(caller, mode_id, edit)
        log.info("mode_location_removed", mode_id=mode_id, index=index)
        return mode

    async def delete_mode(self, caller: Identity, mode_id: str) -> None:
        """Delete a custom mode, or drop an administrator's override of a pack."""
        def mutate(data: dict | None):
            if data is None:
                if mode_id in BUILT_IN_PACKS:
                    raise Forbidden("Built-in modes cannot be deleted.")
                raise NotFound(f"Game mode {mode_id!r} not found.")
            self._authorize(caller, data)
            return DELETE

        await transact(self._store, COLLECTION, mode_id, mutate)
        log.info("mode_deleted", mode_id=mode_id, by=caller.uid)


def _check_index(locations: list, index: int) -> None:
    if not 0 <= index < len(locations):
        raise Invalid(f"Location index {index} out of range (0..{len(locations) - 1}).")
