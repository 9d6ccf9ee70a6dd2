"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

import geocompass.main as main_module
from geocompass.config import AppConfig
from geocompass.core.catalog import LocationCatalog
from geocompass.core.coordinator import SessionCoordinator
from geocompass.core.errors import Unavailable
from geocompass.core.lobby import SessionManager
from geocompass.core.models import Coordinate, Identity, Location
from geocompass.core.sensors import PermissionState
from geocompass.core.stats import ServerStats
from geocompass.store.memory_store import MemoryDocumentStore

PARIS = Coordinate(latitude=48.8566, longitude=2.3522)

NEARBY = [
    Location("Louvre", Coordinate(48.8606, 2.3376)),
    Location("Notre-Dame", Coordinate(48.8530, 2.3499)),
    Location("Pantheon", Coordinate(48.8462, 2.3464)),
    Location("Sacre-Coeur", Coordinate(48.8867, 2.3431)),
]


class FakePlaceSearch:
    """PlaceSearch returning a fixed list, recording every call."""

    def __init__(self, places: list[Location] | None = None) -> None:
        self.places = list(NEARBY if places is None else places)
        self.searches: list[tuple] = []
        self.closed = False

    async def search(self, center, radius_m, categories):
        self.searches.append((center, radius_m, tuple(categories)))
        return list(self.places)

    async def resolve(self, query):
        return [loc for loc in self.places if query.lower() in loc.name.lower()]

    async def predict(self, query):
        if not query:
            return []
        return [
            {"description": loc.name, "place_id": f"fake-{i}"}
            for i, loc in enumerate(self.places)
            if query.lower() in loc.name.lower()
        ]

    async def aclose(self):
        self.closed = True


class FakeOrientation:
    def __init__(self, state: PermissionState = PermissionState.GRANTED,
                 grant_to: PermissionState = PermissionState.GRANTED) -> None:
        self.state = state
        self.grant_to = grant_to
        self.value = 0.0
        self.started = 0
        self.stopped = 0

    def permission_state(self):
        return self.state

    async def request_permission(self):
        self.state = self.grant_to
        return self.state

    def start(self):
        self.started += 1

    def stop(self):
        self.stopped += 1

    def heading(self):
        return self.value


class FakePositions:
    def __init__(self, position: Coordinate | None = PARIS) -> None:
        self.position = position
        self.calls = 0

    async def get_position(self):
        self.calls += 1
        if self.position is None:
            raise Unavailable("Location services are off.")
        return self.position


def player(uid: str) -> Identity:
    return Identity(uid=uid, display_name=uid.title())


def headers_for(uid: str) -> dict:
    return {"X-Player-Id": uid, "X-Player-Name": uid.title()}


@pytest.fixture(autouse=True)
def _init_server(tmp_path):
    """Initialize server singletons for every test, using a temp directory."""
    config = AppConfig()
    config.store.base_dir = str(tmp_path / "store")
    config.logging.level = "warning"
    config.catalog.admin_uids = ["admin"]

    main_module.build_components(config, places=FakePlaceSearch())

    yield

    # Cleanup
    main_module.reset_components()


@pytest.fixture
def stats():
    return ServerStats()


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def places():
    return FakePlaceSearch()


@pytest.fixture
def catalog(store, places):
    return LocationCatalog(store, places, admin_uids=["admin"])


@pytest.fixture
def sessions(store, stats):
    return SessionManager(store, stats)


@pytest.fixture
def coordinator(sessions, catalog, stats):
    return SessionCoordinator(sessions, catalog, stats)


@pytest.fixture
async def client():
    from geocompass.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
