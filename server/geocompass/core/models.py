"""GeoCompass core data models.

These are plain dataclasses with no framework dependencies.
Documents in the store are JSON-compatible dicts; models are converted
to/from them at the boundary with ``to_dict`` / ``from_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: dict) -> Coordinate:
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


@dataclass(frozen=True)
class Location:
    name: str
    coordinates: Coordinate

    def to_dict(self) -> dict:
        return {"name": self.name, "coordinates": self.coordinates.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> Location:
        return cls(name=data["name"], coordinates=Coordinate.from_dict(data["coordinates"]))


@dataclass(frozen=True)
class Identity:
    """Caller identity as handed over by the authentication collaborator."""
    uid: str
    display_name: str | None = None
    avatar: str | None = None


@dataclass
class GameMode:
    id: str
    name: str
    locations: list[Location] = field(default_factory=list)
    owner_uid: str | None = None  # None for built-in packs
    public: bool = True

    @property
    def built_in(self) -> bool:
        return self.owner_uid is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_uid": self.owner_uid,
            "public": self.public,
            "locations": [loc.to_dict() for loc in self.locations],
        }

    @classmethod
    def from_dict(cls, data: dict) -> GameMode:
        return cls(
            id=data["id"],
            name=data["name"],
            owner_uid=data.get("owner_uid"),
            public=data.get("public", True),
            locations=[Location.from_dict(loc) for loc in data.get("locations", [])],
        )


# --- Mode variant -----------------------------------------------------------

NEAR_ME = "NEAR_ME"


@dataclass(frozen=True)
class NearMeOptions:
    radius_km: float = 5.0
    rounds: int = 7
    categories: tuple[str, ...] = ("tourist_attraction",)

    def to_dict(self) -> dict:
        return {
            "radius_km": self.radius_km,
            "rounds": self.rounds,
            "categories": list(self.categories),
        }


@dataclass(frozen=True)
class BuiltInMode:
    id: str


@dataclass(frozen=True)
class CustomMode:
    id: str


@dataclass(frozen=True)
class NearMeMode:
    options: NearMeOptions = field(default_factory=NearMeOptions)

    @property
    def id(self) -> str:
        return NEAR_ME


Mode = Union[BuiltInMode, CustomMode, NearMeMode]


# --- Session ------------------------------------------------------------------

class SessionStatus(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass
class Player:
    uid: str
    display_name: str | None = None
    avatar: str | None = None
    score: int = 0
    guesses: list[float | None] = field(default_factory=list)

    @classmethod
    def for_identity(cls, identity: Identity) -> Player:
        return cls(uid=identity.uid, display_name=identity.display_name, avatar=identity.avatar)

    def guess_for(self, round_number: int) -> float | None:
        index = round_number - 1
        if 0 <= index < len(self.guesses):
            return self.guesses[index]
        return None

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "display_name": self.display_name,
            "avatar": self.avatar,
            "score": self.score,
            "guesses": list(self.guesses),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Player:
        return cls(
            uid=data["uid"],
            display_name=data.get("display_name"),
            avatar=data.get("avatar"),
            score=data.get("score", 0),
            guesses=list(data.get("guesses", [])),
        )


@dataclass
class Session:
    code: str
    host_uid: str
    members: dict[str, Player] = field(default_factory=dict)  # join order preserved
    status: SessionStatus = SessionStatus.WAITING
    chosen_mode_id: str | None = None
    current_round: int = 0
    fixed_location_set: list[Location] = field(default_factory=list)
    max_members: int = 8
    created_at: str = ""

    @property
    def total_rounds(self) -> int:
        return len(self.fixed_location_set)

    def is_member(self, uid: str) -> bool:
        return uid in self.members

    def target_for(self, round_number: int) -> Location | None:
        if 1 <= round_number <= len(self.fixed_location_set):
            return self.fixed_location_set[round_number - 1]
        return None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "host_uid": self.host_uid,
            "members": [player.to_dict() for player in self.members.values()],
            "status": self.status.value,
            "chosen_mode_id": self.chosen_mode_id,
            "current_round": self.current_round,
            "fixed_location_set": [loc.to_dict() for loc in self.fixed_location_set],
            "max_members": self.max_members,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Session:
        members = {}
        for raw in data.get("members", []):
            player = Player.from_dict(raw)
            members[player.uid] = player
        return cls(
            code=data["code"],
            host_uid=data["host_uid"],
            members=members,
            status=SessionStatus(data.get("status", SessionStatus.WAITING.value)),
            chosen_mode_id=data.get("chosen_mode_id"),
            current_round=data.get("current_round", 0),
            fixed_location_set=[Location.from_dict(loc) for loc in data.get("fixed_location_set", [])],
            max_members=data.get("max_members", 8),
            created_at=data.get("created_at", ""),
        )


@dataclass(frozen=True)
class Notice:
    """Human-readable message a client state machine surfaces to its player."""
    kind: str
    message: str


@dataclass(frozen=True)
class RoundResult:
    """Derived per-guess outcome. Never stored."""
    target_bearing: float
    guess_bearing: float
    angular_error: float
    points: int

    def to_dict(self) -> dict:
        return {
            "target_bearing": round(self.target_bearing, 2),
            "guess_bearing": round(self.guess_bearing, 2),
            "angular_error": round(self.angular_error, 2),
            "points": self.points,
        }
