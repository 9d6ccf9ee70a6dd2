"""
Pydantic schemas for request bodies.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from geocompass.core.models import Coordinate, Location, NearMeOptions


class CoordinateIn(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    def to_model(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class LocationIn(BaseModel):
    name: str
    coordinates: CoordinateIn

    def to_model(self) -> Location:
        return Location(name=self.name, coordinates=self.coordinates.to_model())


class NearMeOptionsIn(BaseModel):
    radius_km: float = Field(default=5.0, gt=0, le=50)
    rounds: int = Field(default=7, ge=1, le=20)
    categories: list[str] = Field(default_factory=lambda: ["tourist_attraction"])

    def to_model(self) -> NearMeOptions:
        return NearMeOptions(
            radius_km=self.radius_km,
            rounds=self.rounds,
            categories=tuple(self.categories),
        )


class ChooseModeRequest(BaseModel):
    mode_id: str
    rounds: int | None = Field(default=None, ge=1)
    near_me: NearMeOptionsIn | None = None
    center: CoordinateIn | None = None


class AdvanceRequest(BaseModel):
    from_round: int | None = Field(default=None, ge=0)


class GuessRequest(BaseModel):
    round: int = Field(ge=1)
    angle: float = Field(allow_inf_nan=False)
    position: CoordinateIn | None = None


class CreateModeRequest(BaseModel):
    name: str
    public: bool = True
    locations: list[LocationIn] = Field(default_factory=list)
