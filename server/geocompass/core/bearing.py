"""Bearing math: great-circle bearing, angular error and scoring.

Pure functions, no state.
"""

from __future__ import annotations

import math

from geocompass.core.errors import Invalid, Unavailable
from geocompass.core.models import Coordinate, RoundResult

# Earth radius in meters (for Haversine).
_EARTH_R = 6_371_000.0

# Points for a perfect guess.
MAX_POINTS = 360


def bearing(origin: Coordinate, target: Coordinate) -> float:
    """Initial great-circle bearing from ``origin`` to ``target``, in [0, 360)."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    dlon = math.radians(target.longitude - origin.longitude)

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)

    deg = (math.degrees(math.atan2(y, x)) + 360) % 360
    # float rounding can yield exactly 360.0
    return deg if deg < 360 else 0.0


def angular_difference(a: float, b: float) -> float:
    """Smallest angle between two headings, in [0, 180]."""
    diff = abs((a % 360) - (b % 360))
    return min(diff, 360 - diff)


def score_for(difference: float) -> int:
    """Points for an angular error. 0° scores 360, 180° still scores 180."""
    return max(0, MAX_POINTS - math.floor(difference))


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters between two points."""
    rlat1, rlat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    return 2 * _EARTH_R * math.asin(min(1.0, math.sqrt(h)))


def round_result(position: Coordinate | None, target: Coordinate, guess: float) -> RoundResult:
    """Score ``guess`` against the bearing from ``position`` to ``target``.

    Raises Invalid for a non-finite guess, and Unavailable when there is no
    position fix: bearing is undefined without one.
    """
    if not math.isfinite(guess):
        raise Invalid(f"Guess angle must be a finite number, got {guess!r}.")
    if position is None:
        raise Unavailable("No position fix; cannot compute bearing.")
    target_bearing = bearing(position, target)
    guess_bearing = guess % 360
    error = angular_difference(guess_bearing, target_bearing)
    return RoundResult(
        target_bearing=target_bearing,
        guess_bearing=guess_bearing,
        angular_error=error,
        points=score_for(error),
    )
