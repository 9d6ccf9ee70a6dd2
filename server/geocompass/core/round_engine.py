"""Single-player round engine.

States::

    IDLE -> MODE_SELECT -> (PERMISSION) -> LOADING_POSITION -> PLAYING
         -> RESULTS -> (LOADING_POSITION -> PLAYING | IDLE)

Each round gets a fresh position fix and a countdown. Exactly one guess is
accepted per round; when the countdown hits zero without one, the current
heading is submitted. Targets come from the set fixed at mode selection, in
order, one per round.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from geocompass.core.bearing import bearing, round_result
from geocompass.core.errors import Conflict, GameError
from geocompass.core.models import Location, Mode, Notice, RoundResult
from geocompass.core.sensors import PermissionState

if TYPE_CHECKING:
    from geocompass.core.catalog import LocationCatalog
    from geocompass.core.models import Coordinate
    from geocompass.core.sensors import OrientationSensor, PositionProvider
    from geocompass.core.stats import ServerStats

log = structlog.get_logger()

# Countdown length per round, in timer units (seconds by default).
DEFAULT_ROUND_TIMER = 15


class EngineState(str, Enum):
    IDLE = "idle"
    MODE_SELECT = "mode_select"
    PERMISSION = "permission"
    LOADING_POSITION = "loading_position"
    PLAYING = "playing"
    RESULTS = "results"


class RoundEngine:
    """One player's game against a fixed target set."""

    def __init__(
        self,
        catalog: LocationCatalog,
        orientation: OrientationSensor,
        positions: PositionProvider,
        *,
        round_timer: int = DEFAULT_ROUND_TIMER,
        stats: ServerStats | None = None,
        uid: str = "solo",
    ) -> None:
        self._catalog = catalog
        self._orientation = orientation
        self._positions = positions
        self._stats = stats
        self.round_timer = round_timer
        self.uid = uid

        self.state = EngineState.IDLE
        self.mode: Mode | None = None
        self.rounds_override: int | None = None
        self.targets: list[Location] = []
        self.total_rounds = 0
        self.current_round = 0
        self.score = 0
        self.final_score: int | None = None
        self.time_left = round_timer
        self.target: Location | None = None
        self.position: Coordinate | None = None
        self.guess: float | None = None
        self.last_result: RoundResult | None = None
        self.notices: list[Notice] = []
        self._sensing = False

    # --- derived --------------------------------------------------------------

    @property
    def heading(self) -> float:
        if not self._sensing:
            return 0.0
        return self._orientation.heading() % 360

    @property
    def target_bearing(self) -> float | None:
        if self.position is None or self.target is None:
            return None
        return bearing(self.position, self.target.coordinates)

    # --- transitions ----------------------------------------------------------

    def _notify(self, kind: str, message: str) -> None:
        self.notices.append(Notice(kind=kind, message=message))
        log.info("engine_notice", uid=self.uid, kind=kind, message=message)

    def open_mode_select(self) -> None:
        if self.state != EngineState.IDLE:
            raise Conflict(f"Cannot choose a mode while {self.state.value}.")
        self.state = EngineState.MODE_SELECT

    async def select_mode(self, mode: Mode, rounds: int | None = None) -> EngineState:
        if self.state != EngineState.MODE_SELECT:
            raise Conflict(f"Cannot choose a mode while {self.state.value}.")
        self.mode = mode
        self.rounds_override = rounds
        self.targets = []
        self.current_round = 0
        self.score = 0
        self.final_score = None

        permission = self._orientation.permission_state()
        if permission == PermissionState.GRANTED:
            await self._start_round()
        elif permission == PermissionState.PROMPT:
            self.state = EngineState.PERMISSION
        else:
            self._notify("unavailable", "Device orientation permission is required to play.")
            self.reset()
        return self.state

    async def grant_permission(self) -> EngineState:
        if self.state != EngineState.PERMISSION:
            return self.state
        status = await self._orientation.request_permission()
        if status == PermissionState.GRANTED:
            await self._start_round()
        else:
            self._notify("unavailable", "Permission for device orientation was denied.")
            self.reset()
        return self.state

    async def _start_round(self) -> None:
        self.state = EngineState.LOADING_POSITION
        self.guess = None
        self.last_result = None
        try:
            self.position = await self._positions.get_position()
            if not self.targets:
                await self._fix_targets()
        except GameError as exc:
            self._notify(exc.kind, f"Could not start the round: {exc.message}")
            self.reset()
            return

        self.current_round += 1
        self.target = self.targets[self.current_round - 1]
        self.time_left = self.round_timer
        if not self._sensing:
            self._orientation.start()
            self._sensing = True
        self.state = EngineState.PLAYING
        log.info("engine_round_started", uid=self.uid, round=self.current_round,
                 total=self.total_rounds, target=self.target.name)

    async def _fix_targets(self) -> None:
        targets = await self._catalog.resolve(self.mode, self.position)
        if self.rounds_override:
            targets = targets[: self.rounds_override]
        if not targets:
            raise Conflict("That mode has no locations.")
        self.targets = targets
        self.total_rounds = len(targets)

    def submit_guess(self, angle: float) -> RoundResult | None:
        """Accept the round's one guess. Later calls in the same round are no-ops.

        A rejected guess becomes a notice and the round stays open.
        """
        if self.state != EngineState.PLAYING or self.guess is not None:
            return None
        try:
            result = round_result(self.position, self.target.coordinates, angle)
        except GameError as exc:
            self._notify(exc.kind, exc.message)
            return None
        self.guess = result.guess_bearing
        self.last_result = result
        self.score += result.points
        self.state = EngineState.RESULTS
        if self._stats is not None:
            self._stats.record_guess(self.uid, None, result.points)
        log.info("engine_guess", uid=self.uid, round=self.current_round,
                 points=result.points, error_deg=round(result.angular_error, 1))
        return result

    def tick(self, units: int = 1) -> RoundResult | None:
        """Advance the countdown. At zero the current heading is submitted."""
        if self.state != EngineState.PLAYING:
            return None
        self.time_left = max(0, self.time_left - units)
        if self.time_left == 0:
            log.info("engine_timer_expired", uid=self.uid, round=self.current_round)
            return self.submit_guess(self.heading)
        return None

    async def run_timer(self, unit_seconds: float = 1.0) -> RoundResult | None:
        """Drive ``tick`` in real time until this round leaves PLAYING."""
        round_number = self.current_round
        result = None
        while self.state == EngineState.PLAYING and self.current_round == round_number:
            await asyncio.sleep(unit_seconds)
            if self.current_round != round_number:
                break
            result = self.tick()
        return result

    async def continue_(self) -> EngineState:
        """From RESULTS: next round, or back to IDLE after the last one."""
        if self.state != EngineState.RESULTS:
            return self.state
        if self.current_round >= self.total_rounds:
            self.final_score = self.score
            log.info("engine_game_over", uid=self.uid, score=self.score, rounds=self.total_rounds)
            self.reset()
        else:
            await self._start_round()
        return self.state

    def reset(self) -> None:
        if self._sensing:
            self._orientation.stop()
            self._sensing = False
        self.state = EngineState.IDLE
        self.mode = None
        self.rounds_override = None
        self.targets = []
        self.total_rounds = 0
        self.current_round = 0
        self.score = 0
        self.target = None
        self.guess = None
        self.time_left = self.round_timer
