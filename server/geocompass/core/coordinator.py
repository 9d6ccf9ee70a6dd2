"""Synchronized round coordinator.

Only the host decides which round the session is on and what the targets
are; every other member follows the session document. Each member writes
only their own guess and score.

- ``derive_view`` turns a Session into one member's phase and target.
- ``RoundAuthority`` is the host capability (choose mode, advance, end).
  ``HostCoordinator`` is its only implementation and is handed out by
  ``SessionCoordinator.authority`` to the current host.
- ``SessionCoordinator.submit_guess`` is the per-member write.
- ``MemberClient`` is a follower: it consumes the live subscription and
  force-resets to IDLE when the session disappears.

Host role can move (host leaves) between reading a session and writing it;
every host write re-checks the role inside the compare-and-set transaction,
so a stale host's write is rejected rather than applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

import structlog

from geocompass.core.bearing import round_result
from geocompass.core.documents import DELETE
from geocompass.core.errors import Conflict, Forbidden, GameError, Invalid, NotFound
from geocompass.core.lobby import normalize_code
from geocompass.core.models import (
    Identity,
    Location,
    Mode,
    Notice,
    RoundResult,
    Session,
    SessionStatus,
)

if TYPE_CHECKING:
    from geocompass.core.catalog import LocationCatalog
    from geocompass.core.lobby import SessionManager
    from geocompass.core.models import Coordinate
    from geocompass.core.stats import ServerStats
    from geocompass.store.base import Snapshot

log = structlog.get_logger()


class MemberPhase(str, Enum):
    IDLE = "idle"
    MODE_WAIT = "mode_wait"
    LOADING_TARGETS = "loading_targets"
    PLAYING = "playing"
    RESULTS = "results"


@dataclass(frozen=True)
class MemberView:
    """What one member should be showing, derived from the session."""
    phase: MemberPhase
    code: str
    uid: str
    is_host: bool
    current_round: int = 0
    total_rounds: int = 0
    target: Location | None = None
    guess: float | None = None
    score: int = 0

    @property
    def is_last_round(self) -> bool:
        return self.total_rounds > 0 and self.current_round >= self.total_rounds

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "code": self.code,
            "uid": self.uid,
            "is_host": self.is_host,
            "current_round": self.current_round,
            "total_rounds": self.total_rounds,
            "target": self.target.to_dict() if self.target else None,
            "guess": self.guess,
            "score": self.score,
        }


def derive_view(session: Session, uid: str) -> MemberView:
    player = session.members.get(uid)
    common = dict(
        code=session.code,
        uid=uid,
        is_host=session.host_uid == uid,
        current_round=session.current_round,
        total_rounds=session.total_rounds,
        score=player.score if player else 0,
    )
    if session.status != SessionStatus.PLAYING or session.chosen_mode_id is None:
        return MemberView(phase=MemberPhase.MODE_WAIT, **common)
    target = session.target_for(session.current_round)
    if target is None:
        # Targets still being resolved, or fixed but round 1 not opened yet.
        return MemberView(phase=MemberPhase.LOADING_TARGETS, **common)
    guess = player.guess_for(session.current_round) if player else None
    phase = MemberPhase.PLAYING if guess is None else MemberPhase.RESULTS
    return MemberView(phase=phase, target=target, guess=guess, **common)


class RoundAuthority(Protocol):
    """Host-only writes to round and target fields."""

    async def choose_mode(
        self, mode: Mode, *, center: Coordinate | None = None, rounds: int | None = None,
    ) -> Session: ...

    async def advance_round(self, from_round: int | None = None) -> Session: ...

    async def end_session(self) -> None: ...


class HostCoordinator:
    """RoundAuthority for one host in one session."""

    def __init__(
        self,
        sessions: SessionManager,
        catalog: LocationCatalog,
        caller: Identity,
        code: str,
        stats: ServerStats | None = None,
    ) -> None:
        self._sessions = sessions
        self._catalog = catalog
        self._caller = caller
        self.code = code
        self._stats = stats

    def _require_host(self, session: Session) -> None:
        if session.host_uid != self._caller.uid:
            raise Forbidden("Only the host can do that.")

    async def choose_mode(
        self, mode: Mode, *, center: Coordinate | None = None, rounds: int | None = None,
    ) -> Session:
        """Fix the session's target set. Mode id and set become visible together."""
        session = await self._sessions.get_session(self.code)
        self._require_host(session)
        self._check_can_choose(session)

        locations = await self._catalog.resolve(mode, center)
        if rounds is not None:
            if rounds <= 0:
                raise Invalid("Rounds must be positive.")
            locations = locations[:rounds]
        if not locations:
            raise Invalid("That mode has no locations.")

        def mutate(current: Session):
            self._require_host(current)
            self._check_can_choose(current)
            current.chosen_mode_id = mode.id
            current.fixed_location_set = list(locations)

        snap = await self._sessions.update(self.code, mutate)
        log.info("session_mode_chosen", code=self.code, mode=mode.id, rounds=len(locations))
        return Session.from_dict(snap.data)

    @staticmethod
    def _check_can_choose(session: Session) -> None:
        if session.status != SessionStatus.PLAYING:
            raise Conflict("Start the game before choosing a mode.")
        if session.fixed_location_set:
            raise Conflict("A mode has already been chosen for this session.")

    async def advance_round(self, from_round: int | None = None) -> Session:
        """Open the next round.

        ``from_round`` is the round the host was looking at (defaults to the
        current one). If the session has moved past it by the time the write
        lands, the advance is dropped instead of skipping a round.
        """
        if from_round is None:
            session = await self._sessions.get_session(self.code)
            self._require_host(session)
            from_round = session.current_round
        applied = False

        def mutate(current: Session):
            nonlocal applied
            applied = False
            self._require_host(current)
            if current.status != SessionStatus.PLAYING or not current.fixed_location_set:
                raise Conflict("Choose a mode before advancing.")
            if current.current_round != from_round:
                return False
            if current.current_round >= current.total_rounds:
                raise Conflict("The final round is already open.")
            current.current_round += 1
            applied = True

        snap = await self._sessions.update(self.code, mutate)
        session = Session.from_dict(snap.data)
        if applied:
            if self._stats is not None:
                self._stats.record_round_advanced(self._caller.uid, self.code)
            log.info("round_advanced", code=self.code, round=session.current_round,
                     total=session.total_rounds)
        else:
            log.info("round_advance_discarded", code=self.code, expected=from_round,
                     current=session.current_round)
        return session

    async def end_session(self) -> None:
        """Mark the session finished, then delete it to free the code."""
        def finish(current: Session):
            self._require_host(current)
            if current.status == SessionStatus.FINISHED:
                return False
            current.status = SessionStatus.FINISHED

        def remove(current: Session):
            self._require_host(current)
            return DELETE

        await self._sessions.update(self.code, finish)
        try:
            await self._sessions.update(self.code, remove)
        except NotFound:
            # Removed concurrently; counted by whoever removed it.
            log.info("session_end_raced", code=self.code)
        else:
            if self._stats is not None:
                self._stats.record_session_deleted()
        log.info("session_ended", code=self.code, by=self._caller.uid)


class SessionCoordinator:
    """Entry point for in-game session operations."""

    def __init__(
        self,
        sessions: SessionManager,
        catalog: LocationCatalog,
        stats: ServerStats | None = None,
    ) -> None:
        self.sessions = sessions
        self.catalog = catalog
        self._stats = stats

    async def authority(self, caller: Identity, code: str) -> HostCoordinator:
        """The host capability, if ``caller`` currently holds the host role."""
        session = await self.sessions.get_session(code)
        if session.host_uid != caller.uid:
            raise Forbidden("Only the host can do that.")
        return HostCoordinator(self.sessions, self.catalog, caller, session.code, self._stats)

    async def view(self, caller: Identity, code: str) -> MemberView:
        session = await self.sessions.get_session(code)
        return derive_view(session, caller.uid)

    async def submit_guess(
        self,
        caller: Identity,
        code: str,
        round_number: int,
        angle: float,
        position: Coordinate | None,
    ) -> tuple[Session, RoundResult]:
        """Record ``caller``'s guess for ``round_number`` and add its points.

        Scored against the caller's own position. Keyed by (uid, round):
        a second submission for the same round is rejected and never
        double-counts.
        """
        code = normalize_code(code)
        result: RoundResult | None = None

        def mutate(session: Session):
            nonlocal result
            player = session.members.get(caller.uid)
            if player is None:
                raise Forbidden("You are not a member of this session.")
            if session.status != SessionStatus.PLAYING:
                raise Conflict("The game is not in progress.")
            if round_number != session.current_round:
                raise Conflict(f"Round {round_number} is not the current round.")
            target = session.target_for(round_number)
            if target is None:
                raise Conflict("This round has no target yet.")
            if player.guess_for(round_number) is not None:
                raise Conflict("You already guessed this round.")

            result = round_result(position, target.coordinates, angle)
            while len(player.guesses) < round_number:
                player.guesses.append(None)
            player.guesses[round_number - 1] = result.guess_bearing
            player.score += result.points

        try:
            snap = await self.sessions.update(code, mutate)
        except GameError as exc:
            if self._stats is not None:
                self._stats.record_guess_rejected()
            log.info("guess_rejected", code=code, uid=caller.uid, round=round_number, reason=exc.kind)
            raise

        if self._stats is not None:
            self._stats.record_guess(caller.uid, code, result.points)
        log.info("guess_recorded", code=code, uid=caller.uid, round=round_number,
                 points=result.points, error_deg=round(result.angular_error, 1))
        return Session.from_dict(snap.data), result

    def member(self, caller: Identity, code: str) -> MemberClient:
        return MemberClient(self, caller, code)


class MemberClient:
    """One member's follower state machine over the live session feed."""

    def __init__(self, coordinator: SessionCoordinator, caller: Identity, code: str) -> None:
        self._coordinator = coordinator
        self.caller = caller
        self.code = code
        self.session: Session | None = None
        self.view: MemberView | None = None
        self.last_result: RoundResult | None = None
        self.notices: list[Notice] = []
        self._reset = False
        self._subscription = None

    @property
    def phase(self) -> MemberPhase:
        if self._reset or self.view is None:
            return MemberPhase.IDLE
        return self.view.phase

    def _notify(self, kind: str, message: str) -> None:
        self.notices.append(Notice(kind=kind, message=message))

    def reset(self) -> None:
        """Drop back to IDLE locally; shared state is untouched."""
        self._reset = True
        self.session = None
        self.view = None
        self.last_result = None
        self.stop()

    def apply(self, snapshot: Snapshot) -> MemberPhase:
        """Fold one pushed snapshot into local state."""
        if self._reset:
            return MemberPhase.IDLE
        if not snapshot.exists:
            # Unconditional: whatever we were doing, the session is gone.
            log.info("member_session_gone", code=self.code, uid=self.caller.uid)
            self._notify("session_ended", "The session has ended.")
            self.reset()
            return MemberPhase.IDLE
        self.session = Session.from_dict(snapshot.data)
        self.view = derive_view(self.session, self.caller.uid)
        return self.view.phase

    async def follow(self) -> None:
        """Consume the subscription until the session disappears or ``stop``."""
        self._subscription = self._coordinator.sessions.subscribe(self.code)
        try:
            async for snapshot in self._subscription:
                self.apply(snapshot)
                if self._reset:
                    break
        finally:
            self.stop()

    async def drain(self) -> MemberPhase:
        """Apply every snapshot already delivered, without waiting for more."""
        if self._subscription is None:
            self._subscription = self._coordinator.sessions.subscribe(self.code)
        while not self._reset and self._subscription.pending():
            self.apply(await self._subscription.get())
        return self.phase

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.close()

    async def submit_guess(self, angle: float, position: Coordinate | None) -> RoundResult | None:
        """Guess for the round currently shown. Failures become notices."""
        if self.phase != MemberPhase.PLAYING or self.view is None:
            return None
        try:
            _, result = await self._coordinator.submit_guess(
                self.caller, self.code, self.view.current_round, angle, position,
            )
        except GameError as exc:
            self._notify(exc.kind, exc.message)
            return None
        self.last_result = result
        return result

    async def continue_(self) -> MemberPhase:
        """The player's "continue" from RESULTS.

        The host opens the next round, or ends the session after the last
        one. Everyone else only resets locally once the game is over.
        """
        view = self.view
        if self.phase != MemberPhase.RESULTS or view is None:
            return self.phase
        if not view.is_last_round:
            if view.is_host:
                try:
                    authority = await self._coordinator.authority(self.caller, self.code)
                    await authority.advance_round(from_round=view.current_round)
                except GameError as exc:
                    self._notify(exc.kind, exc.message)
            return self.phase

        if view.is_host:
            try:
                authority = await self._coordinator.authority(self.caller, self.code)
                await authority.end_session()
            except GameError as exc:
                self._notify(exc.kind, exc.message)
        self.reset()
        return MemberPhase.IDLE

