"""Session (lobby) manager: membership and lifecycle, independent of game content.

Sessions live in the ``sessions`` collection keyed by their join code. All
writes go through ``transact`` so concurrent joins, leaves and host handoffs
on one session are linearized by the store.
"""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

import structlog

from geocompass.core.documents import DELETE, transact
from geocompass.core.errors import Conflict, Forbidden, Invalid, NotFound
from geocompass.core.models import Identity, Player, Session, SessionStatus
from geocompass.store.base import VersionConflict

if TYPE_CHECKING:
    from geocompass.core.stats import ServerStats
    from geocompass.store.base import DocumentStore, Snapshot, Subscription

log = structlog.get_logger()

COLLECTION = "sessions"
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_GROUP = 3
_CODE_RE = re.compile(r"^[A-Z0-9]{3}-?[A-Z0-9]{3}$")


def generate_code() -> str:
    """Random ``XXX-XXX`` join code."""
    chars = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_GROUP * 2))
    return f"{chars[:CODE_GROUP]}-{chars[CODE_GROUP:]}"


def normalize_code(raw: str | None) -> str:
    """Uppercase, trim and hyphenate a user-typed join code."""
    cleaned = (raw or "").strip().upper().replace(" ", "")
    if not _CODE_RE.match(cleaned):
        raise Invalid("Join code must be 6 letters or digits, like ABC-123.")
    cleaned = cleaned.replace("-", "")
    return f"{cleaned[:CODE_GROUP]}-{cleaned[CODE_GROUP:]}"


class SessionManager:
    """Create, join, leave and start sessions."""

    def __init__(
        self,
        store: DocumentStore,
        stats: ServerStats | None = None,
        *,
        max_members: int = 8,
        min_members_to_start: int = 1,
        code_attempts: int = 10,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._store = store
        self._stats = stats
        self.max_members = max_members
        self.min_members_to_start = min_members_to_start
        self._code_attempts = code_attempts
        self._code_factory = code_factory

    async def update(self, code: str, mutate: Callable[[Session], object]) -> Snapshot:
        """Read-modify-write one session. ``mutate`` edits the Session in place.

        ``mutate`` may return DELETE to remove the session, or False to skip
        the write. Raises NotFound if the session does not exist.
        """
        code = normalize_code(code)

        def apply(data: dict | None):
            if data is None:
                raise NotFound(f"Session {code} not found.")
            session = Session.from_dict(data)
            outcome = mutate(session)
            if outcome is DELETE:
                return DELETE
            if outcome is False:
                return None
            return session.to_dict()

        return await transact(self._store, COLLECTION, code, apply, stats=self._stats)

    async def get_session(self, code: str) -> Session:
        code = normalize_code(code)
        snap = await self._store.get(COLLECTION, code)
        if not snap.exists:
            raise NotFound(f"Session {code} not found.")
        return Session.from_dict(snap.data)

    def subscribe(self, code: str) -> Subscription:
        """Live feed of the session document, current state first."""
        return self._store.subscribe(COLLECTION, normalize_code(code))

    async def create_session(self, caller: Identity) -> Session:
        """New Waiting session with ``caller`` as sole member and host."""
        for attempt in range(1, self._code_attempts + 1):
            code = self._code_factory()
            existing = await self._store.get(COLLECTION, code)
            if existing.exists:
                log.info("session_code_collision", code=code, attempt=attempt)
                continue
            session = Session(
                code=code,
                host_uid=caller.uid,
                members={caller.uid: Player.for_identity(caller)},
                max_members=self.max_members,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            try:
                await self._store.create(COLLECTION, code, session.to_dict())
            except VersionConflict as exc:
                # Lost a race for this code between get and create.
                log.info("session_code_taken", code=code, attempt=attempt, error=str(exc))
                continue
            if self._stats is not None:
                self._stats.record_session_created(caller.uid, code)
            log.info("session_created", code=code, host=caller.uid)
            return session
        raise Conflict("Could not allocate a free join code; please try again.")

    async def join_session(self, caller: Identity, code: str) -> Session:
        code = normalize_code(code)

        def mutate(session: Session):
            if session.is_member(caller.uid):
                return False
            if session.status != SessionStatus.WAITING:
                raise Conflict("This game has already started.")
            if len(session.members) >= session.max_members:
                raise Conflict("This session is full.")
            session.members[caller.uid] = Player.for_identity(caller)

        try:
            snap = await self.update(code, mutate)
        except (Conflict, NotFound):
            if self._stats is not None:
                self._stats.record_join_rejected()
            raise
        if self._stats is not None:
            self._stats.record_join(caller.uid, code)
        log.info("session_joined", code=code, uid=caller.uid)
        return Session.from_dict(snap.data)

    async def leave_session(self, caller: Identity, code: str) -> Session | None:
        """Remove ``caller``. Returns the remaining session, or None if it is gone.

        Safe to call more than once: leaving a session you are not in (or one
        that no longer exists) changes nothing.
        """
        code = normalize_code(code)
        deleted = False

        def mutate(session: Session):
            nonlocal deleted
            deleted = False
            if not session.is_member(caller.uid):
                return False
            del session.members[caller.uid]
            if not session.members:
                deleted = True
                return DELETE
            if session.host_uid == caller.uid:
                session.host_uid = next(iter(session.members))

        try:
            snap = await self.update(code, mutate)
        except NotFound:
            return None

        if deleted:
            if self._stats is not None:
                self._stats.record_session_deleted()
            log.info("session_deleted", code=code, reason="last_member_left")
            return None
        session = Session.from_dict(snap.data)
        log.info("session_left", code=code, uid=caller.uid, host=session.host_uid)
        return session

    async def start_session(self, caller: Identity, code: str) -> Session:
        code = normalize_code(code)
        minimum = self.min_members_to_start

        def mutate(session: Session):
            if session.host_uid != caller.uid:
                raise Forbidden("Only the host can start the game.")
            if session.status != SessionStatus.WAITING:
                raise Conflict("Game already started.")
            if len(session.members) < minimum:
                raise Conflict(f"At least {minimum} players are needed to start.")
            session.status = SessionStatus.PLAYING

        snap = await self.update(code, mutate)
        log.info("session_started", code=code, members=len(snap.data["members"]))
        return Session.from_dict(snap.data)
