"""Server statistics and active-player tracking.

Tracks in-memory counters and a sliding window of recently active players.
No framework dependencies.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass
class PlayerActivity:
    """Tracks a single player's recent activity."""
    last_seen: float          # time.monotonic() timestamp
    session_code: str | None  # session the player last acted in, None for solo
    actions: int = 0


class ServerStats:
    """Thread-safe server statistics with active-player tracking.

    A player is considered active if their last session action (create, join,
    guess, ...) happened within ``active_window_seconds`` (default 120s).
    """

    def __init__(self, active_window_seconds: float = 120.0) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._active_window = active_window_seconds

        # Counters
        self.sessions_created: int = 0
        self.sessions_deleted: int = 0
        self.joins: int = 0
        self.joins_rejected: int = 0
        self.rounds_advanced: int = 0
        self.guesses_accepted: int = 0
        self.guesses_rejected: int = 0
        self.points_awarded: int = 0
        self.cas_retries: int = 0
        self.place_searches: int = 0
        self.place_cache_hits: int = 0

        # Player tracking: uid → PlayerActivity
        self._players: dict[str, PlayerActivity] = {}

    def _touch(self, uid: str, session_code: str | None) -> None:
        """Caller holds lock."""
        now = time.monotonic()
        if uid in self._players:
            activity = self._players[uid]
            activity.last_seen = now
            activity.session_code = session_code
            activity.actions += 1
        else:
            self._players[uid] = PlayerActivity(last_seen=now, session_code=session_code, actions=1)

    def record_session_created(self, uid: str, code: str) -> None:
        with self._lock:
            self.sessions_created += 1
            self._touch(uid, code)

    def record_session_deleted(self) -> None:
        with self._lock:
            self.sessions_deleted += 1

    def record_join(self, uid: str, code: str) -> None:
        with self._lock:
            self.joins += 1
            self._touch(uid, code)

    def record_join_rejected(self) -> None:
        with self._lock:
            self.joins_rejected += 1

    def record_round_advanced(self, uid: str, code: str) -> None:
        with self._lock:
            self.rounds_advanced += 1
            self._touch(uid, code)

    def record_guess(self, uid: str, code: str | None, points: int) -> None:
        with self._lock:
            self.guesses_accepted += 1
            self.points_awarded += points
            self._touch(uid, code)

    def record_guess_rejected(self) -> None:
        with self._lock:
            self.guesses_rejected += 1

    def record_cas_retry(self) -> None:
        with self._lock:
            self.cas_retries += 1

    def record_place_search(self, *, cache_hit: bool) -> None:
        with self._lock:
            self.place_searches += 1
            if cache_hit:
                self.place_cache_hits += 1

    def _prune_stale_players(self, now: float) -> None:
        """Remove players not seen within the active window. Caller holds lock."""
        cutoff = now - self._active_window
        stale = [uid for uid, act in self._players.items() if act.last_seen < cutoff]
        for uid in stale:
            del self._players[uid]

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            self._prune_stale_players(now_mono)

            in_session = sum(1 for act in self._players.values() if act.session_code)
            sessions = {act.session_code for act in self._players.values() if act.session_code}

            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "sessions_created": self.sessions_created,
                "sessions_deleted": self.sessions_deleted,
                "joins": self.joins,
                "joins_rejected": self.joins_rejected,
                "rounds_advanced": self.rounds_advanced,
                "guesses_accepted": self.guesses_accepted,
                "guesses_rejected": self.guesses_rejected,
                "points_awarded": self.points_awarded,
                "cas_retries": self.cas_retries,
                "place_searches": self.place_searches,
                "place_cache_hits": self.place_cache_hits,
                "active_players": {
                    "total": len(self._players),
                    "in_session": in_session,
                    "sessions": len(sessions),
                    "window_seconds": self._active_window,
                },
            }
