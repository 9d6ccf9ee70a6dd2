"""Tests for ServerStats and active player tracking."""

from __future__ import annotations

import time

from geocompass.core.stats import ServerStats


def test_initial_stats():
    stats = ServerStats()
    snap = stats.snapshot()
    assert snap["sessions_created"] == 0
    assert snap["guesses_accepted"] == 0
    assert snap["active_players"]["total"] == 0
    assert snap["active_players"]["in_session"] == 0
    assert snap["active_players"]["sessions"] == 0


def test_session_activity():
    stats = ServerStats()
    stats.record_session_created("alice", "ABC-123")
    stats.record_join("bob", "ABC-123")
    stats.record_join_rejected()

    snap = stats.snapshot()
    assert snap["sessions_created"] == 1
    assert snap["joins"] == 1
    assert snap["joins_rejected"] == 1
    assert snap["active_players"]["total"] == 2
    assert snap["active_players"]["in_session"] == 2
    assert snap["active_players"]["sessions"] == 1


def test_guesses_accumulate_points():
    stats = ServerStats()
    stats.record_guess("alice", "ABC-123", 300)
    stats.record_guess("alice", "ABC-123", 42)
    stats.record_guess_rejected()

    snap = stats.snapshot()
    assert snap["guesses_accepted"] == 2
    assert snap["guesses_rejected"] == 1
    assert snap["points_awarded"] == 342
    assert snap["active_players"]["total"] == 1


def test_solo_player_is_active_but_not_in_session():
    """A player who moves from a session to solo play should be tracked correctly."""
    stats = ServerStats()
    stats.record_join("carol", "XYZ-999")
    assert stats.snapshot()["active_players"]["in_session"] == 1

    stats.record_guess("carol", None, 100)

    snap = stats.snapshot()
    assert snap["active_players"]["total"] == 1
    assert snap["active_players"]["in_session"] == 0
    assert snap["active_players"]["sessions"] == 0


def test_place_search_counters():
    stats = ServerStats()
    stats.record_place_search(cache_hit=False)
    stats.record_place_search(cache_hit=True)
    stats.record_cas_retry()

    snap = stats.snapshot()
    assert snap["place_searches"] == 2
    assert snap["place_cache_hits"] == 1
    assert snap["cas_retries"] == 1


def test_stale_players_pruned():
    """Players not seen within the window should be removed."""
    stats = ServerStats(active_window_seconds=0.1)
    stats.record_join("old-player", "ABC-123")
    time.sleep(0.15)

    snap = stats.snapshot()
    assert snap["active_players"]["total"] == 0
    assert snap["active_players"]["window_seconds"] == 0.1


def test_uptime_increases():
    stats = ServerStats()
    time.sleep(0.05)
    snap = stats.snapshot()
    assert snap["uptime_seconds"] >= 0
