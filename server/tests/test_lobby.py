"""Tests for the session manager: create, join, leave, start."""

from __future__ import annotations

import re

import pytest

from conftest import player
from geocompass.core.errors import Conflict, Forbidden, Invalid, NotFound
from geocompass.core.lobby import COLLECTION, SessionManager, generate_code, normalize_code
from geocompass.core.models import SessionStatus

ALICE = player("alice")
BOB = player("bob")
CAROL = player("carol")


def test_generate_code_format():
    for _ in range(50):
        assert re.fullmatch(r"[A-Z0-9]{3}-[A-Z0-9]{3}", generate_code())


@pytest.mark.parametrize("raw", ["abc-123", " ABC123 ", "abc 123", "ABC-123"])
def test_normalize_code(raw):
    assert normalize_code(raw) == "ABC-123"


@pytest.mark.parametrize("raw", ["", None, "AB-123", "ABCD-1234", "AB$-123"])
def test_normalize_code_rejects(raw):
    with pytest.raises(Invalid):
        normalize_code(raw)


@pytest.mark.asyncio
async def test_create_session(sessions, stats):
    session = await sessions.create_session(ALICE)
    assert session.host_uid == "alice"
    assert list(session.members) == ["alice"]
    assert session.status == SessionStatus.WAITING
    assert session.current_round == 0
    assert session.chosen_mode_id is None
    assert session.fixed_location_set == []
    assert stats.sessions_created == 1

    fetched = await sessions.get_session(session.code.lower())
    assert fetched.to_dict() == session.to_dict()


@pytest.mark.asyncio
async def test_create_skips_codes_in_use(store):
    codes = iter(["AAA-111", "AAA-111", "BBB-222"])
    sessions = SessionManager(store, code_factory=lambda: next(codes))
    first = await sessions.create_session(ALICE)
    second = await sessions.create_session(BOB)
    assert (first.code, second.code) == ("AAA-111", "BBB-222")


@pytest.mark.asyncio
async def test_create_gives_up_when_no_code_is_free(store):
    sessions = SessionManager(store, code_attempts=3, code_factory=lambda: "AAA-111")
    await sessions.create_session(ALICE)
    with pytest.raises(Conflict):
        await sessions.create_session(BOB)


@pytest.mark.asyncio
async def test_join_keeps_order_and_is_idempotent(sessions, stats):
    session = await sessions.create_session(ALICE)
    await sessions.join_session(BOB, session.code)
    joined = await sessions.join_session(BOB, session.code)
    assert list(joined.members) == ["alice", "bob"]
    assert joined.members["bob"].display_name == "Bob"
    assert stats.joins == 2


@pytest.mark.asyncio
async def test_join_rejections(store, stats):
    sessions = SessionManager(store, stats, max_members=2)
    session = await sessions.create_session(ALICE)
    await sessions.join_session(BOB, session.code)
    with pytest.raises(Conflict, match="full"):
        await sessions.join_session(CAROL, session.code)
    with pytest.raises(NotFound):
        await sessions.join_session(CAROL, "ZZZ-999")
    assert stats.joins_rejected == 2


@pytest.mark.asyncio
async def test_join_after_start_is_rejected(sessions):
    session = await sessions.create_session(ALICE)
    await sessions.start_session(ALICE, session.code)
    with pytest.raises(Conflict, match="started"):
        await sessions.join_session(BOB, session.code)


@pytest.mark.asyncio
async def test_host_leaving_hands_off_to_earliest_joiner(sessions):
    session = await sessions.create_session(ALICE)
    await sessions.join_session(BOB, session.code)
    await sessions.join_session(CAROL, session.code)

    remaining = await sessions.leave_session(ALICE, session.code)
    assert remaining.host_uid == "bob"
    assert list(remaining.members) == ["bob", "carol"]


@pytest.mark.asyncio
async def test_member_leaving_keeps_host(sessions):
    session = await sessions.create_session(ALICE)
    await sessions.join_session(BOB, session.code)
    remaining = await sessions.leave_session(BOB, session.code)
    assert remaining.host_uid == "alice"
    assert list(remaining.members) == ["alice"]


@pytest.mark.asyncio
async def test_last_member_leaving_deletes_session(sessions, store, stats):
    session = await sessions.create_session(ALICE)
    assert await sessions.leave_session(ALICE, session.code) is None
    assert store.count(COLLECTION) == 0
    assert stats.sessions_deleted == 1
    with pytest.raises(NotFound):
        await sessions.get_session(session.code)
    # Leaving again is a no-op.
    assert await sessions.leave_session(ALICE, session.code) is None


@pytest.mark.asyncio
async def test_leave_when_not_member_changes_nothing(sessions, store):
    session = await sessions.create_session(ALICE)
    before = await store.get(COLLECTION, session.code)
    remaining = await sessions.leave_session(BOB, session.code)
    after = await store.get(COLLECTION, session.code)
    assert remaining.host_uid == "alice"
    assert after.version == before.version


@pytest.mark.asyncio
async def test_start_session(sessions):
    session = await sessions.create_session(ALICE)
    await sessions.join_session(BOB, session.code)
    with pytest.raises(Forbidden):
        await sessions.start_session(BOB, session.code)
    started = await sessions.start_session(ALICE, session.code)
    assert started.status == SessionStatus.PLAYING
    assert started.current_round == 0
    with pytest.raises(Conflict):
        await sessions.start_session(ALICE, session.code)


@pytest.mark.asyncio
async def test_start_needs_minimum_members(store):
    sessions = SessionManager(store, min_members_to_start=2)
    session = await sessions.create_session(ALICE)
    with pytest.raises(Conflict, match="At least 2"):
        await sessions.start_session(ALICE, session.code)


@pytest.mark.asyncio
async def test_subscribers_see_membership_changes(sessions):
    session = await sessions.create_session(ALICE)
    sub = sessions.subscribe(session.code)
    await sessions.join_session(BOB, session.code)
    await sessions.leave_session(BOB, session.code)
    await sessions.leave_session(ALICE, session.code)

    snaps = [await sub.get() for _ in range(4)]
    assert [len(s.data["members"]) if s.exists else None for s in snaps] == [1, 2, 1, None]
