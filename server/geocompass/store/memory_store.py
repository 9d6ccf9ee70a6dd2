"""In-process asyncio implementation of DocumentStore.

Every method runs to completion without awaiting, so each call is atomic
with respect to other coroutines on the same event loop. Subscribers get
their own asyncio.Queue; commits are fanned out in commit order.
"""

from __future__ import annotations

import asyncio
import copy

import structlog

from geocompass.store.base import Snapshot, VersionConflict

log = structlog.get_logger()


# Wakes a consumer blocked in get() when the subscription is closed.
_CLOSED = object()


class QueueSubscription:
    """Subscription backed by an unbounded asyncio.Queue."""

    def __init__(self, store: MemoryDocumentStore, collection: str, key: str) -> None:
        self._store = store
        self._doc = (collection, key)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._sentinel_queued = False
        self.closed = False

    def push(self, snapshot: Snapshot) -> None:
        if not self.closed:
            self._queue.put_nowait(snapshot)

    async def get(self) -> Snapshot:
        """Next snapshot. Raises StopAsyncIteration once closed and drained."""
        item = await self._queue.get()
        if item is _CLOSED:
            self._sentinel_queued = False
            raise StopAsyncIteration
        return item

    def pending(self) -> int:
        return self._queue.qsize() - (1 if self._sentinel_queued else 0)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._store._unsubscribe(self._doc, self)
            self._queue.put_nowait(_CLOSED)
            self._sentinel_queued = True

    def __aiter__(self) -> QueueSubscription:
        return self

    async def __anext__(self) -> Snapshot:
        if self.closed:
            raise StopAsyncIteration
        return await self.get()


class MemoryDocumentStore:
    """DocumentStore held in a dict. Zero dependencies."""

    def __init__(self) -> None:
        self._docs: dict[tuple[str, str], dict] = {}
        # Versions survive deletion so a recreated document never reuses one.
        self._versions: dict[tuple[str, str], int] = {}
        self._subscribers: dict[tuple[str, str], list[QueueSubscription]] = {}

    def _snapshot(self, collection: str, key: str) -> Snapshot:
        doc = (collection, key)
        data = self._docs.get(doc)
        return Snapshot(
            collection=collection,
            key=key,
            version=self._versions.get(doc, 0),
            data=copy.deepcopy(data) if data is not None else None,
        )

    def _commit(self, collection: str, key: str, data: dict | None) -> Snapshot:
        doc = (collection, key)
        self._versions[doc] = self._versions.get(doc, 0) + 1
        if data is None:
            self._docs.pop(doc, None)
        else:
            self._docs[doc] = copy.deepcopy(data)
        snapshot = self._snapshot(collection, key)
        for sub in list(self._subscribers.get(doc, ())):
            sub.push(snapshot)
        self._persist(snapshot)
        return snapshot

    def _persist(self, snapshot: Snapshot) -> None:
        """Hook for durable subclasses."""

    async def get(self, collection: str, key: str) -> Snapshot:
        return self._snapshot(collection, key)

    async def create(self, collection: str, key: str, data: dict) -> Snapshot:
        doc = (collection, key)
        if doc in self._docs:
            version = self._versions.get(doc, 0)
            raise VersionConflict(collection, key, expected=-1, actual=version)
        snapshot = self._commit(collection, key, data)
        log.debug("document_created", collection=collection, key=key, version=snapshot.version)
        return snapshot

    async def compare_and_set(
        self, collection: str, key: str, expected_version: int, data: dict,
    ) -> Snapshot:
        doc = (collection, key)
        actual = self._versions.get(doc, 0)
        if actual != expected_version or doc not in self._docs:
            raise VersionConflict(collection, key, expected_version, actual)
        return self._commit(collection, key, data)

    async def delete(
        self, collection: str, key: str, expected_version: int | None = None,
    ) -> Snapshot:
        doc = (collection, key)
        actual = self._versions.get(doc, 0)
        if expected_version is not None and actual != expected_version:
            raise VersionConflict(collection, key, expected_version, actual)
        if doc not in self._docs:
            return self._snapshot(collection, key)
        snapshot = self._commit(collection, key, None)
        log.debug("document_deleted", collection=collection, key=key)
        return snapshot

    async def list(self, collection: str) -> list[Snapshot]:
        return [
            self._snapshot(coll, key)
            for (coll, key) in list(self._docs)
            if coll == collection
        ]

    def count(self, collection: str) -> int:
        return sum(1 for (coll, _) in self._docs if coll == collection)

    def subscribe(self, collection: str, key: str) -> QueueSubscription:
        """Open a feed on one document. The current state is delivered first."""
        sub = QueueSubscription(self, collection, key)
        self._subscribers.setdefault((collection, key), []).append(sub)
        sub.push(self._snapshot(collection, key))
        return sub

    def _unsubscribe(self, doc: tuple[str, str], sub: QueueSubscription) -> None:
        subs = self._subscribers.get(doc)
        if not subs:
            return
        if sub in subs:
            subs.remove(sub)
        if not subs:
            del self._subscribers[doc]

    def subscriber_count(self, collection: str, key: str) -> int:
        return len(self._subscribers.get((collection, key), ()))
