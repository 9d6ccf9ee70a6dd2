"""Document store interface (port) shared by every client of a session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class VersionConflict(Exception):
    """A write was conditioned on a version that is no longer current."""

    def __init__(self, collection: str, key: str, expected: int, actual: int) -> None:
        super().__init__(f"{collection}/{key}: expected version {expected}, found {actual}")
        self.collection = collection
        self.key = key
        self.expected = expected
        self.actual = actual


@dataclass(frozen=True)
class Snapshot:
    """One committed state of a document. ``data`` is None when absent."""
    collection: str
    key: str
    version: int
    data: dict | None

    @property
    def exists(self) -> bool:
        return self.data is not None


class Subscription(Protocol):
    """Push feed of every committed change to one document, in commit order.

    ``close`` ends iteration, including for a consumer already waiting.
    """

    async def get(self) -> Snapshot: ...

    def pending(self) -> int: ...

    def close(self) -> None: ...

    def __aiter__(self) -> Subscription: ...

    async def __anext__(self) -> Snapshot: ...


class DocumentStore(Protocol):
    """Port: single-document atomic reads/writes plus push subscriptions."""

    async def get(self, collection: str, key: str) -> Snapshot: ...

    async def create(self, collection: str, key: str, data: dict) -> Snapshot: ...

    async def compare_and_set(
        self, collection: str, key: str, expected_version: int, data: dict,
    ) -> Snapshot: ...

    async def delete(
        self, collection: str, key: str, expected_version: int | None = None,
    ) -> Snapshot: ...

    async def list(self, collection: str) -> list[Snapshot]: ...

    def subscribe(self, collection: str, key: str) -> Subscription: ...
