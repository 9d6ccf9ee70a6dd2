"""Optimistic read-modify-write over the document store.

Read the current version, apply the mutation to a copy, write conditioned on
the version being unchanged. On a version conflict the whole read-mutate-write
is retried (the mutation re-validates against the fresh state); a second
conflict surfaces as Conflict.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import structlog

from geocompass.core.errors import Conflict
from geocompass.store.base import VersionConflict

if TYPE_CHECKING:
    from geocompass.core.stats import ServerStats
    from geocompass.store.base import DocumentStore, Snapshot

log = structlog.get_logger()

# Return from a mutation to delete the document.
DELETE = object()

# Read + one retry.
DEFAULT_ATTEMPTS = 2


async def transact(
    store: DocumentStore,
    collection: str,
    key: str,
    mutate: Callable[[dict | None], object],
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    stats: ServerStats | None = None,
) -> Snapshot:
    """Apply ``mutate`` atomically to one document.

    ``mutate`` receives the current data (None if absent) and returns the new
    data, ``DELETE``, or None to leave the document untouched. It may raise
    GameError to abort. Returns the snapshot that is current afterwards.
    """
    for attempt in range(1, attempts + 1):
        snapshot = await store.get(collection, key)
        result = mutate(snapshot.data)
        if result is None:
            return snapshot
        try:
            if result is DELETE:
                return await store.delete(collection, key, expected_version=snapshot.version)
            if snapshot.data is None:
                return await store.create(collection, key, result)
            return await store.compare_and_set(collection, key, snapshot.version, result)
        except VersionConflict:
            log.info("document_write_conflict", collection=collection, key=key, attempt=attempt)
            if stats is not None:
                stats.record_cas_retry()
    raise Conflict(f"{collection}/{key} changed concurrently; please retry.")
