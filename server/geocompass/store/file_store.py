"""File-backed document store.

Keeps the working set in memory (see MemoryDocumentStore) and mirrors every
commit to disk as one JSON file per document:

Directory structure: base_dir/<collection>/<key>.json

On startup all existing files are loaded back, so sessions, custom modes and
the location cache survive a restart.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import structlog

from geocompass.store.base import Snapshot
from geocompass.store.memory_store import MemoryDocumentStore

log = structlog.get_logger()


class FileDocumentStore(MemoryDocumentStore):
    """DocumentStore persisted under ``base_dir``."""

    def __init__(self, base_dir: str | Path) -> None:
        super().__init__()
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._load()

    def _path(self, collection: str, key: str) -> Path:
        return self._base_dir / collection / f"{key}.json"

    def _load(self) -> None:
        loaded = 0
        for coll_dir in sorted(p for p in self._base_dir.iterdir() if p.is_dir()):
            for path in sorted(coll_dir.glob("*.json")):
                try:
                    record = json.loads(path.read_text())
                except (json.JSONDecodeError, OSError):
                    log.warning("document_unreadable", path=str(path), exc_info=True)
                    continue
                doc = (coll_dir.name, path.stem)
                self._docs[doc] = record["data"]
                self._versions[doc] = record.get("version", 1)
                loaded += 1
        log.info("file_store_loaded", base_dir=str(self._base_dir), documents=loaded)

    def _persist(self, snapshot: Snapshot) -> None:
        path = self._path(snapshot.collection, snapshot.key)
        if snapshot.data is None:
            path.unlink(missing_ok=True)
            log.debug("document_file_removed", path=str(path))
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({"version": snapshot.version, "data": snapshot.data}, separators=(",", ":"))
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            f.write(payload)
        os.replace(tmp_path, path)
        log.debug("document_written", path=str(path), version=snapshot.version)
