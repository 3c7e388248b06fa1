from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from .model import OutboxEntry, SyncOutcome

logger = logging.getLogger(__name__)


class LocalStore(Protocol):
    """Device-local durable storage for the outbox; survives process restart."""

    def append(self, entry: OutboxEntry) -> None:
        raise NotImplementedError

    def entries(self) -> Sequence[OutboxEntry]:
        """Queued entries in append order."""

        raise NotImplementedError

    def resolve(self, local_id: str, outcome: Optional[SyncOutcome]) -> bool:
        """Atomically remove an entry and (optionally) record its outcome."""

        raise NotImplementedError

    def outcomes(self) -> Sequence[SyncOutcome]:
        raise NotImplementedError

    def clear_outcomes(self) -> None:
        raise NotImplementedError


class JsonFileStore:
    """Single JSON document holding queued entries and resolved outcomes.

    Every mutation rewrites the document to a temp file and ``os.replace``s it
    over the old one, so a crash leaves either the old or the new state.
    """

    def __init__(self, path: str | os.PathLike):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: OutboxEntry) -> None:
        with self._lock:
            doc = self._load()
            doc["entries"].append(entry.to_dict())
            self._save(doc)

    def entries(self) -> Sequence[OutboxEntry]:
        with self._lock:
            return [OutboxEntry.from_dict(e) for e in self._load()["entries"]]

    def resolve(self, local_id: str, outcome: Optional[SyncOutcome]) -> bool:
        with self._lock:
            doc = self._load()
            remaining = [e for e in doc["entries"] if e["local_id"] != local_id]
            if len(remaining) == len(doc["entries"]):
                return False
            doc["entries"] = remaining
            if outcome is not None:
                doc["outcomes"].append(outcome.to_dict())
            self._save(doc)
            return True

    def outcomes(self) -> Sequence[SyncOutcome]:
        with self._lock:
            return [SyncOutcome.from_dict(o) for o in self._load()["outcomes"]]

    def clear_outcomes(self) -> None:
        with self._lock:
            doc = self._load()
            doc["outcomes"] = []
            self._save(doc)

    def _load(self) -> dict:
        if not self._path.exists():
            return {"entries": [], "outcomes": []}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                doc = json.load(f)
        except ValueError:
            # Leave the unreadable file for inspection instead of silently overwriting it.
            corrupt = self._path.with_suffix(self._path.suffix + ".corrupt")
            os.replace(self._path, corrupt)
            logger.error("Outbox file %s was unreadable; moved to %s", self._path, corrupt)
            return {"entries": [], "outcomes": []}
        doc.setdefault("entries", [])
        doc.setdefault("outcomes", [])
        return doc

    def _save(self, doc: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self._path.name, suffix=".tmp", dir=str(self._path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


class MemoryStore:
    """Non-durable store for tests and kiosks that accept losing the queue."""

    def __init__(self):
        self._entries: List[OutboxEntry] = []
        self._outcomes: List[SyncOutcome] = []
        self._lock = threading.Lock()

    def append(self, entry: OutboxEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> Sequence[OutboxEntry]:
        with self._lock:
            return list(self._entries)

    def resolve(self, local_id: str, outcome: Optional[SyncOutcome]) -> bool:
        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.local_id != local_id]
            if len(self._entries) == before:
                return False
            if outcome is not None:
                self._outcomes.append(outcome)
            return True

    def outcomes(self) -> Sequence[SyncOutcome]:
        with self._lock:
            return list(self._outcomes)

    def clear_outcomes(self) -> None:
        with self._lock:
            self._outcomes.clear()
