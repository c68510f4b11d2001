"""
local_store.py - Local key/value area used when Firestore is unreachable.

A LocalStore only knows text values under named keys. The persistence shim
owns the serialization (one JSON array per collection).

  MemoryStore  - backed by any mutable mapping; with st.session_state it is
                 scoped to the browser tab, with no mapping it is a plain
                 in-memory store for tests.
  FileStore    - a single JSON file shared by every session of the process.
"""

import json
import logging
import tempfile
import threading
from collections.abc import MutableMapping
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_FILE_LOCK = threading.Lock()

USERS_KEY = "google_sso_users"
PROFILES_KEY = "google_sso_profiles"


class LocalStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Key/value store over a mutable mapping."""

    def __init__(self, backing: MutableMapping | None = None, namespace: str = "local_store"):
        self._backing = backing if backing is not None else {}
        self._namespace = namespace

    def _area(self) -> dict:
        if self._namespace not in self._backing:
            self._backing[self._namespace] = {}
        return self._backing[self._namespace]

    def get(self, key: str) -> str | None:
        return self._area().get(key)

    def put(self, key: str, value: str) -> None:
        self._area()[key] = value


class FileStore:
    """Key/value store persisted as one JSON object on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Local store %s is unreadable, starting empty", self.path)
            return {}
        return raw if isinstance(raw, dict) else {}

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def put(self, key: str, value: str) -> None:
        with _FILE_LOCK:
            data = self._load()
            data[key] = value
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path.parent,
                prefix=f".{self.path.name}.", suffix=".tmp", delete=False,
            ) as tmp:
                tmp.write(json.dumps(data, ensure_ascii=False))
            Path(tmp.name).replace(self.path)
