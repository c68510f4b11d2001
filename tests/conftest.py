"""Pytest configuration and fixtures."""

import pytest

from local_store import MemoryStore
from persistence import PersistenceShim


class FakeRemote:
    """In-memory stand-in for db_manager.FirestoreClient."""

    def __init__(self):
        self.collections = {}
        self.calls = []
        self._seq = 0

    def list(self, collection, where=None, limit=None):
        self.calls.append(("list", collection))
        rows = [
            dict(r) for r in self.collections.get(collection, [])
            if all(r.get(k) == v for k, v in (where or {}).items())
        ]
        return rows[:limit] if limit else rows

    def create(self, collection, record):
        self.calls.append(("create", collection))
        self._seq += 1
        stored = dict(record)
        stored.setdefault("id", f"remote_{self._seq}")
        stored["created_at"] = stored["updated_at"] = "2026-01-05T10:00:00+00:00"
        self.collections.setdefault(collection, []).append(stored)
        return dict(stored)

    def update(self, collection, record_id, patch):
        self.calls.append(("update", collection))
        for row in self.collections.get(collection, []):
            if row["id"] == record_id:
                row.update(patch)
                row["updated_at"] = "2026-01-06T10:00:00+00:00"
                return dict(row)
        raise LookupError(f"No document to update: {record_id}")

    def delete(self, collection, record_id):
        self.calls.append(("delete", collection))
        rows = self.collections.get(collection, [])
        self.collections[collection] = [r for r in rows if r["id"] != record_id]


class FailingRemote:
    """Remote client whose every call fails, like an unreachable Firestore."""

    def __init__(self):
        self.calls = []

    def _fail(self, name):
        self.calls.append(name)
        raise ConnectionError("backend unreachable")

    def list(self, collection, where=None, limit=None):
        self._fail("list")

    def create(self, collection, record):
        self._fail("create")

    def update(self, collection, record_id, patch):
        self._fail("update")

    def delete(self, collection, record_id):
        self._fail("delete")


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def failing_remote() -> FailingRemote:
    return FailingRemote()


@pytest.fixture
def local() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def shim(remote: FakeRemote, local: MemoryStore) -> PersistenceShim:
    """Shim with a working remote backend."""
    return PersistenceShim(remote, local)


@pytest.fixture
def offline_shim(failing_remote: FailingRemote, local: MemoryStore) -> PersistenceShim:
    """Shim whose remote backend always fails."""
    return PersistenceShim(failing_remote, local)


@pytest.fixture
def identity() -> dict:
    return {
        "email": "ada@example.com",
        "display_name": "Ada Lovelace",
        "photo_url": "https://example.com/ada.png",
        "uid": "google-uid-1",
    }
