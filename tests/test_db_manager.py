"""Tests for the Firestore collection client against a fake Firestore."""

from datetime import datetime, timezone

import pytest
from firebase_admin import firestore

from db_manager import FirestoreClient

SERVER_TIME = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


def _resolve(data: dict) -> dict:
    return {k: SERVER_TIME if v is firestore.SERVER_TIMESTAMP else v for k, v in data.items()}


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocRef:
    def __init__(self, docs, doc_id):
        self._docs = docs
        self.id = doc_id

    def set(self, data):
        self._docs[self.id] = _resolve(data)

    def update(self, data):
        if self.id not in self._docs:
            raise LookupError(f"404 No document to update: {self.id}")
        self._docs[self.id].update(_resolve(data))

    def get(self):
        return FakeSnapshot(self.id, self._docs.get(self.id))

    def delete(self):
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, docs, filters=(), limit=None):
        self._docs = docs
        self._filters = filters
        self._limit = limit

    def where(self, field, op, value):
        assert op == "=="
        return FakeQuery(self._docs, self._filters + ((field, value),), self._limit)

    def limit(self, n):
        return FakeQuery(self._docs, self._filters, n)

    def stream(self):
        hits = [
            FakeSnapshot(doc_id, data) for doc_id, data in self._docs.items()
            if all(data.get(f) == v for f, v in self._filters)
        ]
        return iter(hits[: self._limit] if self._limit else hits)


class FakeCollection(FakeQuery):
    def document(self, doc_id):
        return FakeDocRef(self._docs, doc_id)

    def add(self, data):
        ref = FakeDocRef(self._docs, f"auto_{len(self._docs) + 1}")
        ref.set(data)
        return SERVER_TIME, ref


class FakeFirestore:
    def __init__(self):
        self.collections = {}

    def collection(self, name):
        return FakeCollection(self.collections.setdefault(name, {}))


@pytest.fixture
def client() -> FirestoreClient:
    return FirestoreClient(FakeFirestore())


class TestFirestoreClient:
    def test_create_with_id_returns_stored_record(self, client):
        created = client.create("users", {"id": "user_1", "email": "a@b.com"})

        assert created == {
            "id": "user_1",
            "email": "a@b.com",
            "created_at": SERVER_TIME.isoformat(),
            "updated_at": SERVER_TIME.isoformat(),
        }

    def test_create_without_id_uses_generated_id(self, client):
        created = client.create("userProfiles", {"user_id": "user_1"})

        assert created["id"] == "auto_1"
        assert created["user_id"] == "user_1"

    def test_list_filters_and_limits(self, client):
        client.create("users", {"id": "u1", "email": "a@b.com"})
        client.create("users", {"id": "u2", "email": "c@d.com"})
        client.create("users", {"id": "u3", "email": "a@b.com"})

        assert [r["id"] for r in client.list("users", where={"email": "a@b.com"})] == ["u1", "u3"]
        assert len(client.list("users", where={"email": "a@b.com"}, limit=1)) == 1
        assert client.list("users", where={"email": "x@y.com"}, limit=1) == []

    def test_update_merges_patch(self, client):
        client.create("users", {"id": "u1", "email": "a@b.com", "profile_completed": False})

        updated = client.update("users", "u1", {"profile_completed": True, "id": "ignored"})

        assert updated["id"] == "u1"
        assert updated["profile_completed"] is True
        assert updated["email"] == "a@b.com"

    def test_update_missing_document_raises(self, client):
        with pytest.raises(LookupError):
            client.update("users", "missing", {"profile_completed": True})

    def test_delete(self, client):
        client.create("users", {"id": "u1", "email": "a@b.com"})

        client.delete("users", "u1")

        assert client.list("users") == []
