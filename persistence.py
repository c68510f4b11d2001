"""
persistence.py - User/profile persistence with a local fallback.

Every operation tries the remote client first (Firestore in production). Any
exception from it is logged as a warning and the same operation is replayed
against the LocalStore, so a dead backend never blocks the UI. The fallback
keeps each collection as one JSON array under a fixed key and rewrites the
whole array on every write.
"""

import json
import logging
import threading

from local_store import PROFILES_KEY, USERS_KEY, LocalStore
from models import PROFILES, USERS, new_record_id, now_iso

logger = logging.getLogger(__name__)

# Streamlit runs every browser session in its own thread; a file-backed
# store is shared between them, so each read-modify-write holds this lock.
_LOCAL_LOCK = threading.Lock()


class PersistenceShim:
    def __init__(self, remote, local: LocalStore):
        self.remote = remote
        self.local = local

    # -------------------------------------------------------------------
    # Local collection helpers
    # -------------------------------------------------------------------

    def _read(self, key: str) -> list[dict]:
        raw = self.local.get(key)
        if not raw:
            return []
        try:
            records = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable local collection %s", key)
            return []
        return records if isinstance(records, list) else []

    def _write(self, key: str, records: list[dict]):
        self.local.put(key, json.dumps(records, ensure_ascii=False, default=str))

    def _local_find(self, key: str, field: str, value) -> dict | None:
        for record in self._read(key):
            if record.get(field) == value:
                return record
        return None

    def _local_create(self, key: str, data: dict, prefix: str) -> dict:
        now = now_iso()
        record = dict(data)
        record.setdefault("id", new_record_id(prefix))
        record["created_at"] = now
        record["updated_at"] = now
        with _LOCAL_LOCK:
            records = self._read(key)
            records.append(record)
            self._write(key, records)
        return record

    def _local_update(self, key: str, record_id: str, updates: dict) -> dict | None:
        with _LOCAL_LOCK:
            records = self._read(key)
            for i, record in enumerate(records):
                if record.get("id") == record_id:
                    merged = {**record, **updates, "id": record_id, "updated_at": now_iso()}
                    records[i] = merged
                    self._write(key, records)
                    return merged
        return None

    def _remote_find(self, collection: str, field: str, value) -> dict | None:
        rows = self.remote.list(collection, where={field: value}, limit=1)
        return rows[0] if rows else None

    # -------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------

    def find_user_by_email(self, email: str) -> dict | None:
        try:
            return self._remote_find(USERS, "email", email)
        except Exception as ex:
            logger.warning("Remote user lookup failed, using local store: %s", ex)
        return self._local_find(USERS_KEY, "email", email)

    def create_user(self, data: dict) -> dict:
        try:
            return self.remote.create(USERS, data)
        except Exception as ex:
            logger.warning("Remote user create failed, using local store: %s", ex)
        return self._local_create(USERS_KEY, data, "user")

    def update_user(self, user_id: str, updates: dict) -> dict | None:
        """Merge `updates` into the user. None when no backend knows the id."""
        try:
            return self.remote.update(USERS, user_id, updates)
        except Exception as ex:
            logger.warning("Remote user update failed, using local store: %s", ex)
        merged = self._local_update(USERS_KEY, user_id, updates)
        if merged is None:
            logger.warning("update_user: no user %s in the local store", user_id)
        return merged

    # -------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------

    def find_profile_by_user_id(self, user_id: str) -> dict | None:
        try:
            return self._remote_find(PROFILES, "user_id", user_id)
        except Exception as ex:
            logger.warning("Remote profile lookup failed, using local store: %s", ex)
        return self._local_find(PROFILES_KEY, "user_id", user_id)

    def create_profile(self, data: dict) -> dict:
        try:
            return self.remote.create(PROFILES, data)
        except Exception as ex:
            logger.warning("Remote profile create failed, using local store: %s", ex)
        return self._local_create(PROFILES_KEY, data, "profile")
