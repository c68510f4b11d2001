"""
db_manager.py - Firestore access for the onboarding app.

Firestore Collections:
  users/{user_id}            - User document (email, name, google_id, profile_completed, ...)
  userProfiles/{profile_id}  - Extended profile (user_id, organization, role, phone_number)

Setup:
  1. Create a Firebase project at https://console.firebase.google.com/
  2. Enable Firestore in Native mode and the Google sign-in provider
  3. Generate a service account key (Project Settings > Service Accounts > Generate new private key)
  4. Save it as firestore-key.json in the project root
  5. Or set GOOGLE_APPLICATION_CREDENTIALS, or configure [firebase] in .streamlit/secrets.toml
"""

import logging
import os
from datetime import datetime
from pathlib import Path

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials, firestore

from settings import get_section

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# INITIALISATION
# ---------------------------------------------------------------------------

_db = None
_init_error = None


def _find_credentials():
    """Resolve Admin SDK credentials.

    Auth priority:
      1. Streamlit secrets [firebase] section with service-account fields
      2. GOOGLE_APPLICATION_CREDENTIALS env var / firestore-key.json in project root
      3. Application Default Credentials (Cloud Run / GCE - no key needed)
    """
    firebase_cfg = get_section("firebase")
    if firebase_cfg.get("private_key") and firebase_cfg.get("client_email"):
        return credentials.Certificate(firebase_cfg)

    key_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
    candidates = [key_path] if key_path else []
    candidates += [
        str(Path(__file__).parent / "firestore-key.json"),
        str(Path(__file__).parent / "serviceAccountKey.json"),
    ]
    for path in candidates:
        if path and Path(path).exists():
            return credentials.Certificate(path)

    try:
        return credentials.ApplicationDefault()
    except Exception as ex:
        raise RuntimeError(
            "Firebase credentials not found. Place firestore-key.json "
            "in the project root, or set GOOGLE_APPLICATION_CREDENTIALS, "
            "or configure [firebase] in .streamlit/secrets.toml"
        ) from ex


def _ensure_app():
    if not firebase_admin._apps:
        firebase_admin.initialize_app(_find_credentials())
        logger.info("Firebase Admin SDK initialised")


def _get_db():
    """Lazy-initialise the Firestore client.

    A failed initialisation is remembered for the life of the process so an
    unconfigured deployment does not search for credentials on every call.
    """
    global _db, _init_error
    if _db is not None:
        return _db
    if _init_error is not None:
        raise _init_error
    try:
        _ensure_app()
        _db = firestore.client()
    except Exception as ex:
        _init_error = ex
        logger.error("Firestore unavailable, local store only until restart: %s", ex)
        raise
    return _db


def verify_firebase_token(id_token: str) -> dict | None:
    """Verify a Firebase ID token with the Admin SDK. Returns claims or None."""
    if not id_token:
        return None
    try:
        _ensure_app()
        return firebase_auth.verify_id_token(id_token)
    except Exception as ex:
        logger.warning("Admin SDK could not verify ID token: %s", ex)
        return None


# ===================================================================
# COLLECTION CLIENT
# ===================================================================

def _plain(value):
    """Firestore timestamps come back as datetimes; keep records JSON-friendly."""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _doc_to_dict(doc) -> dict:
    data = {k: _plain(v) for k, v in (doc.to_dict() or {}).items()}
    data["id"] = doc.id
    return data


class FirestoreClient:
    """Generic collection operations over Firestore.

    Every method raises on failure (missing credentials, network, permission,
    NotFound on update); callers decide how to recover.
    """

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = _get_db()
        return self._db

    def list(self, collection: str, where: dict | None = None, limit: int | None = None) -> list[dict]:
        """Equality-filtered query; `where` maps field name to value."""
        query = self.db.collection(collection)
        for field, value in (where or {}).items():
            query = query.where(field, "==", value)
        if limit:
            query = query.limit(limit)
        return [_doc_to_dict(doc) for doc in query.stream()]

    def create(self, collection: str, record: dict) -> dict:
        """Write a new document and return it as stored (server timestamps resolved)."""
        data = dict(record)
        doc_id = data.pop("id", None)
        data["created_at"] = firestore.SERVER_TIMESTAMP
        data["updated_at"] = firestore.SERVER_TIMESTAMP
        if doc_id:
            doc_ref = self.db.collection(collection).document(doc_id)
            doc_ref.set(data)
        else:
            _, doc_ref = self.db.collection(collection).add(data)
        return _doc_to_dict(doc_ref.get())

    def update(self, collection: str, record_id: str, patch: dict) -> dict:
        """Partial update; raises google.api_core NotFound if the document is missing."""
        data = {k: v for k, v in patch.items() if k != "id"}
        data["updated_at"] = firestore.SERVER_TIMESTAMP
        doc_ref = self.db.collection(collection).document(record_id)
        doc_ref.update(data)
        return _doc_to_dict(doc_ref.get())

    def delete(self, collection: str, record_id: str):
        self.db.collection(collection).document(record_id).delete()
