"""
auth_manager.py - Google sign-in through Firebase Authentication.

The browser widget (firebase_auth_component) runs the Firebase JS SDK and
reports the signed-in user's ID token back to Python. The token is verified
server-side (Admin SDK, then the Identity Toolkit REST API) and turned into an
auth state:

    {"is_loading": bool, "user": {email, display_name, photo_url, uid} | None}

Auth states are published on a per-tab AuthStateStream; subscribers (the app)
resolve the matching User record with sync_user().

Requires `web_api_key` and `project_id` in Streamlit secrets under [firebase].
"""

import json
import logging
from pathlib import Path
from urllib.parse import urlsplit

import requests
import streamlit as st

from db_manager import verify_firebase_token
from models import normalize_completed, now_iso, user_from_identity
from settings import get_setting
from view_router import initial_view_state

try:
    from firebase_auth_component import firebase_auth_widget
except Exception:
    firebase_auth_widget = None

logger = logging.getLogger(__name__)

_IDENTITY_KEY = "auth_identity"
_TOKEN_KEY = "auth_token"
_GENERATION_KEY = "auth_widget_generation"
_LOGOUT_KEY = "auth_logout_requested"
_STREAM_KEY = "auth_stream"
_SUBSCRIPTION_KEY = "auth_unsubscribe"

LOADING_STATE = {"is_loading": True, "user": None}
SIGNED_OUT_STATE = {"is_loading": False, "user": None}


# ───────────────────────────────────────────────
# Firebase web config
# ───────────────────────────────────────────────

def _get_web_api_key() -> str:
    return get_setting("firebase", "web_api_key", "FIREBASE_WEB_API_KEY")


def _get_project_id() -> str:
    """Resolve Firebase project id from secrets, env, or the service-account key file."""
    project_id = get_setting("firebase", "project_id", "FIREBASE_PROJECT_ID")
    if not project_id:
        key_path = Path(__file__).parent / "firestore-key.json"
        try:
            if key_path.exists():
                project_id = json.loads(key_path.read_text(encoding="utf-8")).get("project_id", "")
        except (OSError, ValueError):
            logger.warning("Could not read project_id from %s", key_path)
    return str(project_id).strip()


def _get_auth_domain(project_id: str) -> str:
    """Resolve Firebase auth domain, with default <project>.firebaseapp.com."""
    auth_domain = get_setting("firebase", "auth_domain", "FIREBASE_AUTH_DOMAIN")
    if not auth_domain and project_id:
        auth_domain = f"{project_id}.firebaseapp.com"
    return auth_domain


def can_use_browser_auth() -> bool:
    """Check if the browser Firebase widget can be used."""
    return bool(firebase_auth_widget and _get_web_api_key() and _get_project_id())


def _build_origin_headers() -> dict:
    """Build Origin/Referer headers for API key referrer restrictions."""
    headers = {"Content-Type": "application/json"}
    redirect_uri = get_setting("auth", "redirect_uri", "AUTH_REDIRECT_URI")
    origin = ""
    if redirect_uri:
        parts = urlsplit(redirect_uri)
        if parts.scheme and parts.netloc:
            origin = f"{parts.scheme}://{parts.netloc}"
    else:
        try:
            host = st.context.headers.get("Host", "")
            scheme = st.context.headers.get("X-Forwarded-Proto", "https")
            if host:
                origin = f"{scheme}://{host}"
        except Exception:
            # No script run context (tests, bare mode)
            pass
    if origin:
        headers["Origin"] = origin
        headers["Referer"] = f"{origin}/"
    return headers


# ───────────────────────────────────────────────
# Token verification
# ───────────────────────────────────────────────

def _firebase_lookup_by_id_token(id_token: str) -> dict | None:
    """Identity lookup from Firebase REST when Admin verify is unavailable."""
    api_key = _get_web_api_key()
    if not api_key:
        return None

    url = f"https://identitytoolkit.googleapis.com/v1/accounts:lookup?key={api_key}"
    try:
        resp = requests.post(url, json={"idToken": id_token}, headers=_build_origin_headers(), timeout=15)
        data = resp.json()
    except (requests.RequestException, ValueError) as ex:
        logger.warning("Identity Toolkit lookup failed: %s", ex)
        return None
    if "error" in data:
        logger.warning("Identity Toolkit rejected token: %s", data.get("error"))
        return None
    users = data.get("users", [])
    if not users:
        return None
    user = users[0] or {}
    return {
        "email": str(user.get("email", "")).strip().lower(),
        "uid": str(user.get("localId", "")).strip(),
        "display_name": str(user.get("displayName", "")).strip(),
        "photo_url": str(user.get("photoUrl", "")).strip(),
    }


def identity_from_id_token(id_token: str) -> dict | None:
    """Resolve a verified identity from an ID token via Admin SDK, then REST."""
    claims = verify_firebase_token(id_token)
    if claims:
        return {
            "email": str(claims.get("email", "")).strip().lower(),
            "uid": str(claims.get("uid", "")).strip(),
            "display_name": str(claims.get("name", "")).strip(),
            "photo_url": str(claims.get("picture", "")).strip(),
        }
    return _firebase_lookup_by_id_token(id_token)


# ───────────────────────────────────────────────
# Auth state stream
# ───────────────────────────────────────────────

class AuthStateStream:
    """Delivers auth state changes to subscribed listeners.

    publish() is called on every rerun; listeners only see states that
    differ from the previous one.
    """

    _UNSET = object()

    def __init__(self):
        self._listeners = []
        self._last = self._UNSET

    @property
    def last(self) -> dict | None:
        return None if self._last is self._UNSET else self._last

    def subscribe(self, listener):
        """Register `listener(state)`; returns the teardown callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, state: dict) -> bool:
        if state == self._last:
            return False
        self._last = state
        for listener in list(self._listeners):
            listener(state)
        return True


def get_auth_stream(session=None) -> AuthStateStream:
    """The stream for this browser tab."""
    session = st.session_state if session is None else session
    if _STREAM_KEY not in session:
        session[_STREAM_KEY] = AuthStateStream()
    return session[_STREAM_KEY]


def subscribe_session(listener, session=None) -> AuthStateStream:
    """Subscribe `listener` once per session and keep its teardown handle."""
    session = st.session_state if session is None else session
    stream = get_auth_stream(session)
    if _SUBSCRIPTION_KEY not in session:
        session[_SUBSCRIPTION_KEY] = stream.subscribe(listener)
    return stream


def release_subscription(session=None):
    """Run the stored teardown handle, if any."""
    session = st.session_state if session is None else session
    unsubscribe = session.pop(_SUBSCRIPTION_KEY, None)
    if unsubscribe is not None:
        unsubscribe()


# ───────────────────────────────────────────────
# Browser widget
# ───────────────────────────────────────────────

def _widget_key(prefix: str) -> str:
    # A fresh key after logout drops the widget's last reported value.
    return f"{prefix}_{st.session_state.get(_GENERATION_KEY, 0)}"


def _render_browser_auth_widget(action: str = "auth", height: int = 120, key: str = "firebase_auth"):
    """Render browser Firebase auth widget and return its payload."""
    project_id = _get_project_id()
    try:
        return firebase_auth_widget(
            api_key=_get_web_api_key(),
            auth_domain=_get_auth_domain(project_id),
            project_id=project_id,
            height=height,
            action=action,
            key=key,
        )
    except Exception:
        logger.exception("Firebase auth widget failed to render")
        return None


def _clear_identity():
    st.session_state.pop(_IDENTITY_KEY, None)
    st.session_state.pop(_TOKEN_KEY, None)


def state_from_payload(payload: dict | None, session: dict, verify=identity_from_id_token) -> dict:
    """Turn a widget payload into an auth state, caching the verified identity in `session`.

    The widget reports nothing until the Firebase SDK has restored its auth
    state, which is the loading phase.
    """
    if not isinstance(payload, dict):
        return dict(LOADING_STATE)

    status = str(payload.get("status", "")).strip()
    if status == "loading":
        return dict(LOADING_STATE)
    if status in ("signed_out", "logged_out"):
        session.pop(_IDENTITY_KEY, None)
        session.pop(_TOKEN_KEY, None)
        return dict(SIGNED_OUT_STATE)
    if status == "error":
        logger.warning("Auth widget error: %s", payload.get("message", ""))
        return {**SIGNED_OUT_STATE, "error": str(payload.get("message", "sign_in_failed"))}

    id_token = str(payload.get("idToken", "")).strip()
    if not id_token:
        return dict(SIGNED_OUT_STATE)

    if session.get(_TOKEN_KEY) == id_token and session.get(_IDENTITY_KEY):
        return {"is_loading": False, "user": session[_IDENTITY_KEY]}

    identity = verify(id_token)
    if not identity or not identity.get("email"):
        session.pop(_IDENTITY_KEY, None)
        session.pop(_TOKEN_KEY, None)
        return {**SIGNED_OUT_STATE, "error": "invalid_token"}

    # The browser knows the Google profile even when the REST lookup does not.
    identity = {
        "email": identity["email"],
        "uid": identity.get("uid") or str(payload.get("uid", "")).strip(),
        "display_name": identity.get("display_name") or str(payload.get("displayName") or "").strip(),
        "photo_url": identity.get("photo_url") or str(payload.get("photoURL") or "").strip(),
    }
    session[_IDENTITY_KEY] = identity
    session[_TOKEN_KEY] = id_token
    logger.info("Signed in %s", identity["email"])
    return {"is_loading": False, "user": identity}


def read_auth_state() -> dict:
    """Render the auth widget for this rerun and return the current auth state."""
    if st.session_state.get(_LOGOUT_KEY) and not can_use_browser_auth():
        st.session_state.pop(_LOGOUT_KEY, None)

    if st.session_state.get(_LOGOUT_KEY):
        payload = _render_browser_auth_widget(action="logout", height=1, key=_widget_key("firebase_auth_logout"))
        if isinstance(payload, dict) and payload.get("status") in ("logged_out", "logout_error"):
            if payload.get("status") == "logout_error":
                logger.warning("Browser sign-out failed: %s", payload.get("message", ""))
            st.session_state.pop(_LOGOUT_KEY, None)
            st.session_state[_GENERATION_KEY] = st.session_state.get(_GENERATION_KEY, 0) + 1
            st.rerun()
        return dict(LOADING_STATE)

    if not can_use_browser_auth():
        return {**SIGNED_OUT_STATE, "error": "not_configured"}

    payload = _render_browser_auth_widget(action="auth", height=120, key=_widget_key("firebase_auth_main"))
    return state_from_payload(payload, st.session_state)


def request_logout():
    """Sign out server-side now; the browser SDK signs out on the next rerun."""
    email = (st.session_state.get(_IDENTITY_KEY) or {}).get("email", "")
    _clear_identity()
    release_subscription(st.session_state)
    st.session_state[_LOGOUT_KEY] = True
    logger.info("Sign-out requested for %s", email or "unknown user")


# ───────────────────────────────────────────────
# User resolution
# ───────────────────────────────────────────────

def sync_user(shim, state: dict, previous: dict | None = None) -> dict:
    """Resolve (or create) the User for an auth state and return the new view state.

    Persistence problems never strand the user: on any failure an in-memory
    user is synthesised and sent to profile completion.
    """
    if state.get("is_loading"):
        view_state = dict(previous or initial_view_state())
        view_state["is_loading"] = True
        return view_state

    view_state = initial_view_state()
    view_state["is_loading"] = False

    identity = state.get("user")
    if not identity:
        return view_state

    try:
        user = shim.find_user_by_email(identity["email"])
        if user is None:
            user = shim.create_user(user_from_identity(identity))
            logger.info("Created user %s for %s", user.get("id"), identity["email"])
        completed = normalize_completed(user.get("profile_completed"))
        view_state["user"] = {**user, "profile_completed": completed}
        view_state["profile_completed"] = completed
    except Exception:
        logger.exception("Could not resolve user %s, continuing with a local user", identity.get("email"))
        fallback = user_from_identity(identity)
        fallback["created_at"] = fallback["updated_at"] = now_iso()
        view_state["user"] = fallback
        view_state["profile_completed"] = False

    return view_state
