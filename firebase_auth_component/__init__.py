"""Firebase Auth Streamlit Component.

Renders a "Sign in with Google" widget backed by the Firebase JS SDK and
returns the signed-in user's idToken back to Python via Streamlit's component
protocol.
"""

import os
import streamlit.components.v1 as components

_COMPONENT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "frontend")

_firebase_auth_component = components.declare_component(
    "firebase_auth",
    path=_COMPONENT_DIR,
)


def firebase_auth_widget(
    api_key: str,
    auth_domain: str,
    project_id: str,
    height: int = 120,
    action: str = "auth",
    key: str = "firebase_auth",
) -> dict | None:
    """Render the Firebase Auth widget.

    action="auth" reports the browser's auth state; action="logout" signs the
    browser out.

    Returns None until the Firebase SDK has restored its state, then one of:
      {idToken, email, displayName, photoURL, uid}   signed in
      {status: "signed_out"}                          no user
      {status: "logged_out"} / {status: "logout_error", message}
      {status: "error", message}                      sign-in popup failed
    """
    return _firebase_auth_component(
        api_key=api_key,
        auth_domain=auth_domain,
        project_id=project_id,
        height=height,
        action=action,
        key=key,
        default=None,
    )
