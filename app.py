"""
app.py - Google SSO onboarding app.

Pages:
  1. Loading            - until the browser reports its Firebase auth state
  2. Login              - "Sign in with Google"
  3. Profile completion - organization / role / phone, required once
  4. Dashboard          - profile details, edit profile, sign out

Run with:  streamlit run app.py
"""

import logging
from html import escape

import streamlit as st

from auth_manager import read_auth_state, request_logout, subscribe_session, sync_user
from db_manager import FirestoreClient
from local_store import FileStore, MemoryStore
from models import ROLE_OPTIONS, format_date, initials
from persistence import PersistenceShim
from profile_form import ProfileForm
from settings import local_store_kind, local_store_path, setup_logging
from view_router import View, current_view, finish_editing, initial_view_state, start_editing

logger = logging.getLogger(__name__)

APP_CSS = """
<style>
.page-header { text-align: center; margin: 24px 0 16px; }
.page-header h1 { color: #1A237E; font-weight: 800; font-size: 2rem; margin: 0 0 4px; }
.page-header p { color: #5C6BC0; font-size: 1rem; margin: 0; }
.avatar {
    width: 72px; height: 72px; border-radius: 50%; margin: 0 auto 8px;
    display: flex; align-items: center; justify-content: center;
    background: linear-gradient(90deg, #22C55E, #059669); color: #FFFFFF;
    font-size: 1.5rem; font-weight: 700; overflow: hidden;
}
.avatar img { width: 100%; height: 100%; object-fit: cover; }
.badge { display: inline-block; padding: 2px 10px; border-radius: 12px; font-size: 0.8rem; font-weight: 600; }
.badge-done { background: #C8E6C9; color: #1B5E20; }
.badge-pending { background: #FFE0B2; color: #E65100; }
.field-label { color: #78909C; font-size: 0.8rem; margin-bottom: 0; }
.field-value { color: #263238; font-weight: 600; margin-top: 0; }
</style>
"""


# ===================================================================
# HELPERS
# ===================================================================

def _session_default(key: str, factory):
    if key not in st.session_state:
        st.session_state[key] = factory()
    return st.session_state[key]


def get_shim() -> PersistenceShim:
    """One persistence shim per browser tab."""
    def build():
        if local_store_kind() == "file":
            local = FileStore(local_store_path())
        else:
            local = MemoryStore(st.session_state)
        return PersistenceShim(FirestoreClient(), local)

    return _session_default("shim", build)


def avatar_html(user: dict) -> str:
    url = user.get("avatar_url")
    if url:
        return f'<div class="avatar"><img src="{escape(url)}" alt="{escape(user.get("name", ""))}"></div>'
    return f'<div class="avatar">{escape(initials(user.get("name", "")))}</div>'


def header_html(title: str, subtitle: str) -> str:
    return (
        f'<div class="page-header"><h1>{escape(title)}</h1>'
        f'<p>{escape(subtitle)}</p></div>'
    )


def _on_auth_state(state: dict):
    shim = get_shim()
    previous = st.session_state.get("view_state")
    st.session_state["view_state"] = sync_user(shim, state, previous)
    st.session_state.pop("profile_form", None)
    st.session_state.pop("dashboard_profile", None)


# ===================================================================
# PAGES
# ===================================================================

def page_loading(container):
    with container:
        st.markdown(header_html("Loading...", "Checking your sign-in status"), unsafe_allow_html=True)


def page_login(container, auth_state: dict):
    with container:
        st.markdown(header_html("Welcome", "Sign in with your Google account to continue"), unsafe_allow_html=True)
        error = auth_state.get("error")
        if error == "not_configured":
            st.error("Firebase is not configured. Add web_api_key and project_id under [firebase] in secrets.toml.")
        elif error == "invalid_token":
            st.error("Your session has expired. Please sign in again.")
        elif error:
            st.error(f"Sign-in failed: {error}")


def page_profile_completion(view_state: dict):
    user = view_state["user"]
    shim = get_shim()

    form = st.session_state.get("profile_form")
    if form is None or form.user.get("id") != user.get("id"):
        existing = None
        if view_state.get("editing_profile"):
            existing = st.session_state.get("dashboard_profile") or shim.find_profile_by_user_id(user["id"])
        form = ProfileForm.from_profile(user, existing)
        st.session_state["profile_form"] = form

    _, col, _ = st.columns([1, 2, 1])
    with col:
        st.markdown(avatar_html(user), unsafe_allow_html=True)
        st.markdown(
            header_html("Complete Your Profile",
                        f"Hi {user.get('name', '')}! Please provide some additional information to get started."),
            unsafe_allow_html=True,
        )

        # Inputs live outside st.form so progress updates as fields change.
        form.values["organization"] = st.text_input(
            "Organization *", value=form.values["organization"],
            placeholder="Enter your company or organization", key="pf_organization",
        )
        if "organization" in form.errors:
            st.error(form.errors["organization"])

        role_choices = [""] + ROLE_OPTIONS
        current_role = form.values["role"] if form.values["role"] in role_choices else ""
        form.values["role"] = st.selectbox(
            "Role *", role_choices, index=role_choices.index(current_role),
            format_func=lambda r: r or "Select your role", key="pf_role",
        )
        if "role" in form.errors:
            st.error(form.errors["role"])

        form.values["phone_number"] = st.text_input(
            "Phone Number *", value=form.values["phone_number"],
            placeholder="+1 (555) 123-4567", key="pf_phone_number",
        )
        if "phone_number" in form.errors:
            st.error(form.errors["phone_number"])

        st.caption(f"Progress {form.progress}%")
        st.progress(form.progress)

        if st.button("Complete Profile", type="primary", use_container_width=True):
            with st.spinner("Completing Profile..."):
                done = form.submit(shim)
            if done:
                finish_editing(view_state)
                st.session_state["dashboard_profile"] = form.profile
                st.session_state.pop("profile_form", None)
                for k in ("pf_organization", "pf_role", "pf_phone_number"):
                    st.session_state.pop(k, None)
                st.toast("Profile completed!", icon="✅")
            st.rerun()


def _load_profile(user: dict) -> dict | None:
    if "dashboard_profile" not in st.session_state:
        try:
            st.session_state["dashboard_profile"] = get_shim().find_profile_by_user_id(user["id"])
        except Exception:
            logger.exception("Could not load profile for %s", user.get("id"))
            st.session_state["dashboard_profile"] = None
    return st.session_state["dashboard_profile"]


def page_dashboard(view_state: dict):
    user = view_state["user"]
    profile = _load_profile(user)

    top_left, top_right = st.columns([4, 1])
    with top_left:
        st.markdown("### Dashboard")
    with top_right:
        if st.button("Sign Out", key="sign_out_btn"):
            request_logout()
            st.session_state["view_state"] = initial_view_state()
            st.rerun()

    col_profile, col_main = st.columns([1, 2])

    with col_profile:
        with st.container(border=True):
            st.markdown(avatar_html(user), unsafe_allow_html=True)
            st.markdown(f"**{user.get('name', '')}**")
            st.caption(user.get("email", ""))
            if profile:
                st.markdown('<span class="badge badge-done">Profile Complete</span>', unsafe_allow_html=True)
            else:
                st.markdown('<span class="badge badge-pending">Profile Pending</span>', unsafe_allow_html=True)
            st.divider()

            if profile:
                for label, value in (
                    ("Organization", profile.get("organization", "")),
                    ("Role", profile.get("role", "")),
                    ("Phone", profile.get("phone_number", "")),
                    ("Member since", format_date(user.get("created_at"))),
                ):
                    st.markdown(
                        f'<p class="field-label">{escape(label)}</p>'
                        f'<p class="field-value">{escape(str(value))}</p>',
                        unsafe_allow_html=True,
                    )
            else:
                st.caption("No profile information available yet.")

            st.divider()
            if st.button("Edit Profile" if profile else "Complete Profile", key="edit_profile_btn",
                         use_container_width=True):
                start_editing(view_state)
                st.rerun()

    with col_main:
        with st.container(border=True):
            first_name = (user.get("name") or "").split(" ")[0]
            st.markdown(f"#### Welcome back, {first_name}!")
            if profile:
                st.caption("Your profile is complete and you're all set to get started.")
            else:
                st.caption("Please complete your profile to get started.")
            b1, b2 = st.columns(2)
            with b1:
                if st.button("Update Profile" if profile else "Complete Profile", key="update_profile_btn"):
                    start_editing(view_state)
                    st.rerun()
            with b2:
                st.button("View Settings", key="settings_btn", disabled=True)

        with st.container(border=True):
            st.markdown("#### Recent Activity")
            st.caption("Your recent account activity and updates")
            st.markdown(f"- **Account created** · {format_date(user.get('created_at')) or 'recently'}")
            if profile:
                st.markdown(f"- **Profile completed** · {format_date(profile.get('created_at')) or 'just now'}")


# ===================================================================
# MAIN
# ===================================================================

def main():
    st.set_page_config(page_title="Welcome", layout="wide")
    st.markdown(APP_CSS, unsafe_allow_html=True)
    setup_logging()

    # Released by request_logout(); the next rerun subscribes again.
    stream = subscribe_session(_on_auth_state)
    _session_default("view_state", initial_view_state)

    # Pages that sit above the auth widget write into this container.
    top = st.container()

    auth_state = read_auth_state()
    stream.publish(auth_state)

    view_state = st.session_state["view_state"]
    view = current_view(view_state)

    if view == View.LOADING:
        page_loading(top)
    elif view == View.LOGIN:
        page_login(top, auth_state)
    elif view == View.PROFILE_COMPLETION:
        page_profile_completion(view_state)
    else:
        page_dashboard(view_state)


if __name__ == "__main__":
    main()
