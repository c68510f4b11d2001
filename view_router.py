"""
view_router.py - Which page to show for the current auth/profile state.

view_state dict (kept in st.session_state["view_state"]):
  is_loading         - auth state not known yet
  user               - resolved User record or None
  profile_completed  - normalised completion flag
  editing_profile    - user asked to edit from the dashboard
"""

from enum import Enum


class View(str, Enum):
    LOADING = "loading"
    LOGIN = "login"
    PROFILE_COMPLETION = "profile_completion"
    DASHBOARD = "dashboard"


def select_view(is_loading: bool, user: dict | None, profile_completed: bool) -> View:
    if is_loading:
        return View.LOADING
    if not user:
        return View.LOGIN
    if not profile_completed:
        return View.PROFILE_COMPLETION
    return View.DASHBOARD


def initial_view_state() -> dict:
    return {
        "is_loading": True,
        "user": None,
        "profile_completed": False,
        "editing_profile": False,
    }


def current_view(view_state: dict) -> View:
    """select_view() plus the dashboard -> edit profile override."""
    completed = view_state.get("profile_completed", False) and not view_state.get("editing_profile", False)
    return select_view(
        view_state.get("is_loading", False),
        view_state.get("user"),
        completed,
    )


def start_editing(view_state: dict) -> dict:
    """Dashboard 'Edit Profile' button."""
    view_state["editing_profile"] = True
    return view_state


def finish_editing(view_state: dict) -> dict:
    """Profile form completion callback; does not wait for persisted state."""
    view_state["editing_profile"] = False
    view_state["profile_completed"] = True
    user = view_state.get("user")
    if user:
        view_state["user"] = {**user, "profile_completed": True}
    return view_state
