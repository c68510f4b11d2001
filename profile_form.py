"""
profile_form.py - Profile completion: validation, progress and submission.

State machine:
  editing -> submitting -> success
                        -> editing_with_errors (validation failed, nothing sent)
"""

import logging
import re

from models import ROLE_OPTIONS, profile_for_user

logger = logging.getLogger(__name__)

EDITING = "editing"
SUBMITTING = "submitting"
SUCCESS = "success"
EDITING_WITH_ERRORS = "editing_with_errors"

FIELDS = ("organization", "role", "phone_number")

_PHONE_RE = re.compile(r"[+0-9()\- ]+")


def validate_profile(values: dict) -> dict:
    """Return {field: message} for every invalid field ({} when valid)."""
    errors = {}

    if not str(values.get("organization") or "").strip():
        errors["organization"] = "Organization is required"

    role = values.get("role") or ""
    if not role:
        errors["role"] = "Role is required"
    elif role not in ROLE_OPTIONS:
        errors["role"] = "Please select a role from the list"

    phone = str(values.get("phone_number") or "").strip()
    if not phone:
        errors["phone_number"] = "Phone number is required"
    elif not _PHONE_RE.fullmatch(phone):
        errors["phone_number"] = "Please enter a valid phone number"

    return errors


def progress(values: dict) -> int:
    """Percentage of the form fields that are filled in."""
    filled = sum(1 for f in FIELDS if str(values.get(f) or "").strip())
    return round(filled / len(FIELDS) * 100)


class ProfileForm:
    """One profile completion attempt for a user."""

    def __init__(self, user: dict, values: dict | None = None):
        self.user = user
        self.values = {f: "" for f in FIELDS}
        if values:
            self.values.update({f: values.get(f) or "" for f in FIELDS})
        self.errors = {}
        self.state = EDITING
        self.profile = None

    @classmethod
    def from_profile(cls, user: dict, profile: dict | None) -> "ProfileForm":
        """Prefill from an existing profile when editing from the dashboard."""
        return cls(user, profile or None)

    @property
    def progress(self) -> int:
        return progress(self.values)

    def submit(self, shim) -> bool:
        """Validate and persist. True once the form reached `success`.

        Backend failures are logged and do not keep the user on the form.
        """
        self.errors = validate_profile(self.values)
        if self.errors:
            self.state = EDITING_WITH_ERRORS
            return False

        self.state = SUBMITTING
        record = profile_for_user(self.user, self.values)
        try:
            self.profile = shim.create_profile(record)
        except Exception:
            logger.exception("Could not store profile for user %s", self.user.get("id"))
            self.profile = record
        try:
            shim.update_user(self.user["id"], {"profile_completed": True})
        except Exception:
            logger.exception("Could not mark user %s as completed", self.user.get("id"))

        self.state = SUCCESS
        return True
