"""
models.py - Record shapes for the onboarding flow.

Records are plain dicts, the same shape Firestore hands back from to_dict():

  users/{id}
    - id, email, name, avatar_url, google_id, profile_completed,
      created_at, updated_at
  userProfiles/{id}
    - id, user_id, organization, role, phone_number, created_at, updated_at
"""

import secrets
from datetime import datetime, timezone

USERS = "users"
PROFILES = "userProfiles"

ROLE_OPTIONS = [
    "Software Engineer",
    "Product Manager",
    "Designer",
    "Data Scientist",
    "DevOps Engineer",
    "Marketing Manager",
    "Sales Representative",
    "HR Manager",
    "Finance Manager",
    "Other",
]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_record_id(prefix: str) -> str:
    return f"{prefix}_{secrets.token_hex(8)}"


def normalize_completed(raw) -> bool:
    """Coerce a stored profile_completed value to bool.

    Some backends hand booleans back as 0/1 or "0"/"1". Numeric strings are
    true when greater than zero; "true"/"false" strings keep their meaning;
    numbers and everything else fall back to plain truthiness.

        True, 1, -1, "1", "2"  -> True
        False, 0, "0", "-1", ""  -> False
    """
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw > 0 or bool(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if text.lower() in ("true", "false"):
            return text.lower() == "true"
        try:
            return float(text) > 0
        except ValueError:
            return bool(text)
    return bool(raw)


def user_from_identity(identity: dict, user_id: str | None = None) -> dict:
    """Build a new (not yet stored) User record from a signed-in identity."""
    email = identity.get("email", "")
    return {
        "id": user_id or new_record_id("user"),
        "email": email,
        "name": identity.get("display_name") or email,
        "avatar_url": identity.get("photo_url") or None,
        "google_id": identity.get("uid", ""),
        "profile_completed": False,
    }


def profile_for_user(user: dict, values: dict) -> dict:
    """Build a new UserProfile record from validated form values."""
    return {
        "id": new_record_id("profile"),
        "user_id": user["id"],
        "organization": values["organization"].strip(),
        "role": values["role"],
        "phone_number": values["phone_number"].strip(),
    }


def initials(name: str) -> str:
    """'Ada Lovelace' -> 'AL'."""
    return "".join(part[0] for part in name.split() if part).upper()


def format_date(value) -> str:
    """Format an ISO string or datetime like 'January 5, 2026' ('' if unparseable)."""
    if not value:
        return ""
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return ""
    return f"{dt.strftime('%B')} {dt.day}, {dt.year}"
