"""
settings.py - Configuration lookup and logging setup.

Lookup order for every setting:
  1. Streamlit secrets (.streamlit/secrets.toml), e.g. [firebase] web_api_key
  2. Environment variable
  3. Default
"""

import logging
import os
import sys

import streamlit as st

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _secret(section: str, key: str) -> str:
    try:
        value = st.secrets.get(section, {}).get(key, "")
    except Exception:
        # No secrets.toml at all
        return ""
    return str(value).strip() if value is not None else ""


def get_setting(section: str, key: str, env: str = "", default: str = "") -> str:
    """Resolve a setting from secrets, then the environment, then `default`."""
    value = _secret(section, key)
    if value:
        return value
    if env:
        value = os.environ.get(env, "").strip()
        if value:
            return value
    return default


def get_section(section: str) -> dict:
    """Return a whole secrets section as a plain dict ({} when missing)."""
    try:
        return dict(st.secrets.get(section, {}))
    except Exception:
        return {}


# ---------------------------------------------------------------------------
# APP SETTINGS
# ---------------------------------------------------------------------------

def local_store_kind() -> str:
    """'session' (per browser tab) or 'file' (shared JSON file)."""
    return get_setting("app", "local_store", "LOCAL_STORE", "session").lower()


def local_store_path() -> str:
    return get_setting("app", "local_store_path", "LOCAL_STORE_PATH", ".local_store.json")


def log_level() -> str:
    return get_setting("app", "log_level", "LOG_LEVEL", "INFO").upper()


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the root logger once.

    Streamlit re-executes the script on every interaction, so the handler is
    only attached the first time.
    """
    root = logging.getLogger()
    root.setLevel(level or log_level())

    if not any(getattr(h, "_onboarding_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._onboarding_handler = True
        root.addHandler(handler)

    return root
