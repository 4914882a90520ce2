"""Environment-driven settings and platform-aware data paths."""

import os
import sys
from pathlib import Path

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"

DEFAULT_SYSTEM_INSTRUCTION = (
    "You are Nanom AI, a professional, creative, and highly capable AI assistant "
    "for a modern development studio. You help users build web apps, android apps, "
    "and provide creative solutions. Be concise but helpful. Use markdown for code blocks."
)


def get_api_key() -> str:
    """Return the upstream API key, or an empty string when unset."""
    return os.environ.get("NANOM_API_KEY", "")


def get_base_url() -> str:
    """Return the upstream base URL without a trailing slash."""
    return os.environ.get("NANOM_API_BASE_URL", DEFAULT_BASE_URL).rstrip("/")


def get_system_instruction() -> str:
    return os.environ.get("NANOM_SYSTEM_INSTRUCTION") or DEFAULT_SYSTEM_INSTRUCTION


def get_data_path() -> Path:
    """Return the path to the local blob store database."""
    env = os.environ.get("NANOM_DATA_PATH")
    if env:
        return Path(env)

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "nanom" / "store.db"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "nanom" / "store.db"
    else:  # Linux
        return Path.home() / ".local" / "share" / "nanom" / "store.db"


def get_supabase_url() -> str | None:
    """Return the remote project URL, or None when remote sync is not configured."""
    env = os.environ.get("NANOM_SUPABASE_URL")
    return env.rstrip("/") if env else None


def get_supabase_key() -> str | None:
    return os.environ.get("NANOM_SUPABASE_KEY") or None


def get_sessions_table() -> str:
    return os.environ.get("NANOM_SESSIONS_TABLE", "sessions")


def get_user_sync_table() -> str:
    return os.environ.get("NANOM_USER_SYNC_TABLE", "user_sync")
