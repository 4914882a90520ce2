"""Select the configured local blob store and remote tables."""

import logging
from pathlib import Path

from ..config import get_supabase_key, get_supabase_url
from ..provider import BlobStore, SessionTable, UserDataTable
from .memory import MemoryBlobStore, MemorySessionTable, MemoryUserDataTable
from .sqlite import SqliteBlobStore
from .supabase import SupabaseSessionTable, SupabaseUserDataTable

logger = logging.getLogger(__name__)

__all__ = [
    "MemoryBlobStore",
    "MemorySessionTable",
    "MemoryUserDataTable",
    "SqliteBlobStore",
    "SupabaseSessionTable",
    "SupabaseUserDataTable",
    "get_blob_store",
    "get_session_table",
    "get_user_data_table",
]


def get_blob_store(path: Path | None = None) -> BlobStore:
    """Return the on-disk blob store at ``path`` or the configured data path."""
    return SqliteBlobStore(path)


def _remote_configured() -> bool:
    return bool(get_supabase_url() and get_supabase_key())


def get_session_table() -> SessionTable | None:
    """Return the remote session table, or None when remote sync is not configured."""
    if not _remote_configured():
        logger.info("Remote session table not configured; running local-only")
        return None
    return SupabaseSessionTable()


def get_user_data_table() -> UserDataTable | None:
    """Return the remote per-user data table, or None when remote sync is not configured."""
    if not _remote_configured():
        return None
    return SupabaseUserDataTable()
