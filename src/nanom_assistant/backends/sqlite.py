"""SQLite-backed blob store.

Uses a single ``ItemTable (key, value)`` table, the same layout editors use
for their ``state.vscdb`` key/value stores. One connection per operation.
"""

import logging
import sqlite3
from pathlib import Path

from ..config import get_data_path
from ..provider import BlobStore

logger = logging.getLogger(__name__)

SCHEMA = "CREATE TABLE IF NOT EXISTS ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)"


class SqliteBlobStore(BlobStore):
    """Blob store persisted to a local SQLite file."""

    name = "sqlite"

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else get_data_path()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        try:
            conn.execute(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        try:
            conn = sqlite3.connect(str(self.path))
            try:
                row = conn.execute("SELECT value FROM ItemTable WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            logger.warning("Failed to read key '%s' from %s: %s", key, self.path, e)
            return None
        if row:
            val = row[0]
            return val if isinstance(val, str) else val.decode("utf-8", errors="replace")
        return None

    def set(self, key: str, value: str) -> None:
        conn = sqlite3.connect(str(self.path))
        try:
            conn.execute("INSERT INTO ItemTable VALUES (?, ?)", (key, value))
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = sqlite3.connect(str(self.path))
        try:
            conn.execute("DELETE FROM ItemTable WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()
