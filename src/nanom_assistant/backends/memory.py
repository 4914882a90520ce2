"""In-process storage backends, for tests and offline use."""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Any

from ..provider import BlobStore, SessionTable, UserDataTable


class MemoryBlobStore(BlobStore):
    """Blob store held in a dict."""

    name = "memory"

    def __init__(self, initial: dict[str, str] | None = None):
        self.items: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self.items[key] = value

    def delete(self, key: str) -> None:
        self.items.pop(key, None)


class MemorySessionTable(SessionTable):
    """Session table held in a dict, honoring the same ordering contract as the server."""

    name = "memory"

    def __init__(self):
        self.rows: dict[str, dict[str, Any]] = {}

    async def upsert(self, row: dict[str, Any], access_token: str = "") -> dict[str, Any]:
        stored = copy.deepcopy(row)
        row_id = stored.get("id")
        if row_id is None:
            row_id = str(uuid.uuid4())
        stored["id"] = row_id
        stored.setdefault("updated_at", datetime.now(timezone.utc).isoformat())
        self.rows[row_id] = stored
        return copy.deepcopy(stored)

    async def list(self, user_id: str, access_token: str = "") -> list[dict[str, Any]]:
        rows = [copy.deepcopy(r) for r in self.rows.values() if r.get("user_id") == user_id]
        rows.sort(key=lambda r: r.get("updated_at") or "", reverse=True)
        return rows

    async def delete(self, row_id: str, access_token: str = "") -> None:
        self.rows.pop(row_id, None)


class MemoryUserDataTable(UserDataTable):
    """Per-user data blobs held in a dict keyed by user id."""

    name = "memory"

    def __init__(self):
        self.rows: dict[str, dict[str, Any]] = {}

    async def save(self, user_id: str, data: dict[str, Any], access_token: str = "") -> None:
        self.rows[user_id] = copy.deepcopy(data)

    async def load(self, user_id: str, access_token: str = "") -> dict[str, Any] | None:
        data = self.rows.get(user_id)
        return copy.deepcopy(data) if data is not None else None

    async def delete(self, user_id: str, access_token: str = "") -> None:
        self.rows.pop(user_id, None)
