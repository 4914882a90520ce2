"""Best-effort mirroring of local data to the remote tables.

Two remote copies are kept for a signed-in identity: one row per session in
the session table, and the identity's whole local data blob in the user data
table. Every operation degrades to a no-op result (``None``, ``False`` or
``[]``) when the table or the signed-in identity is missing, and when the
remote call fails. Callers never branch on authentication state.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from .core import Identity, Session
from .export import session_from_dict, turn_to_dict
from .provider import RemoteOperationError, SessionTable, UserDataTable
from .store import SessionStore

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Reconciles one identity's sessions and data blob with the remote tables."""

    def __init__(
        self,
        table: SessionTable | None,
        identity: Identity | None,
        user_data: UserDataTable | None = None,
    ):
        self.table = table
        self.identity = identity
        self.user_data = user_data

    @property
    def available(self) -> bool:
        return self.table is not None and self.identity is not None

    @property
    def user_data_available(self) -> bool:
        return self.user_data is not None and self.identity is not None

    # ── Session rows ─────────────────────────────────────────────────

    async def upsert(self, session: Session) -> str | None:
        """Write ``session`` remotely and return its remote id.

        The first successful write of an id-less session assigns
        ``session.id``; later writes update that row in place.
        """
        if not self.available:
            return None

        row = {
            "user_id": self.identity.user_id,
            "title": session.title,
            "history": [turn_to_dict(t) for t in session.history],
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if session.id is not None:
            row["id"] = session.id

        try:
            stored = await self.table.upsert(row, self.identity.access_token)
        except RemoteOperationError as e:
            logger.warning("Failed to save session remotely: %s", e.message)
            return None

        remote_id = stored.get("id")
        if remote_id is None:
            logger.warning("Remote upsert returned a row without an id")
            return None
        if session.id is None:
            session.id = str(remote_id)
            logger.info("Session assigned remote id %s", session.id)
        return session.id

    async def delete(self, session_id: str) -> bool:
        if not self.available:
            return False
        try:
            await self.table.delete(session_id, self.identity.access_token)
        except RemoteOperationError as e:
            logger.warning("Failed to delete session %s remotely: %s", session_id, e.message)
            return False
        return True

    async def list(self) -> list[Session]:
        """Return remote sessions, most recently updated first (server order)."""
        if not self.available:
            return []
        try:
            rows = await self.table.list(self.identity.user_id, self.identity.access_token)
        except RemoteOperationError as e:
            logger.warning("Failed to list remote sessions: %s", e.message)
            return []
        return [session_from_dict(r) for r in rows]

    # ── User data blob ───────────────────────────────────────────────

    async def save_user_data(self, data: dict[str, Any]) -> bool:
        """Replace the identity's remote data blob with ``data``."""
        if not self.user_data_available:
            return False
        try:
            await self.user_data.save(self.identity.user_id, data, self.identity.access_token)
        except RemoteOperationError as e:
            logger.warning("Failed to save user data remotely: %s", e.message)
            return False
        return True

    async def load_user_data(self) -> dict[str, Any] | None:
        if not self.user_data_available:
            return None
        try:
            return await self.user_data.load(self.identity.user_id, self.identity.access_token)
        except RemoteOperationError as e:
            logger.warning("Failed to load user data remotely: %s", e.message)
            return None

    async def remove_user_data(self) -> bool:
        if not self.user_data_available:
            return False
        try:
            await self.user_data.delete(self.identity.user_id, self.identity.access_token)
        except RemoteOperationError as e:
            logger.warning("Failed to delete user data remotely: %s", e.message)
            return False
        logger.info("Deleted remote user data for %s", self.identity.email)
        return True

    async def pull(self, store: SessionStore) -> dict[str, Any] | None:
        """Replace the identity's local data with the remote blob.

        Returns None, leaving local data untouched, when there is no remote
        blob or it cannot be loaded.
        """
        remote_data = await self.load_user_data()
        if remote_data is None:
            return None
        return store.merge_remote(self.identity.email, remote_data)
