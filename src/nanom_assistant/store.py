"""Layered local persistence for identities and their conversation sessions.

The identity index lives in three storage tiers, consulted in order:
primary, backup, legacy. The first tier holding a parseable list wins
outright; lower tiers are only read when every higher tier is missing or
corrupt. Index writes go to primary and backup together so a damaged
primary can be recovered on the next read.

Each identity also owns one data blob, ``{"sessions": [...], ...}``.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from .core import Session
from .export import session_from_dict, session_to_dict
from .provider import BlobStore

logger = logging.getLogger(__name__)

GUEST_IDENTITY = "guest"
DATA_KEY_PREFIX = "nanom_data_"


@dataclass(frozen=True)
class StorageTier:
    """A named slot in the blob store holding one copy of the identity index."""

    name: str  # "primary" | "backup" | "legacy"
    key: str


DEFAULT_INDEX_TIERS: tuple[StorageTier, ...] = (
    StorageTier("primary", "nanom_users"),
    StorageTier("backup", "nanom_users_backup"),
    StorageTier("legacy", "nanom_users_legacy"),
)


class SessionStore:
    """Synchronous local store for the identity index and per-user data."""

    def __init__(self, blobs: BlobStore, tiers: tuple[StorageTier, ...] = DEFAULT_INDEX_TIERS):
        self.blobs = blobs
        self.tiers = tiers

    # ── Identity index ───────────────────────────────────────────────

    def list_identities(self) -> list[str]:
        """Return known identities from the first readable tier, or []."""
        for position, tier in enumerate(self.tiers):
            identities = self._read_tier(tier)
            if identities is None:
                continue
            if position > 0:
                logger.warning("Recovered identity index from %s tier", tier.name)
            return identities
        return []

    def _read_tier(self, tier: StorageTier) -> list[str] | None:
        """Read and parse one tier; None means skip to the next tier."""
        raw = self.blobs.get(tier.key)
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Unparseable %s identity index: %s", tier.name, e)
            return None
        if not isinstance(value, list):
            if value is not None:
                logger.warning("Ignoring %s identity index of type %s",
                               tier.name, type(value).__name__)
            return None

        identities: list[str] = []
        for item in value:
            if isinstance(item, str) and item not in identities:
                identities.append(item)
        return identities

    def _write_index(self, identities: list[str]) -> None:
        payload = json.dumps(identities)
        for tier in self.tiers[:2]:
            self.blobs.set(tier.key, payload)

    # ── Per-identity data ────────────────────────────────────────────

    def data_key(self, email: str) -> str:
        return f"{DATA_KEY_PREFIX}{email}"

    def save(self, email: str, data: dict[str, Any]) -> None:
        """Write the identity's blob and register the identity in the index."""
        self.blobs.set(self.data_key(email), json.dumps(data, ensure_ascii=False))

        identities = self.list_identities()
        if email not in identities:
            identities.append(email)
            self._write_index(identities)

    def load(self, email: str) -> dict[str, Any] | None:
        raw = self.blobs.get(self.data_key(email))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Unparseable data blob for %s: %s", email, e)
            return None
        return data if isinstance(data, dict) else None

    def merge_remote(self, email: str, remote_data: dict[str, Any] | None) -> dict[str, Any] | None:
        """Overwrite local data with the remote copy. Remote always wins."""
        if remote_data is None:
            return None
        logger.info("Replacing local data for %s with remote copy", email)
        self.save(email, remote_data)
        return remote_data

    # ── Sessions ─────────────────────────────────────────────────────

    def list_sessions(self, email: str) -> list[Session]:
        data = self.load(email) or {}
        sessions = []
        for entry in data.get("sessions") or []:
            if isinstance(entry, dict):
                sessions.append(session_from_dict(entry))
        return sessions

    def get_session(self, email: str, key: str) -> Session | None:
        """Find a session by its local key or its remote id."""
        return next(
            (s for s in self.list_sessions(email) if key in (s.local_id, s.id)), None
        )

    def put_session(self, email: str, session: Session) -> None:
        """Store a session at the front of the list, replacing its earlier entry."""
        data = self.load(email) or {}
        kept = [
            entry for entry in data.get("sessions") or []
            if isinstance(entry, dict) and not _same_session(entry, session)
        ]
        data["sessions"] = [session_to_dict(session)] + kept
        self.save(email, data)

    def remove_session(self, email: str, key: str) -> None:
        """Drop the session whose local key or remote id is ``key``."""
        data = self.load(email) or {}
        data["sessions"] = [
            entry for entry in data.get("sessions") or []
            if isinstance(entry, dict) and key not in (entry.get("local_id"), entry.get("id"))
        ]
        self.save(email, data)


def _same_session(entry: dict[str, Any], session: Session) -> bool:
    if entry.get("local_id") == session.local_id:
        return True
    return session.id is not None and entry.get("id") == session.id
