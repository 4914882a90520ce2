"""Abstract base classes for local and remote storage providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class RemoteOperationError(Exception):
    """A remote table call failed (network, permission, bad response)."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BlobStore(ABC):
    """String-keyed blob store for local persistence.

    Values are opaque strings (JSON documents in practice). Writes to the
    same key are assumed to be serialized by the backend.
    """

    name: str  # "sqlite", "memory"

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class SessionTable(ABC):
    """Remote table of session rows, addressed by row id.

    Rows are dicts shaped ``{id, user_id, title, history, updated_at}``.
    Every method raises ``RemoteOperationError`` on failure.
    """

    name: str  # "supabase", "memory"

    @abstractmethod
    async def upsert(self, row: dict[str, Any], access_token: str = "") -> dict[str, Any]:
        """Insert ``row`` (no ``id``) or update it in place (with ``id``).

        Returns the stored row, including its assigned ``id``.
        """
        ...

    @abstractmethod
    async def list(self, user_id: str, access_token: str = "") -> list[dict[str, Any]]:
        """Return the user's rows, most recently updated first."""
        ...

    @abstractmethod
    async def delete(self, row_id: str, access_token: str = "") -> None:
        ...


class UserDataTable(ABC):
    """Remote copy of each user's whole local data blob, one row per user.

    Every method raises ``RemoteOperationError`` on failure.
    """

    name: str  # "supabase", "memory"

    @abstractmethod
    async def save(self, user_id: str, data: dict[str, Any], access_token: str = "") -> None:
        """Insert or replace the user's blob."""
        ...

    @abstractmethod
    async def load(self, user_id: str, access_token: str = "") -> dict[str, Any] | None:
        """Return the user's blob, or None when nothing has been saved."""
        ...

    @abstractmethod
    async def delete(self, user_id: str, access_token: str = "") -> None:
        ...
