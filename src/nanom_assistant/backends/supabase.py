"""Remote tables over a Supabase (PostgREST) REST endpoint.

Rows live in ``{url}/rest/v1/{table}``. Requests carry the project key as
``apikey`` and the signed-in user's access token as the bearer, so
row-level security scopes every query to that user.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from ..config import get_sessions_table, get_supabase_key, get_supabase_url, get_user_sync_table
from ..provider import RemoteOperationError, SessionTable, UserDataTable

logger = logging.getLogger(__name__)


class PostgrestTable:
    """Shared request plumbing for one PostgREST table."""

    def __init__(
        self,
        table: str,
        url: str | None = None,
        key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = (url or get_supabase_url() or "").rstrip("/")
        self.key = key or get_supabase_key() or ""
        self.table = table
        self._client = client or httpx.AsyncClient()

    @property
    def endpoint(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, access_token: str) -> dict[str, str]:
        return {
            "apikey": self.key,
            "Authorization": f"Bearer {access_token or self.key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(method, self.endpoint, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteOperationError(str(e) or type(e).__name__) from e

        if not resp.is_success:
            data = _json_or_none(resp)
            message = data.get("message") if isinstance(data, dict) else None
            raise RemoteOperationError(message or f"HTTP {resp.status_code} {resp.reason_phrase}")
        return resp


class SupabaseSessionTable(PostgrestTable, SessionTable):
    """Provider for the remote ``sessions`` table."""

    name = "supabase"

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        table: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(table or get_sessions_table(), url, key, client)

    async def upsert(self, row: dict[str, Any], access_token: str = "") -> dict[str, Any]:
        prefer = "return=representation"
        if row.get("id") is not None:
            prefer += ",resolution=merge-duplicates"

        headers = self._headers(access_token)
        headers["Prefer"] = prefer
        resp = await self._request("POST", headers=headers, json=row)

        data = _json_or_none(resp)
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
        if isinstance(data, dict):
            return data
        raise RemoteOperationError("Upsert returned no row")

    async def list(self, user_id: str, access_token: str = "") -> list[dict[str, Any]]:
        params = {"select": "*", "user_id": f"eq.{user_id}", "order": "updated_at.desc"}
        resp = await self._request("GET", headers=self._headers(access_token), params=params)
        data = _json_or_none(resp)
        if not isinstance(data, list):
            raise RemoteOperationError("Session list is not an array")
        return [r for r in data if isinstance(r, dict)]

    async def delete(self, row_id: str, access_token: str = "") -> None:
        await self._request(
            "DELETE", headers=self._headers(access_token), params={"id": f"eq.{row_id}"}
        )


class SupabaseUserDataTable(PostgrestTable, UserDataTable):
    """Provider for the remote ``user_sync`` table: ``{user_id, data, updated_at}``."""

    name = "supabase"

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        table: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(table or get_user_sync_table(), url, key, client)

    async def save(self, user_id: str, data: dict[str, Any], access_token: str = "") -> None:
        headers = self._headers(access_token)
        headers["Prefer"] = "resolution=merge-duplicates"
        row = {
            "user_id": user_id,
            "data": data,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        await self._request("POST", headers=headers, params={"on_conflict": "user_id"}, json=row)

    async def load(self, user_id: str, access_token: str = "") -> dict[str, Any] | None:
        params = {"select": "data", "user_id": f"eq.{user_id}"}
        resp = await self._request("GET", headers=self._headers(access_token), params=params)
        rows = _json_or_none(resp)
        if not isinstance(rows, list):
            raise RemoteOperationError("User data response is not an array")
        if not rows:
            return None
        data = rows[0].get("data") if isinstance(rows[0], dict) else None
        return data if isinstance(data, dict) else None

    async def delete(self, user_id: str, access_token: str = "") -> None:
        await self._request(
            "DELETE", headers=self._headers(access_token), params={"user_id": f"eq.{user_id}"}
        )


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None
