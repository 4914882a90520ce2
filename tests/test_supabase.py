"""Tests for the Supabase table backends."""

import json
from unittest.mock import patch

import httpx
import pytest

from nanom_assistant.backends import get_session_table, get_user_data_table
from nanom_assistant.backends.supabase import SupabaseSessionTable, SupabaseUserDataTable
from nanom_assistant.provider import RemoteOperationError


def make_table(handler) -> SupabaseSessionTable:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseSessionTable(url="https://proj.supabase.test", key="anon-key", client=client)


@pytest.mark.asyncio
async def test_insert_without_id():
    seen = []

    def handler(request):
        seen.append(request)
        row = json.loads(request.content)
        return httpx.Response(201, json=[{**row, "id": "new-id"}])

    table = make_table(handler)
    stored = await table.upsert({"user_id": "u1", "title": "T", "history": []}, "user-token")

    assert stored["id"] == "new-id"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/sessions"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer user-token"
    assert request.headers["prefer"] == "return=representation"


@pytest.mark.asyncio
async def test_upsert_with_id_merges_duplicates():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json=[json.loads(request.content)])

    stored = await make_table(handler).upsert({"id": "s1", "user_id": "u1", "title": "T"})

    assert stored["id"] == "s1"
    assert seen[0].headers["prefer"] == "return=representation,resolution=merge-duplicates"
    assert seen[0].headers["authorization"] == "Bearer anon-key"


@pytest.mark.asyncio
async def test_list_filters_and_orders_server_side():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[{"id": "b"}, {"id": "a"}])

    rows = await make_table(handler).list("u1", "tok")

    assert [r["id"] for r in rows] == ["b", "a"]
    params = seen[0].url.params
    assert params["user_id"] == "eq.u1"
    assert params["order"] == "updated_at.desc"


@pytest.mark.asyncio
async def test_delete_by_id():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    await make_table(handler).delete("s1", "tok")

    assert seen[0].method == "DELETE"
    assert seen[0].url.params["id"] == "eq.s1"


@pytest.mark.asyncio
async def test_error_payload_becomes_remote_error():
    def handler(request):
        return httpx.Response(401, json={"message": "JWT expired"})

    with pytest.raises(RemoteOperationError) as exc:
        await make_table(handler).list("u1")
    assert exc.value.message == "JWT expired"


@pytest.mark.asyncio
async def test_network_error_becomes_remote_error():
    def handler(request):
        raise httpx.ConnectError("no route to host")

    with pytest.raises(RemoteOperationError):
        await make_table(handler).delete("s1")


def test_get_session_table_requires_configuration():
    with (
        patch("nanom_assistant.backends.get_supabase_url", return_value=None),
        patch("nanom_assistant.backends.get_supabase_key", return_value="k"),
    ):
        assert get_session_table() is None

    with (
        patch("nanom_assistant.backends.get_supabase_url", return_value="https://p.test"),
        patch("nanom_assistant.backends.get_supabase_key", return_value="k"),
        patch("nanom_assistant.backends.supabase.get_supabase_url", return_value="https://p.test"),
        patch("nanom_assistant.backends.supabase.get_supabase_key", return_value="k"),
    ):
        table = get_session_table()
        assert isinstance(table, SupabaseSessionTable)
        assert table.endpoint == "https://p.test/rest/v1/sessions"


def make_user_data(handler) -> SupabaseUserDataTable:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseUserDataTable(url="https://proj.supabase.test", key="anon-key", client=client)


@pytest.mark.asyncio
async def test_user_data_save_upserts_on_user_id():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201)

    await make_user_data(handler).save("u1", {"sessions": [], "settings": {}}, "tok")

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/user_sync"
    assert request.url.params["on_conflict"] == "user_id"
    assert request.headers["prefer"] == "resolution=merge-duplicates"
    assert request.headers["authorization"] == "Bearer tok"
    body = json.loads(request.content)
    assert body["user_id"] == "u1"
    assert body["data"] == {"sessions": [], "settings": {}}
    assert "updated_at" in body


@pytest.mark.asyncio
async def test_user_data_load():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[{"data": {"sessions": []}}])

    assert await make_user_data(handler).load("u1") == {"sessions": []}
    assert seen[0].url.params["user_id"] == "eq.u1"
    assert seen[0].url.params["select"] == "data"


@pytest.mark.asyncio
async def test_user_data_load_missing_row():
    table = make_user_data(lambda request: httpx.Response(200, json=[]))
    assert await table.load("u1") is None


@pytest.mark.asyncio
async def test_user_data_delete_by_user():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    await make_user_data(handler).delete("u1")

    assert seen[0].method == "DELETE"
    assert seen[0].url.params["user_id"] == "eq.u1"


@pytest.mark.asyncio
async def test_user_data_error_becomes_remote_error():
    table = make_user_data(lambda request: httpx.Response(403, json={"message": "denied"}))

    with pytest.raises(RemoteOperationError) as exc:
        await table.save("u1", {})
    assert exc.value.message == "denied"


def test_get_user_data_table_requires_configuration():
    with patch("nanom_assistant.backends.get_supabase_url", return_value=None):
        assert get_user_data_table() is None

    with (
        patch("nanom_assistant.backends.get_supabase_url", return_value="https://p.test"),
        patch("nanom_assistant.backends.get_supabase_key", return_value="k"),
        patch("nanom_assistant.backends.supabase.get_supabase_url", return_value="https://p.test"),
        patch("nanom_assistant.backends.supabase.get_supabase_key", return_value="k"),
    ):
        table = get_user_data_table()
        assert isinstance(table, SupabaseUserDataTable)
        assert table.endpoint == "https://p.test/rest/v1/user_sync"
