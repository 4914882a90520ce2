"""Shared test fixtures for nanom-assistant."""

import json

import httpx
import pytest

from nanom_assistant.assistant import Assistant
from nanom_assistant.backends.memory import MemoryBlobStore, MemorySessionTable, MemoryUserDataTable
from nanom_assistant.core import Identity
from nanom_assistant.invoker import ModelInvoker
from nanom_assistant.orchestrator import GenerationOrchestrator
from nanom_assistant.provider import RemoteOperationError, SessionTable, UserDataTable
from nanom_assistant.store import SessionStore

BASE_URL = "https://upstream.test"


def ok(text: str) -> httpx.Response:
    """A successful generateContent response carrying ``text``."""
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def error(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": status, "message": message}})


class FakeUpstream:
    """Scriptable stand-in for the generation and model-listing endpoints.

    ``replies`` maps ``(model, version)`` or ``model`` to a Response, a
    callable taking the request, or an exception instance to raise.
    Unscripted models answer 404.
    """

    def __init__(self):
        self.replies: dict = {}
        self.models: list[dict] = []
        self.listing: object = None  # overrides the listing reply when set
        self.calls: list[tuple[str, str, dict]] = []
        self.listing_calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        version = parts[0]

        if request.method == "GET":
            self.listing_calls += 1
            if self.listing is None:
                return httpx.Response(200, json={"models": self.models})
            return self._resolve(self.listing, request)

        model = parts[2].split(":")[0]
        body = json.loads(request.content)
        self.calls.append((model, version, body))

        reply = self.replies.get((model, version), self.replies.get(model))
        if reply is None:
            return error(404, f"models/{model} is not found")
        return self._resolve(reply, request)

    def _resolve(self, reply, request):
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        # Scripted replies may be served many times; hand out a fresh copy.
        return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)

    def attempted(self) -> list[tuple[str, str]]:
        return [(model, version) for model, version, _ in self.calls]


class FailingTable(SessionTable):
    """Remote table whose every call fails."""

    name = "failing"

    async def upsert(self, row, access_token=""):
        raise RemoteOperationError("permission denied")

    async def list(self, user_id, access_token=""):
        raise RemoteOperationError("network down")

    async def delete(self, row_id, access_token=""):
        raise RemoteOperationError("permission denied")


class FailingUserData(UserDataTable):
    """Remote user data table whose every call fails."""

    name = "failing"

    async def save(self, user_id, data, access_token=""):
        raise RemoteOperationError("permission denied")

    async def load(self, user_id, access_token=""):
        raise RemoteOperationError("network down")

    async def delete(self, user_id, access_token=""):
        raise RemoteOperationError("permission denied")


def model_entry(name: str, methods=("generateContent",)) -> dict:
    return {"name": f"models/{name}", "supportedGenerationMethods": list(methods)}


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def invoker(upstream):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))
    return ModelInvoker(
        api_key="test-key",
        base_url=BASE_URL,
        system_instruction="Be brief.",
        client=client,
    )


@pytest.fixture
def orchestrator(invoker):
    return GenerationOrchestrator(invoker)


@pytest.fixture
def blobs():
    return MemoryBlobStore()


@pytest.fixture
def store(blobs):
    return SessionStore(blobs)


@pytest.fixture
def table():
    return MemorySessionTable()


@pytest.fixture
def identity():
    return Identity(user_id="user-1", email="ada@example.com", access_token="token-1")


@pytest.fixture
def user_data():
    return MemoryUserDataTable()

@pytest.fixture
def assistant(orchestrator, store, table, user_data):
    return Assistant(orchestrator, store, table, user_data)
