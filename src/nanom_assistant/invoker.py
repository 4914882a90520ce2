"""Single-attempt calls against the upstream generation API.

A ``ModelInvoker`` performs exactly one ``generateContent`` request per
candidate (plus one local retry when the upstream rejects the dedicated
system-instruction field). It never caches anything; choosing which
candidate to try is the orchestrator's job.
"""

import logging
from typing import Any, Iterable

import httpx

from .config import get_api_key, get_base_url, get_system_instruction
from .core import Candidate, Turn

logger = logging.getLogger(__name__)

# Model families that accept a top-level ``system_instruction`` field.
SYSTEM_INSTRUCTION_FAMILIES = ("1.5", "2.0", "2.5")

DISCOVERY_API_VERSION = "v1beta"
GENERATION_METHOD = "generateContent"


class InvocationError(Exception):
    """One candidate failed. Recoverable by trying another candidate."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def supports_system_instruction(model_name: str) -> bool:
    return any(family in model_name for family in SYSTEM_INSTRUCTION_FAMILIES)


def canonical_role(role: str) -> str:
    return "model" if role in ("model", "assistant") else "user"


def build_contents(
    history: Iterable[Turn], prompt: str, inline_instruction: str | None = None
) -> list[dict[str, Any]]:
    """Build the upstream ``contents`` list: history turns, then the prompt.

    When ``inline_instruction`` is given it is prefixed onto the final user turn.
    """
    contents = [
        {"role": canonical_role(turn.role), "parts": [{"text": turn.text}]}
        for turn in history
    ]
    text = prompt
    if inline_instruction:
        text = f"[System: {inline_instruction}]\n\n{prompt}"
    contents.append({"role": "user", "parts": [{"text": text}]})
    return contents


class ModelInvoker:
    """HTTP client for one generation attempt or one model listing."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        system_instruction: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key if api_key is not None else get_api_key()
        self.base_url = (base_url or get_base_url()).rstrip("/")
        self.system_instruction = system_instruction or get_system_instruction()
        # No timeout at this layer; a hung call hangs only its own generation.
        self._client = client or httpx.AsyncClient(timeout=None)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def invoke(self, candidate: Candidate, history: list[Turn], prompt: str) -> str:
        """Return the assistant text for one candidate, or raise ``InvocationError``."""
        use_field = supports_system_instruction(candidate.model_name)
        try:
            return await self._attempt(candidate, history, prompt, use_field)
        except InvocationError as e:
            if use_field and "system_instruction" in e.message:
                logger.debug(
                    "%s rejected system_instruction, retrying inline", candidate.model_name
                )
                return await self._attempt(candidate, history, prompt, use_field=False)
            raise

    async def list_models(self) -> list[str]:
        """Return generation-capable model names, in the provider's order."""
        url = f"{self.base_url}/{DISCOVERY_API_VERSION}/models"
        try:
            resp = await self._client.get(url, params={"key": self.api_key})
        except httpx.HTTPError as e:
            raise InvocationError(str(e) or type(e).__name__) from e

        data = _json_or_none(resp)
        if not resp.is_success:
            raise InvocationError(_error_message(data, resp))

        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return []

        names = []
        for entry in models:
            if not isinstance(entry, dict):
                continue
            methods = entry.get("supportedGenerationMethods") or []
            name = entry.get("name") or ""
            if GENERATION_METHOD in methods and name:
                names.append(name.removeprefix("models/"))
        return names

    # ── Private helpers ──────────────────────────────────────────────

    async def _attempt(
        self, candidate: Candidate, history: list[Turn], prompt: str, use_field: bool
    ) -> str:
        inline = None if use_field else self.system_instruction
        body: dict[str, Any] = {"contents": build_contents(history, prompt, inline)}
        if use_field:
            body["system_instruction"] = {"parts": [{"text": self.system_instruction}]}

        url = (
            f"{self.base_url}/{candidate.api_version}/models/"
            f"{candidate.model_name}:{GENERATION_METHOD}"
        )
        try:
            resp = await self._client.post(url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as e:
            raise InvocationError(str(e) or type(e).__name__) from e

        data = _json_or_none(resp)
        if not resp.is_success:
            raise InvocationError(_error_message(data, resp))

        text = _first_candidate_text(data)
        if not text:
            raise InvocationError("No content in response")
        return text


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _error_message(data: Any, resp: httpx.Response) -> str:
    """Prefer the upstream ``error.message``, else the HTTP status text."""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return resp.reason_phrase or f"HTTP {resp.status_code}"


def _first_candidate_text(data: Any) -> str:
    """Return the first non-empty candidate text in a generateContent body."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates")
    if not isinstance(candidates, list):
        return ""

    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        text = "".join(
            part["text"] for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
        if text:
            return text
    return ""
