"""Core data models for nanom-assistant."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Candidate:
    """One invocable (model, API version) endpoint variant."""

    model_name: str  # e.g. "gemini-1.5-flash"
    api_version: str  # "v1" | "v1beta"


@dataclass(frozen=True)
class Turn:
    """A single exchange entry in a conversation transcript."""

    role: str  # "user" | "model"
    text: str


@dataclass
class Session:
    """A conversation, persisted locally and mirrored remotely when signed in."""

    id: Optional[str] = None  # None until the first successful remote write
    local_id: str = field(default_factory=lambda: uuid.uuid4().hex)  # stable local key
    title: str = "New Chat"
    history: list[Turn] = field(default_factory=list)
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Identity:
    """A signed-in remote user."""

    user_id: str
    email: str
    access_token: str = ""


@dataclass(frozen=True)
class GenerationSuccess:
    text: str
    used_candidate: Candidate
    ok: bool = True


@dataclass(frozen=True)
class GenerationFailure:
    last_error_message: str
    ok: bool = False


GenerationOutcome = Union[GenerationSuccess, GenerationFailure]


@dataclass(frozen=True)
class ParsedReply:
    """Model output after reasoning removal and JSON extraction."""

    kind: str  # "structured" | "text"
    payload: Optional[dict[str, Any]] = None
    text: str = ""

    @property
    def display_text(self) -> str:
        """Human-readable text for this reply, structured or not."""
        if self.kind != "structured":
            return self.text
        value = self.payload.get("text") if self.payload else None
        if isinstance(value, str):
            return value
        return "```json\n" + json.dumps(self.payload, indent=2, ensure_ascii=False) + "\n```"
