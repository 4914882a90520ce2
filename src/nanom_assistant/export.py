"""Session serialization for storage rows, and Markdown/JSON export."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any

from .core import Session, Turn


def turn_to_dict(turn: Turn) -> dict:
    return {"role": turn.role, "text": turn.text}


def turn_from_dict(data: Any) -> Turn | None:
    """Build a Turn from a stored dict, or None if it carries no text.

    Accepts both ``{role, text}`` and the upstream ``{role, parts: [{text}]}`` shapes.
    """
    if not isinstance(data, dict):
        return None
    text = data.get("text")
    if text is None and isinstance(data.get("parts"), list):
        text = "".join(
            p.get("text", "") for p in data["parts"] if isinstance(p, dict)
        )
    if not isinstance(text, str) or not text:
        return None
    role = "model" if data.get("role") == "model" else "user"
    return Turn(role=role, text=text)


def session_to_dict(session: Session) -> dict:
    """Serialize a session into the row/blob shape used by both stores."""
    return {
        "id": session.id,
        "local_id": session.local_id,
        "title": session.title,
        "history": [turn_to_dict(t) for t in session.history],
        "updated_at": session.updated_at.isoformat(),
    }


def session_from_dict(data: dict) -> Session:
    history = data.get("history") or []
    if isinstance(history, str):
        try:
            history = json.loads(history)
        except json.JSONDecodeError:
            history = []
    turns = [t for t in (turn_from_dict(item) for item in history) if t is not None]

    raw_id = data.get("id")
    session_id = str(raw_id) if raw_id is not None else None
    # Remote rows carry no local key; their id serves as one.
    local_id = data.get("local_id") or session_id or uuid.uuid4().hex
    return Session(
        id=session_id,
        local_id=str(local_id),
        title=data.get("title") or "New Chat",
        history=turns,
        updated_at=_parse_iso(data.get("updated_at")) or datetime.now(timezone.utc),
    )


def session_to_markdown(session: Session) -> str:
    """Export a session and its turns as clean Markdown."""
    lines = [f"# {session.title}", ""]
    if session.id:
        lines.append(f"**Session:** {session.id}")
    lines.append(f"**Updated:** {session.updated_at.isoformat()}")
    lines.append(f"**Turns:** {len(session.history)}")
    lines.extend(["", "---", ""])

    for turn in session.history:
        role_label = "Assistant" if turn.role == "model" else "User"
        lines.append(f"## {role_label}")
        lines.append("")
        lines.append(turn.text)
        lines.extend(["", "---", ""])

    return "\n".join(lines)


def session_to_json(session: Session) -> str:
    return json.dumps(session_to_dict(session), indent=2, ensure_ascii=False)


def _parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 datetime string."""
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None
