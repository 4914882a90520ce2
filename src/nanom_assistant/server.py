"""FastAPI web server for nanom-assistant."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from .assistant import Assistant
from .core import GenerationOutcome, Identity, ParsedReply, Session, Turn
from .export import session_from_dict, session_to_dict, session_to_json, session_to_markdown
from .parser import parse_reply
from .store import GUEST_IDENTITY

logger = logging.getLogger(__name__)

# Assistant cache (built on first request)
_assistant: Assistant | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _assistant
    yield
    if _assistant is not None:
        await _assistant.aclose()
        _assistant = None


app = FastAPI(title="nanom-assistant", version="0.1.0", lifespan=lifespan)


def _get_assistant() -> Assistant:
    """Lazily build and cache the assistant."""
    global _assistant
    if _assistant is None:
        _assistant = Assistant.from_config()
        logger.info("Assistant ready (remote sync: %s)", _assistant.table is not None)
    return _assistant


def _identity(
    x_user_id: str | None = Header(None),
    x_user_email: str | None = Header(None),
    authorization: str | None = Header(None),
) -> Identity | None:
    """Read the signed-in identity from request headers, if any."""
    if not x_user_id or not x_user_email:
        return None
    token = ""
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    return Identity(user_id=x_user_id, email=x_user_email, access_token=token)


class TurnIn(BaseModel):
    role: str
    text: str


class GenerateRequest(BaseModel):
    history: list[TurnIn] = []
    prompt: str


class RespondRequest(BaseModel):
    session_id: str | None = None
    prompt: str


class PersistTurnRequest(BaseModel):
    session: dict
    turn: TurnIn


def _reply_to_dict(reply: ParsedReply) -> dict:
    return {
        "kind": reply.kind,
        "payload": reply.payload,
        "text": reply.text,
        "display_text": reply.display_text,
    }


def _outcome_to_dict(outcome: GenerationOutcome) -> dict:
    if not outcome.ok:
        return {"ok": False, "error": outcome.last_error_message}
    return {
        "ok": True,
        "text": outcome.text,
        "model": {
            "name": outcome.used_candidate.model_name,
            "api_version": outcome.used_candidate.api_version,
        },
    }


def _check_role(role: str) -> None:
    if role not in ("user", "model"):
        raise HTTPException(status_code=422, detail=f"Unknown role: {role}")


# ── Routes ───────────────────────────────────────────────────────


@app.get("/")
async def index():
    """Return service status."""
    assistant = _get_assistant()
    sticky = assistant.orchestrator.sticky
    return {
        "name": "nanom-assistant",
        "remote_sync": assistant.table is not None,
        "model": sticky.model_name if sticky else None,
    }


@app.post("/api/generate")
async def generate(body: GenerateRequest):
    """Generate a reply for the given history and prompt."""
    for turn in body.history:
        _check_role(turn.role)
    history = [Turn(role=t.role, text=t.text) for t in body.history]

    outcome = await _get_assistant().generate(history, body.prompt)
    result = _outcome_to_dict(outcome)
    if outcome.ok:
        result["reply"] = _reply_to_dict(parse_reply(outcome.text))
    return result


@app.post("/api/respond")
async def respond(body: RespondRequest, identity: Identity | None = Depends(_identity)):
    """Run one exchange inside a stored (or new) session and persist it.

    ``session_id`` may be the session's local key or its remote id.
    """
    assistant = _get_assistant()
    email = identity.email if identity else GUEST_IDENTITY

    if body.session_id:
        session = assistant.store.get_session(email, body.session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
    else:
        session = assistant.new_chat()

    outcome, reply = await assistant.respond(session, body.prompt, identity)
    result = _outcome_to_dict(outcome)
    result["session"] = session_to_dict(session)
    if reply is not None:
        result["reply"] = _reply_to_dict(reply)
    return result


@app.get("/api/sessions")
async def get_sessions(
    search: str | None = Query(None, description="Search in titles"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    identity: Identity | None = Depends(_identity),
):
    """Return the caller's sessions, most recently updated first."""
    sessions = await _get_assistant().list_sessions(identity)

    if search:
        search_lower = search.lower()
        sessions = [s for s in sessions if search_lower in s.title.lower()]

    total = len(sessions)
    sessions = sessions[offset: offset + limit]
    return {
        "total": total,
        "sessions": [session_to_dict(s) for s in sessions],
    }


@app.get("/api/session/{session_id}")
async def get_session(session_id: str, identity: Identity | None = Depends(_identity)):
    """Return one stored session with its full history."""
    return session_to_dict(_find_session(session_id, identity))


@app.post("/api/session/turns")
async def persist_turn(body: PersistTurnRequest, identity: Identity | None = Depends(_identity)):
    """Append a turn to a session and persist it."""
    _check_role(body.turn.role)
    session = session_from_dict(body.session)
    await _get_assistant().persist_turn(
        session, Turn(role=body.turn.role, text=body.turn.text), identity
    )
    return session_to_dict(session)


@app.delete("/api/session/{session_id}")
async def delete_session(session_id: str, identity: Identity | None = Depends(_identity)):
    """Delete a session remotely, then locally."""
    session = _find_session(session_id, identity)
    if not await _get_assistant().delete_session(session, identity):
        raise HTTPException(status_code=502, detail="Remote delete failed")
    return {"deleted": session_id}


@app.delete("/api/user-data")
async def delete_user_data(identity: Identity | None = Depends(_identity)):
    """Delete the signed-in user's remote data blob."""
    if identity is None:
        raise HTTPException(status_code=401, detail="Sign-in required")
    if not await _get_assistant().delete_remote_data(identity):
        raise HTTPException(status_code=502, detail="Remote delete failed")
    return {"deleted": identity.email}


@app.get("/api/identities")
async def get_identities():
    """Return identities with local data on this machine."""
    return _get_assistant().store.list_identities()


@app.get("/api/export/{session_id}")
async def export_session(
    session_id: str,
    format: str = Query("md", description="Export format: md or json"),
    identity: Identity | None = Depends(_identity),
):
    """Export a session as Markdown or JSON."""
    session = _find_session(session_id, identity)
    safe_title = "".join(c if c.isalnum() or c in "-_ " else "" for c in session.title)[:50]

    if format == "json":
        return Response(
            content=session_to_json(session),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{safe_title}.json"'},
        )
    return Response(
        content=session_to_markdown(session),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{safe_title}.md"'},
    )


def _find_session(session_id: str, identity: Identity | None) -> Session:
    email = identity.email if identity else GUEST_IDENTITY
    session = _get_assistant().store.get_session(email, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session
