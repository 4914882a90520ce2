"""The assistant facade: the entry points the UI layer calls.

``generate`` turns history plus a prompt into a tagged outcome, and
``persist_turn`` records a turn locally and mirrors the session remotely
when an identity is signed in. Everything else here composes those two.
"""

import logging
from datetime import datetime, timezone

from .backends import get_blob_store, get_session_table, get_user_data_table
from .core import GenerationOutcome, Identity, ParsedReply, Session, Turn
from .invoker import ModelInvoker
from .orchestrator import GenerationOrchestrator
from .parser import parse_reply
from .provider import SessionTable, UserDataTable
from .store import GUEST_IDENTITY, SessionStore
from .sync import SyncCoordinator

logger = logging.getLogger(__name__)

TITLE_MAX_LEN = 30
DEFAULT_TITLE = "New Chat"


def title_from_history(history: list[Turn]) -> str:
    """Title a session from its first user turn."""
    for turn in history:
        if turn.role == "user" and turn.text:
            return _truncate(turn.text, TITLE_MAX_LEN)
    return DEFAULT_TITLE


class Assistant:
    """Wires generation, local persistence and remote sync together."""

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        store: SessionStore,
        table: SessionTable | None = None,
        user_data: UserDataTable | None = None,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.table = table
        self.user_data = user_data

    @classmethod
    def from_config(cls) -> "Assistant":
        """Build an assistant from ``NANOM_*`` environment settings."""
        orchestrator = GenerationOrchestrator(ModelInvoker())
        return cls(
            orchestrator,
            SessionStore(get_blob_store()),
            get_session_table(),
            get_user_data_table(),
        )

    async def aclose(self) -> None:
        """Close the HTTP clients held by the invoker and remote tables."""
        await self.orchestrator.invoker.aclose()
        for remote in (self.table, self.user_data):
            aclose = getattr(remote, "aclose", None)
            if aclose is not None:
                await aclose()

    def sync_for(self, identity: Identity | None) -> SyncCoordinator:
        return SyncCoordinator(self.table, identity, self.user_data)

    async def generate(self, history: list[Turn], prompt: str) -> GenerationOutcome:
        return await self.orchestrator.generate(history, prompt)

    async def persist_turn(
        self, session: Session, turn: Turn, identity: Identity | None = None
    ) -> None:
        """Append ``turn`` to ``session``, save it locally, then mirror it remotely."""
        await self._persist(session, [turn], identity)

    async def respond(
        self, session: Session, prompt: str, identity: Identity | None = None
    ) -> tuple[GenerationOutcome, ParsedReply | None]:
        """Run one exchange. Nothing is persisted when generation fails."""
        outcome = await self.generate(session.history, prompt)
        if not outcome.ok:
            return outcome, None

        reply = parse_reply(outcome.text)
        turns = [Turn(role="user", text=prompt), Turn(role="model", text=reply.display_text)]
        await self._persist(session, turns, identity)
        return outcome, reply

    def new_chat(self) -> Session:
        """Start an empty session. Earlier sessions stay stored under their local keys."""
        return Session()

    async def list_sessions(self, identity: Identity | None = None) -> list[Session]:
        """Return local sessions, refreshed from the remote data blob when signed in."""
        await self.sync_for(identity).pull(self.store)
        return self.store.list_sessions(_email_for(identity))

    async def delete_session(self, session: Session, identity: Identity | None = None) -> bool:
        """Delete remotely first; remove locally only if that succeeded."""
        sync = self.sync_for(identity)
        if session.id is not None and sync.available:
            if not await sync.delete(session.id):
                return False
        email = _email_for(identity)
        self.store.remove_session(email, session.local_id)
        await self._push_user_data(sync, email)
        return True

    async def delete_remote_data(self, identity: Identity | None) -> bool:
        """Delete the identity's remote data blob. Local data is kept."""
        return await self.sync_for(identity).remove_user_data()

    async def _persist(
        self, session: Session, turns: list[Turn], identity: Identity | None
    ) -> None:
        session.history.extend(turns)
        session.title = title_from_history(session.history)
        session.updated_at = datetime.now(timezone.utc)

        email = _email_for(identity)
        self.store.put_session(email, session)

        sync = self.sync_for(identity)
        had_id = session.id is not None
        remote_id = await sync.upsert(session)
        if remote_id is not None and not had_id:
            self.store.put_session(email, session)
        await self._push_user_data(sync, email)

    async def _push_user_data(self, sync: SyncCoordinator, email: str) -> None:
        if not sync.user_data_available:
            return
        data = self.store.load(email)
        if data is not None:
            await sync.save_user_data(data)


def _email_for(identity: Identity | None) -> str:
    return identity.email if identity is not None else GUEST_IDENTITY


def _truncate(text: str, max_len: int) -> str:
    """Truncate text to max_len, adding ellipsis if needed."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
