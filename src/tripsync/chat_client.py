from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from typing import Protocol

from loguru import logger

from tripsync.errors import InvalidInput, NotFound, SyncFailure, TripSyncError
from tripsync.local_cache import CachedSession, CacheLoad, LocalCache
from tripsync.signature import collapse_adjacent
from tripsync.storage.models import PREVIEW_MAX_CHARS, AppendResult, ChatMessage, SessionRecord
from tripsync.sync_agent import SyncAgent, SyncCursor, SyncOutcome, title_hint_for


class SessionRemote(Protocol):
    async def list_sessions(self) -> list[SessionRecord]: ...

    async def create_session(self, title: str | None = None) -> SessionRecord: ...

    async def read_messages(self, session_id: str) -> tuple[SessionRecord, list[ChatMessage]]: ...

    async def delete_session(self, session_id: str) -> bool: ...

    async def append_messages(
        self,
        session_id: str,
        messages: list[ChatMessage],
        title: str | None = None,
    ) -> AppendResult: ...

    def stream_completion(self, turns: Sequence[ChatMessage]) -> AsyncIterator[str]: ...


@dataclass(frozen=True)
class TurnResult:
    reply: str | None
    sync: SyncOutcome
    error: TripSyncError | None = None


@dataclass(frozen=True)
class SessionListing:
    sessions: list[SessionRecord]
    from_cache: bool = False


@dataclass(frozen=True)
class SessionView:
    session: SessionRecord
    messages: list[ChatMessage]
    from_cache: bool = False


class ChatClient:
    """Console-side conversation state: the active session, its volatile message list and sync cursor.

    The local list is the source of what the user sees. The ledger receives it
    through the ``SyncAgent`` and the local cache mirrors it after every change,
    so a failed sync only delays persistence.
    """

    def __init__(self, remote: SessionRemote, cache: LocalCache, sync_agent: SyncAgent):
        self._remote = remote
        self._cache = cache
        self._sync_agent = sync_agent
        self._session: SessionRecord | None = None
        self._messages: list[ChatMessage] = []
        self._cursor: SyncCursor | None = None
        self._last_sync: SyncOutcome | None = None

    @property
    def session(self) -> SessionRecord | None:
        return self._session

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def cursor(self) -> SyncCursor | None:
        return self._cursor

    @property
    def last_sync(self) -> SyncOutcome | None:
        return self._last_sync

    def load_cache(self) -> CacheLoad:
        return self._cache.load()

    async def send(
        self,
        text: str,
        on_delta: Callable[[str], Awaitable[None]] | None = None,
    ) -> TurnResult:
        """Run one user turn: stream the reply, then sync and mirror whatever the local list holds.

        The assistant turn is appended only once its stream completes. Any
        ``TripSyncError`` from the stream leaves the user turn in place and the
        sync still runs. Cancellation propagates and leaves it for the next sync.
        """
        content = text.strip()
        if not content:
            raise InvalidInput("message must not be empty")

        await self._ensure_session()
        self._messages.append(ChatMessage(role="user", content=content))

        chunks: list[str] = []
        error: TripSyncError | None = None
        try:
            async for chunk in self._remote.stream_completion(list(self._messages)):
                chunks.append(chunk)
                if on_delta is not None:
                    await on_delta(chunk)
        except TripSyncError as ex:
            logger.warning(f"Assistant turn dropped: {ex}")
            error = ex

        reply = "".join(chunks).strip() if error is None else None
        if reply:
            self._messages.append(ChatMessage(role="assistant", content=reply))
        elif error is None:
            logger.warning("Completion finished without any text; no assistant turn recorded")

        outcome = await self.sync()
        return TurnResult(reply=reply or None, sync=outcome, error=error)

    async def sync(self) -> SyncOutcome:
        if self._session is None or self._cursor is None:
            outcome = SyncOutcome(status="noop", cursor=SyncCursor.start(""))
            self._last_sync = outcome
            return outcome

        cursor = self._cursor.for_session(self._session.id)
        title_hint = title_hint_for(collapse_adjacent(self._messages), self._session.title)
        outcome = await self._sync_agent.sync(cursor, self._messages, session_title=self._session.title)
        self._cursor = outcome.cursor
        self._last_sync = outcome
        if outcome.status == "synced":
            self._session = replace(
                self._session,
                title=title_hint or self._session.title,
                message_count=outcome.total_count if outcome.total_count is not None else self._session.message_count,
                last_message_preview=self._messages[-1].content[:PREVIEW_MAX_CHARS] if self._messages else "",
            )
        self._mirror()
        return outcome

    async def retry_sync(self) -> SyncOutcome:
        return await self.sync()

    async def new_session(self, title: str | None = None) -> SessionRecord:
        session = await self._remote.create_session(title)
        self._activate(session, [], SyncCursor.start(session.id))
        self._mirror()
        logger.info(f"Started session {session.id}")
        return session

    async def list_sessions(self) -> SessionListing:
        try:
            return SessionListing(sessions=await self._remote.list_sessions())
        except SyncFailure as ex:
            logger.warning(f"Session list unavailable, showing cached sessions: {ex}")
            return SessionListing(sessions=[e.session for e in self._cache.get_all()], from_cache=True)

    async def switch_session(self, session_id: str) -> SessionView:
        try:
            session, messages = await self._remote.read_messages(session_id)
        except SyncFailure as ex:
            cached = self._cache.get_by_id(session_id)
            if cached is None:
                raise
            logger.warning(f"Server unreachable, opening session {session_id} from the local cache: {ex}")
            # The ledger may lack some of these; resending them all is harmless.
            self._activate(cached.session, list(cached.messages), SyncCursor.start(session_id))
            return SessionView(session=cached.session, messages=self.messages, from_cache=True)

        # Nothing counts as confirmed yet; the ledger drops whatever it already holds.
        self._activate(session, list(messages), SyncCursor.start(session.id))
        self._mirror()
        return SessionView(session=session, messages=self.messages)

    async def delete_session(self, session_id: str) -> None:
        try:
            await self._remote.delete_session(session_id)
        except NotFound:
            logger.info(f"Session {session_id} already absent on the server")
        self._cache.delete(session_id)
        if self._session is not None and self._session.id == session_id:
            self._reset()

    def logout(self) -> None:
        self._reset()
        self._last_sync = None
        self._cache.clear()
        logger.info("Logged out; local state and cache cleared")

    async def _ensure_session(self) -> None:
        if self._session is None:
            await self.new_session()

    def _activate(self, session: SessionRecord, messages: list[ChatMessage], cursor: SyncCursor) -> None:
        self._session = session
        self._messages = messages
        self._cursor = cursor

    def _reset(self) -> None:
        self._session = None
        self._messages = []
        self._cursor = None

    def _mirror(self) -> None:
        if self._session is None:
            return
        if not self._cache.save(CachedSession(session=self._session, messages=list(self._messages))):
            logger.warning(f"Session {self._session.id} not mirrored to the local cache")


def describe_failure(error: TripSyncError | None) -> str:
    if error is None:
        return "unknown error"
    return f"{error.code}: {error.message}"
