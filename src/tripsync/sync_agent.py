from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Literal, Protocol

from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from tripsync.errors import SyncFailure, TripSyncError
from tripsync.signature import collapse_adjacent
from tripsync.storage.models import PLACEHOLDER_TITLE, AppendResult, ChatMessage
from tripsync.titles import synthesize_title

DEFAULT_MAX_ATTEMPTS = 3


class RemoteLedger(Protocol):
    async def append_messages(
        self,
        session_id: str,
        messages: list[ChatMessage],
        title: str | None = None,
    ) -> AppendResult: ...


@dataclass(frozen=True)
class SyncCursor:
    """How many messages of one session's (collapsed) local list the ledger has already been sent."""

    session_id: str
    watermark: int = 0

    @classmethod
    def start(cls, session_id: str) -> SyncCursor:
        return cls(session_id=session_id, watermark=0)

    def for_session(self, session_id: str) -> SyncCursor:
        if session_id == self.session_id:
            return self
        return SyncCursor.start(session_id)

    def advanced_to(self, watermark: int) -> SyncCursor:
        return replace(self, watermark=watermark)


@dataclass(frozen=True)
class SyncOutcome:
    status: Literal["noop", "synced", "failed"]
    cursor: SyncCursor
    sent_count: int = 0
    saved_count: int = 0
    total_count: int | None = None
    attempts: int = 0
    error: TripSyncError | None = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, SyncFailure) and exc.retryable


def _on_retry(retry_state) -> None:
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = str(exc) if exc else "Unknown"
    logger.warning(f"Sync failed ({reason}). Retrying in {wait:.1f}s (attempt {attempt})...")


def pending_batch(cursor: SyncCursor, messages: Sequence[ChatMessage]) -> tuple[list[ChatMessage], int]:
    """Return the unsent suffix of the collapsed list and the length it was cut from."""
    collapsed = collapse_adjacent(messages)
    return collapsed[cursor.watermark:], len(collapsed)


def title_hint_for(messages: Sequence[ChatMessage], session_title: str | None) -> str | None:
    if session_title and session_title != PLACEHOLDER_TITLE:
        return None
    first_user = next((m for m in messages if m.role == "user" and m.content.strip()), None)
    if first_user is None:
        return None
    return synthesize_title(first_user.content)


class SyncAgent:
    """Sends only the not-yet-sent suffix of a session's local message list to the ledger."""

    def __init__(
        self,
        remote: RemoteLedger,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        wait_min_seconds: float = 0.5,
        wait_max_seconds: float = 8.0,
    ):
        self._remote = remote
        self._max_attempts = max(1, max_attempts)
        self._wait_min_seconds = wait_min_seconds
        self._wait_max_seconds = wait_max_seconds

    async def sync(
        self,
        cursor: SyncCursor,
        messages: Sequence[ChatMessage],
        *,
        session_title: str | None = None,
    ) -> SyncOutcome:
        batch, sent_length = pending_batch(cursor, messages)
        if not batch:
            return SyncOutcome(status="noop", cursor=cursor)

        title = title_hint_for(collapse_adjacent(messages), session_title)
        attempts = 0
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_retryable),
                wait=wait_exponential(multiplier=self._wait_min_seconds, min=self._wait_min_seconds, max=self._wait_max_seconds),
                stop=stop_after_attempt(self._max_attempts),
                before_sleep=_on_retry,
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    result = await self._remote.append_messages(cursor.session_id, batch, title)
        except TripSyncError as ex:
            logger.error(
                f"Sync of {len(batch)} message(s) for session {cursor.session_id} failed "
                f"after {attempts} attempt(s): {ex}"
            )
            return SyncOutcome(
                status="failed",
                cursor=cursor,
                sent_count=len(batch),
                attempts=attempts,
                error=ex,
            )

        logger.debug(
            f"Synced session {cursor.session_id}: sent={len(batch)}, saved={result.saved_count}, "
            f"total={result.total_count}, watermark {cursor.watermark} -> {sent_length}"
        )
        return SyncOutcome(
            status="synced",
            cursor=cursor.advanced_to(sent_length),
            sent_count=len(batch),
            saved_count=result.saved_count,
            total_count=result.total_count,
            attempts=attempts,
        )
