from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from loguru import logger

from tripsync.errors import InvalidInput
from tripsync.signature import dedupe, signature
from tripsync.storage.models import AppendResult, ChatMessage, MessageRecord, now_ms
from tripsync.storage.sessions import SessionStore
from tripsync.storage.store import LedgerStore


class MessageLedger:
    """Authoritative, ordered message store for each session.

    ``append`` re-reads the session's full message set on every call and drops
    any candidate whose signature is already stored, so replaying a batch is
    harmless: at-least-once delivery converges to effectively-once storage.

    Each stored message gets the next per-session ``seq`` and a timestamp that
    is strictly greater than every earlier one in the session, so reading back
    by ``seq`` is also non-decreasing by timestamp.
    """

    def __init__(self, store: LedgerStore, sessions: SessionStore):
        self._store = store
        self._sessions = sessions

    def append(
        self,
        session_id: str,
        requester_id: str,
        candidates: Any,
        title_hint: str | None = None,
    ) -> AppendResult:
        with self._store.transaction():
            self._sessions.get_session(session_id, requester_id)
            batch = self._coerce_candidates(candidates)
            existing = self._load_rows(session_id)
            survivors = dedupe(batch, seen=(signature(row) for row in existing))
            survivors = [m for m in survivors if m.content]

            last_seq = max((row.seq for row in existing), default=0)
            last_ts = max((row.timestamp_ms for row in existing), default=0)
            base_ts = max(now_ms(), last_ts + 1)

            params: list[tuple] = []
            for index, message in enumerate(survivors):
                params.append(
                    (
                        str(uuid4()),
                        session_id,
                        last_seq + 1 + index,
                        message.role,
                        message.content,
                        base_ts + index,
                    )
                )
            if params:
                self._store.executemany(
                    """
                    INSERT INTO messages (id, session_id, seq, role, content, timestamp_ms)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    params,
                )

            session = self._sessions.refresh_metadata(
                session_id,
                title_hint=title_hint,
                touched=bool(params),
            )

        logger.info(
            f"Append to {session_id}: {len(batch)} candidate(s), {len(params)} saved, "
            f"{session.message_count} total"
        )
        return AppendResult(saved_count=len(params), total_count=session.message_count)

    def read(self, session_id: str, requester_id: str) -> list[MessageRecord]:
        self._sessions.get_session(session_id, requester_id)
        rows = self._load_rows(session_id)
        unique = dedupe(rows)
        if len(unique) != len(rows):
            logger.warning(f"Session {session_id} holds {len(rows) - len(unique)} duplicate row(s); hidden on read")
        return unique

    def _load_rows(self, session_id: str) -> list[MessageRecord]:
        rows = self._store.execute(
            """
            SELECT id, session_id, seq, role, content, timestamp_ms
            FROM messages
            WHERE session_id = ?
            ORDER BY seq ASC
            """,
            (session_id,),
        ).fetchall()
        return [self._to_record(row) for row in rows]

    def _coerce_candidates(self, candidates: Any) -> list[ChatMessage]:
        if not isinstance(candidates, (list, tuple)):
            raise InvalidInput("messages must be a list")
        if not candidates:
            raise InvalidInput("messages must not be empty")

        batch: list[ChatMessage] = []
        for index, item in enumerate(candidates):
            if isinstance(item, ChatMessage):
                role, content = item.role, item.content
            elif isinstance(item, Mapping):
                role, content = item.get("role"), item.get("content")
            else:
                raise InvalidInput(f"messages[{index}] must be an object")
            if not isinstance(content, str):
                raise InvalidInput(f"messages[{index}].content must be a string")
            # Only an explicit assistant tag is kept; anything else is stored as the user.
            batch.append(ChatMessage(role="assistant" if role == "assistant" else "user", content=content.strip()))
        return batch

    def _to_record(self, row: sqlite3.Row) -> MessageRecord:
        return MessageRecord(
            id=str(row["id"]),
            session_id=str(row["session_id"]),
            seq=int(row["seq"]),
            role=str(row["role"]),
            content=str(row["content"]),
            timestamp_ms=int(row["timestamp_ms"]),
        )
