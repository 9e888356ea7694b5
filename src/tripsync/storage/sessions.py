from __future__ import annotations

import sqlite3
from uuid import uuid4

from loguru import logger

from tripsync.errors import NotFound
from tripsync.storage.models import PLACEHOLDER_TITLE, PREVIEW_MAX_CHARS, SessionRecord, utc_now
from tripsync.storage.store import LedgerStore


class SessionStore:
    def __init__(self, store: LedgerStore):
        self._store = store

    def create_session(self, owner_id: str, title: str | None = None) -> SessionRecord:
        session_id = uuid4().hex
        now = utc_now()
        resolved_title = title.strip() if isinstance(title, str) and title.strip() else PLACEHOLDER_TITLE
        self._store.execute(
            """
            INSERT INTO sessions (id, owner_id, title, created_at, updated_at, message_count, last_message_preview)
            VALUES (?, ?, ?, ?, ?, 0, '')
            """,
            (session_id, owner_id, resolved_title, now, now),
        )
        logger.info(f"Created session {session_id} for {owner_id}")
        return SessionRecord(
            id=session_id,
            owner_id=owner_id,
            title=resolved_title,
            created_at=now,
            updated_at=now,
            message_count=0,
            last_message_preview="",
        )

    def list_sessions(self, owner_id: str) -> list[SessionRecord]:
        rows = self._store.execute(
            """
            SELECT * FROM sessions
            WHERE owner_id = ?
            ORDER BY updated_at DESC, created_at DESC
            """,
            (owner_id,),
        ).fetchall()
        return [self._to_record(row) for row in rows]

    def get_session(self, session_id: str, owner_id: str) -> SessionRecord:
        row = self._store.execute(
            "SELECT * FROM sessions WHERE id = ? AND owner_id = ? LIMIT 1",
            (session_id, owner_id),
        ).fetchone()
        if row is None:
            raise NotFound(f"Session not found: {session_id}")
        return self._to_record(row)

    def delete_session(self, session_id: str, owner_id: str) -> None:
        with self._store.transaction():
            self.get_session(session_id, owner_id)
            deleted = self._store.execute(
                "DELETE FROM messages WHERE session_id = ?",
                (session_id,),
            ).rowcount
            self._store.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        logger.info(f"Deleted session {session_id} and {deleted} message(s)")

    def refresh_metadata(self, session_id: str, *, title_hint: str | None, touched: bool) -> SessionRecord:
        """Recompute count and preview from the stored messages; apply a non-blank title hint.

        Only the message ledger calls this, inside its append transaction.
        """
        count_row = self._store.execute(
            "SELECT COUNT(*) AS c FROM messages WHERE session_id = ?",
            (session_id,),
        ).fetchone()
        message_count = int(count_row["c"]) if count_row is not None else 0

        last_row = self._store.execute(
            """
            SELECT content FROM messages
            WHERE session_id = ?
            ORDER BY timestamp_ms DESC, seq DESC
            LIMIT 1
            """,
            (session_id,),
        ).fetchone()
        preview = str(last_row["content"])[:PREVIEW_MAX_CHARS] if last_row is not None else ""

        current = self._store.execute(
            "SELECT title FROM sessions WHERE id = ? LIMIT 1",
            (session_id,),
        ).fetchone()
        if current is None:
            raise NotFound(f"Session not found: {session_id}")
        title = str(current["title"])
        if isinstance(title_hint, str) and title_hint.strip() and title_hint.strip() != title:
            title = title_hint.strip()
            touched = True

        if touched:
            self._store.execute(
                """
                UPDATE sessions
                SET message_count = ?, last_message_preview = ?, title = ?, updated_at = ?
                WHERE id = ?
                """,
                (message_count, preview, title, utc_now(), session_id),
            )
        else:
            self._store.execute(
                "UPDATE sessions SET message_count = ?, last_message_preview = ? WHERE id = ?",
                (message_count, preview, session_id),
            )

        row = self._store.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return self._to_record(row)

    def _to_record(self, row: sqlite3.Row) -> SessionRecord:
        return SessionRecord(
            id=str(row["id"]),
            owner_id=str(row["owner_id"]),
            title=str(row["title"]),
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
            message_count=int(row["message_count"]),
            last_message_preview=str(row["last_message_preview"]),
        )
