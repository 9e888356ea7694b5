from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from loguru import logger

from tripsync.errors import StorageFailure


class LedgerStore:
    def __init__(self, db_path: str):
        self._db_path = Path(db_path)
        self._in_transaction = False
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._initialize_schema()
        except (OSError, sqlite3.Error) as ex:
            logger.error(f"Ledger store unavailable at {self._db_path}: {ex}")
            raise StorageFailure(f"Ledger store unavailable: {ex}") from ex

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        self._conn.close()

    def execute(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(query, params)
        except sqlite3.Error as ex:
            logger.error(f"Ledger query failed: {ex}")
            raise StorageFailure(f"Ledger query failed: {ex}") from ex

    def executemany(self, query: str, seq_of_params: list[tuple[Any, ...]]) -> sqlite3.Cursor:
        try:
            return self._conn.executemany(query, seq_of_params)
        except sqlite3.Error as ex:
            logger.error(f"Ledger batch write failed: {ex}")
            raise StorageFailure(f"Ledger batch write failed: {ex}") from ex

    @contextmanager
    def transaction(self) -> Iterator[LedgerStore]:
        """Run the enclosed statements atomically. Nested use joins the outer transaction."""
        if self._in_transaction:
            yield self
            return
        self.execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self._in_transaction = False
            self._conn.execute("ROLLBACK")
            raise
        self._in_transaction = False
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as ex:
            logger.error(f"Ledger commit failed: {ex}")
            raise StorageFailure(f"Ledger commit failed: {ex}") from ex

    def _initialize_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                title TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                message_count INTEGER NOT NULL DEFAULT 0,
                last_message_preview TEXT NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                seq INTEGER NOT NULL,
                role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
                content TEXT NOT NULL,
                timestamp_ms INTEGER NOT NULL,
                UNIQUE(session_id, seq)
            );

            CREATE INDEX IF NOT EXISTS idx_sessions_owner_updated
                ON sessions(owner_id, updated_at);
            CREATE INDEX IF NOT EXISTS idx_messages_session_seq
                ON messages(session_id, seq);
            """
        )
