from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from tripsync.errors import CacheCorruption
from tripsync.signature import dedupe
from tripsync.storage.models import ChatMessage, SessionRecord

DEFAULT_MAX_ENTRIES = 50


@dataclass(frozen=True)
class CachedSession:
    session: SessionRecord
    messages: list[ChatMessage] = field(default_factory=list)

    def to_payload(self) -> dict:
        return {
            "session": self.session.to_payload(),
            "messages": [m.to_payload() for m in self.messages],
        }

    @classmethod
    def from_payload(cls, payload: object) -> CachedSession:
        if not isinstance(payload, dict):
            raise ValueError("cache entry must be an object")
        session_payload = payload.get("session")
        if not isinstance(session_payload, dict) or not session_payload.get("id"):
            raise ValueError("cache entry has no session id")
        raw_messages = payload.get("messages", [])
        if not isinstance(raw_messages, list):
            raise ValueError("cache entry messages must be a list")
        return cls(
            session=SessionRecord.from_payload(session_payload),
            messages=[ChatMessage.from_payload(m) for m in raw_messages],
        )


@dataclass(frozen=True)
class CacheLoad:
    entries: list[CachedSession]
    dropped: int = 0
    error: CacheCorruption | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LocalCache:
    """Client-side mirror of sessions and their messages, kept in one JSON file.

    Holds at most ``max_entries`` sessions; the oldest by insertion order is
    evicted first. Saving an entry that already exists merges its messages by
    signature instead of replacing them, the same rule the ledger applies.
    """

    def __init__(self, path: str | Path, *, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._path = Path(path)
        self._max_entries = max(1, max_entries)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CacheLoad:
        if not self._path.exists():
            return CacheLoad(entries=[])
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, RecursionError, json.JSONDecodeError) as ex:
            logger.warning(f"Local cache at {self._path} is unreadable, treating as empty: {ex}")
            return CacheLoad(entries=[], error=CacheCorruption(str(ex)))
        if not isinstance(raw, list):
            logger.warning(f"Local cache at {self._path} is not a list, treating as empty")
            return CacheLoad(entries=[], error=CacheCorruption("cache root must be a list"))

        entries: list[CachedSession] = []
        dropped = 0
        for item in raw:
            try:
                entries.append(CachedSession.from_payload(item))
            except (AttributeError, KeyError, TypeError, ValueError) as ex:
                dropped += 1
                logger.debug(f"Dropping malformed cache entry: {ex}")
        if dropped:
            logger.warning(f"Dropped {dropped} malformed local cache entr{'y' if dropped == 1 else 'ies'}")
        return CacheLoad(entries=entries, dropped=dropped)

    def get_all(self) -> list[CachedSession]:
        return self.load().entries

    def get_by_id(self, session_id: str) -> CachedSession | None:
        if not session_id:
            return None
        for entry in self.get_all():
            if entry.session.id == session_id:
                return entry
        return None

    def save(self, entry: CachedSession) -> bool:
        entries = self.get_all()
        merged = CachedSession(session=entry.session, messages=dedupe(entry.messages))
        for index, existing in enumerate(entries):
            if existing.session.id == entry.session.id:
                merged = CachedSession(
                    session=entry.session,
                    messages=dedupe([*existing.messages, *entry.messages]),
                )
                entries[index] = merged
                break
        else:
            entries.append(merged)
        return self._write(entries[-self._max_entries:])

    def delete(self, session_id: str) -> bool:
        entries = self.get_all()
        kept = [e for e in entries if e.session.id != session_id]
        if len(kept) == len(entries):
            return True
        return self._write(kept)

    def clear(self) -> bool:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as ex:
            logger.warning(f"Failed to clear local cache at {self._path}: {ex}")
            return False
        return True

    def _write(self, entries: list[CachedSession]) -> bool:
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps([e.to_payload() for e in entries], ensure_ascii=False),
                encoding="utf-8",
            )
            os.replace(tmp_path, self._path)
        except OSError as ex:
            logger.warning(f"Failed to write local cache at {self._path}: {ex}")
            return False
        return True
