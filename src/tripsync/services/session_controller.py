from __future__ import annotations

from tripsync.storage.models import SessionRecord


class SessionController:
    def __init__(self, *, line_prefix: str, short_id_len: int = 8):
        self._line_prefix = line_prefix
        self._short_id_len = short_id_len

    def short_id(self, value: str) -> str:
        return value[: self._short_id_len]

    def format_current(self, session: SessionRecord | None, *, message_count: int, watermark: int) -> str:
        if session is None:
            return f"{self._line_prefix}Current session: none (one is created with your first message)"
        return (
            f"{self._line_prefix}Current session: {session.title} [{self.short_id(session.id)}] "
            f"(id={session.id}, local={message_count}, synced={watermark})"
        )

    def format_session_list_entry(self, session: SessionRecord, *, active_session_id: str | None) -> str:
        marker = "*" if session.id == active_session_id else " "
        line = (
            f"{self._line_prefix}{marker} {session.title} [{self.short_id(session.id)}] "
            f"({session.message_count} messages, updated={session.updated_at})"
        )
        if session.last_message_preview:
            line += f"\n{self._line_prefix}    {session.last_message_preview}"
        return line
