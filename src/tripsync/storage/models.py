from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

PLACEHOLDER_TITLE = "New Trip Plan"
PREVIEW_MAX_CHARS = 100


def utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds")


def now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


def ms_to_iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, UTC).isoformat(timespec="milliseconds")


@dataclass(frozen=True)
class SessionRecord:
    id: str
    owner_id: str
    title: str
    created_at: str
    updated_at: str
    message_count: int
    last_message_preview: str

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "messageCount": self.message_count,
            "lastMessagePreview": self.last_message_preview,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> SessionRecord:
        return cls(
            id=str(payload["id"]),
            owner_id=str(payload.get("ownerId", "")),
            title=str(payload.get("title") or PLACEHOLDER_TITLE),
            created_at=str(payload.get("createdAt", "")),
            updated_at=str(payload.get("updatedAt", payload.get("createdAt", ""))),
            message_count=int(payload.get("messageCount", 0) or 0),
            last_message_preview=str(payload.get("lastMessagePreview") or ""),
        )


@dataclass(frozen=True)
class MessageRecord:
    id: str
    session_id: str
    seq: int
    role: str
    content: str
    timestamp_ms: int

    @property
    def timestamp(self) -> str:
        return ms_to_iso(self.timestamp_ms)

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "seq": self.seq,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ChatMessage:
    """A message as the client knows it, before or after the ledger confirmed it."""

    role: str
    content: str
    id: str | None = None
    timestamp: str | None = None

    def to_payload(self) -> dict:
        payload = {"role": self.role, "content": self.content}
        if self.id is not None:
            payload["id"] = self.id
        if self.timestamp is not None:
            payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_payload(cls, payload: object) -> ChatMessage:
        if not isinstance(payload, dict):
            raise ValueError("message must be an object")
        role = payload.get("role")
        content = payload.get("content")
        if not isinstance(role, str) or not isinstance(content, str):
            raise ValueError("message requires string role and content")
        message_id = payload.get("id")
        timestamp = payload.get("timestamp")
        return cls(
            role=role,
            content=content,
            id=str(message_id) if message_id is not None else None,
            timestamp=str(timestamp) if timestamp is not None else None,
        )


@dataclass(frozen=True)
class AppendResult:
    saved_count: int
    total_count: int

    def to_payload(self) -> dict:
        return {"savedCount": self.saved_count, "totalCount": self.total_count}
