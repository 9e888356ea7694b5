from tripsync.storage.ledger import MessageLedger
from tripsync.storage.models import (
    PLACEHOLDER_TITLE,
    AppendResult,
    ChatMessage,
    MessageRecord,
    SessionRecord,
)
from tripsync.storage.sessions import SessionStore
from tripsync.storage.store import LedgerStore

__all__ = [
    "PLACEHOLDER_TITLE",
    "AppendResult",
    "ChatMessage",
    "LedgerStore",
    "MessageLedger",
    "MessageRecord",
    "SessionRecord",
    "SessionStore",
]
