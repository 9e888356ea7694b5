from __future__ import annotations

from typing import Any

from aiohttp import web

from tripsync.provider import CompletionProvider
from tripsync.storage import LedgerStore, MessageLedger, SessionStore

LEDGER_STORE = web.AppKey("ledger_store", LedgerStore)
SESSION_STORE = web.AppKey("session_store", SessionStore)
MESSAGE_LEDGER = web.AppKey("message_ledger", MessageLedger)
COMPLETION_PROVIDER = web.AppKey[CompletionProvider | None]("completion_provider")
# model, max_tokens, temperature and system_prompt for the chat route
COMPLETION_SETTINGS = web.AppKey[dict[str, Any]]("completion_settings")
