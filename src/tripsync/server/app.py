from __future__ import annotations

from aiohttp import web
from loguru import logger

from tripsync.provider import CompletionProvider
from tripsync.server.auth import TOKEN_VERIFIER, TokenVerifier, auth_middleware
from tripsync.server.keys import COMPLETION_PROVIDER, COMPLETION_SETTINGS, LEDGER_STORE, MESSAGE_LEDGER, SESSION_STORE
from tripsync.server.routes import register_routes
from tripsync.storage import LedgerStore, MessageLedger, SessionStore
from tripsync.system_prompt import build_system_prompt

DEFAULT_MAX_REQUEST_BYTES = 1024 * 1024


def create_app(
    *,
    ledger_store: LedgerStore,
    verifier: TokenVerifier,
    provider: CompletionProvider | None = None,
    model: str = "",
    max_tokens: int = 1000,
    temperature: float = 0.7,
    system_prompt: str | None = None,
    max_request_bytes: int | None = None,
    close_store_on_cleanup: bool = False,
) -> web.Application:
    app = web.Application(
        middlewares=[auth_middleware],
        client_max_size=max_request_bytes or DEFAULT_MAX_REQUEST_BYTES,
    )
    sessions = SessionStore(ledger_store)
    app[LEDGER_STORE] = ledger_store
    app[SESSION_STORE] = sessions
    app[MESSAGE_LEDGER] = MessageLedger(ledger_store, sessions)
    app[TOKEN_VERIFIER] = verifier
    app[COMPLETION_PROVIDER] = provider
    app[COMPLETION_SETTINGS] = {
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "system_prompt": system_prompt if system_prompt is not None else build_system_prompt(),
    }
    register_routes(app)

    if close_store_on_cleanup:

        async def _close_store(app: web.Application) -> None:
            app[LEDGER_STORE].close()
            logger.info("Ledger store closed")

        app.on_cleanup.append(_close_store)
    return app


def run_server(app: web.Application, *, host: str, port: int) -> None:
    logger.info(f"Serving session ledger on http://{host}:{port}")
    web.run_app(app, host=host, port=port, print=None)
