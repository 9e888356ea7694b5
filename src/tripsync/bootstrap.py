from __future__ import annotations

from dataclasses import dataclass

from aiohttp import web
from loguru import logger

from tripsync.api_client import ApiClient
from tripsync.app_config import AppConfig, RuntimeEnv, resolve_path
from tripsync.chat_client import ChatClient
from tripsync.local_cache import LocalCache
from tripsync.logging_config import setup_logging
from tripsync.provider import CompletionProvider, create_provider
from tripsync.server.app import create_app
from tripsync.server.auth import StaticTokenVerifier
from tripsync.storage import LedgerStore
from tripsync.sync_agent import SyncAgent


@dataclass
class ServerRuntime:
    app: web.Application
    ledger_store: LedgerStore
    provider: CompletionProvider | None
    log_descriptions: list[str]


@dataclass
class ClientRuntime:
    api: ApiClient
    client: ChatClient
    cache: LocalCache
    log_descriptions: list[str]


def bootstrap_server(app: AppConfig, env: RuntimeEnv) -> ServerRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers, role="server")

    tokens = {**app.api_tokens, **env.server_tokens}
    if not tokens:
        raise ValueError("No API tokens configured. Set ApiTokens in config.json or TRIPSYNC_API_TOKENS.")

    provider: CompletionProvider | None = None
    if env.provider_api_key:
        provider = create_provider(app.provider_name, env.provider_api_key, app.provider_base_url)
    else:
        logger.warning(f"{env.provider_env_var} is not set; /chat will answer 502")

    ledger_store = LedgerStore(str(resolve_path(app.ledger_db_path)))
    web_app = create_app(
        ledger_store=ledger_store,
        verifier=StaticTokenVerifier(tokens),
        provider=provider,
        model=app.model,
        max_tokens=app.max_tokens,
        temperature=app.temperature,
        close_store_on_cleanup=True,
    )
    logger.info(f"Ledger database: {ledger_store.db_path} ({len(tokens)} token(s) configured)")
    return ServerRuntime(
        app=web_app,
        ledger_store=ledger_store,
        provider=provider,
        log_descriptions=log_descriptions,
    )


def bootstrap_client(app: AppConfig, env: RuntimeEnv) -> ClientRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers, role="client")

    if not env.client_token:
        raise ValueError("TRIPSYNC_API_TOKEN environment variable is required.")

    api = ApiClient(app.server_url, env.client_token, timeout_seconds=app.request_timeout_seconds)
    cache = LocalCache(resolve_path(app.cache_path), max_entries=app.cache_max_entries)
    client = ChatClient(api, cache, SyncAgent(api, max_attempts=app.sync_max_attempts))
    return ClientRuntime(api=api, client=client, cache=cache, log_descriptions=log_descriptions)
