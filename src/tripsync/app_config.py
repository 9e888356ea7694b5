from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    client_token: str | None
    server_tokens: dict[str, str]


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tokens: int
    temperature: float
    provider_base_url: str | None
    ledger_db_path: str
    host: str
    port: int
    api_tokens: dict[str, str]
    server_url: str
    cache_path: str
    cache_max_entries: int
    sync_max_attempts: int
    request_timeout_seconds: float
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_token_table(value: object) -> dict[str, str]:
    """Accept ``{"token": "user"}`` or ``"token:user,token2:user2"``."""
    if isinstance(value, dict):
        return {str(k).strip(): str(v).strip() for k, v in value.items() if str(k).strip() and str(v).strip()}
    if isinstance(value, str):
        table: dict[str, str] = {}
        for pair in value.split(","):
            token, sep, user_id = pair.partition(":")
            if sep and token.strip() and user_id.strip():
                table[token.strip()] = user_id.strip()
        return table
    return {}


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        provider_name=config.get("Provider", "anthropic").strip().lower(),
        model=config.get("Model", "claude-sonnet-4-5-20250929"),
        max_tokens=int(config.get("MaxTokens", 1000)),
        temperature=float(config.get("Temperature", 0.7)),
        provider_base_url=str(config.get("ProviderBaseUrl", "")).strip() or None,
        ledger_db_path=str(config.get("LedgerDbPath", ".tripsync/ledger.db")),
        host=str(config.get("Host", "127.0.0.1")),
        port=int(config.get("Port", 8080)),
        api_tokens=_to_token_table(config.get("ApiTokens", {})),
        server_url=str(config.get("ServerUrl", "http://127.0.0.1:8080")).rstrip("/"),
        cache_path=str(config.get("CachePath", ".tripsync/chats.json")),
        cache_max_entries=int(config.get("CacheMaxEntries", 50)),
        sync_max_attempts=int(config.get("SyncMaxAttempts", 3)),
        request_timeout_seconds=float(config.get("RequestTimeoutSeconds", 30)),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    if provider_name == "openai":
        provider_env_var = "OPENAI_API_KEY"
    elif provider_name == "groq":
        provider_env_var = "GROQ_API_KEY"
    else:
        provider_env_var = "ANTHROPIC_API_KEY"

    return RuntimeEnv(
        provider_api_key=os.environ.get(provider_env_var, ""),
        provider_env_var=provider_env_var,
        client_token=os.environ.get("TRIPSYNC_API_TOKEN", "").strip() or None,
        server_tokens=_to_token_table(os.environ.get("TRIPSYNC_API_TOKENS", "")),
    )


def resolve_path(path: str) -> Path:
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = Path.cwd() / resolved
    return resolved
