from __future__ import annotations

import json
from typing import Any

from aiohttp import web
from loguru import logger

from tripsync.errors import CompletionFailure, InvalidInput, NotFound, StorageFailure, TripSyncError
from tripsync.provider import CompletionProvider
from tripsync.server.auth import request_user_id
from tripsync.server.keys import COMPLETION_PROVIDER, COMPLETION_SETTINGS, MESSAGE_LEDGER, SESSION_STORE
from tripsync.server.responses import error_from_exception, error_response, json_response
from tripsync.storage import ChatMessage, MessageLedger, SessionStore


async def _read_json_object(request: web.Request, *, allow_empty: bool = False) -> dict[str, Any]:
    try:
        raw = (await request.read()).decode("utf-8")
    except UnicodeDecodeError as ex:
        raise InvalidInput("Body must be UTF-8 JSON") from ex
    if not raw.strip() and allow_empty:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as ex:
        raise InvalidInput(f"Invalid JSON: {ex.msg}") from ex
    except RecursionError as ex:
        raise InvalidInput("JSON body is nested too deeply") from ex
    if not isinstance(payload, dict):
        raise InvalidInput("JSON body must be an object")
    return payload


def _optional_title(payload: dict[str, Any]) -> str | None:
    title = payload.get("title")
    if title is None:
        return None
    if not isinstance(title, str):
        raise InvalidInput("title must be a string")
    return title


_STATUS_BY_ERROR: tuple[tuple[type[TripSyncError], int], ...] = (
    (NotFound, 404),
    (InvalidInput, 400),
    (StorageFailure, 500),
)


def _failure_response(ex: TripSyncError) -> web.Response:
    status = next((code for error_type, code in _STATUS_BY_ERROR if isinstance(ex, error_type)), 500)
    return error_from_exception(ex, status=status)


async def handle_health(request: web.Request) -> web.Response:
    return json_response({"status": "ok"})


async def handle_sessions_list(request: web.Request) -> web.Response:
    sessions: SessionStore = request.app[SESSION_STORE]
    try:
        records = sessions.list_sessions(request_user_id(request))
    except StorageFailure as ex:
        return _failure_response(ex)
    return json_response({"sessions": [r.to_payload() for r in records]})


async def handle_sessions_create(request: web.Request) -> web.Response:
    sessions: SessionStore = request.app[SESSION_STORE]
    try:
        payload = await _read_json_object(request, allow_empty=True)
        record = sessions.create_session(request_user_id(request), _optional_title(payload))
    except (InvalidInput, StorageFailure) as ex:
        return _failure_response(ex)
    return json_response(record.to_payload())


async def handle_session_get(request: web.Request) -> web.Response:
    sessions: SessionStore = request.app[SESSION_STORE]
    ledger: MessageLedger = request.app[MESSAGE_LEDGER]
    session_id = request.match_info["session_id"]
    user_id = request_user_id(request)
    try:
        record = sessions.get_session(session_id, user_id)
        messages = ledger.read(session_id, user_id)
    except (NotFound, StorageFailure) as ex:
        return _failure_response(ex)
    return json_response(
        {
            "session": record.to_payload(),
            "messages": [m.to_payload() for m in messages],
        }
    )


async def handle_session_delete(request: web.Request) -> web.Response:
    sessions: SessionStore = request.app[SESSION_STORE]
    try:
        sessions.delete_session(request.match_info["session_id"], request_user_id(request))
    except (NotFound, StorageFailure) as ex:
        return _failure_response(ex)
    return json_response({"success": True})


async def handle_messages_append(request: web.Request) -> web.Response:
    ledger: MessageLedger = request.app[MESSAGE_LEDGER]
    session_id = request.match_info["session_id"]
    try:
        payload = await _read_json_object(request)
        result = ledger.append(
            session_id,
            request_user_id(request),
            payload.get("messages"),
            title_hint=_optional_title(payload),
        )
    except (NotFound, InvalidInput, StorageFailure) as ex:
        if isinstance(ex, StorageFailure):
            logger.error(f"Append to {session_id} failed: {ex}")
        return _failure_response(ex)
    return json_response(result.to_payload())


def _parse_turns(payload: dict[str, Any]) -> list[ChatMessage]:
    raw = payload.get("messages")
    if not isinstance(raw, list) or not raw:
        raise InvalidInput("messages must be a non-empty list")
    turns: list[ChatMessage] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict) or not isinstance(item.get("content"), str):
            raise InvalidInput(f"messages[{index}] must have string content")
        role = "assistant" if item.get("role") == "assistant" else "user"
        turns.append(ChatMessage(role=role, content=item["content"]))
    return turns


async def handle_chat(request: web.Request) -> web.StreamResponse:
    provider: CompletionProvider | None = request.app[COMPLETION_PROVIDER]
    settings: dict[str, Any] = request.app[COMPLETION_SETTINGS]
    try:
        turns = _parse_turns(await _read_json_object(request))
    except InvalidInput as ex:
        return _failure_response(ex)
    if provider is None:
        return error_from_exception(CompletionFailure("No completion provider is configured"), status=502)

    response = web.StreamResponse(headers={"Content-Type": "text/plain; charset=utf-8"})

    async def on_delta(text: str) -> None:
        if not text:
            return
        if not response.prepared:
            await response.prepare(request)
        await response.write(text.encode("utf-8"))

    try:
        await provider.stream_chat(
            settings["model"],
            settings["max_tokens"],
            settings["temperature"],
            settings["system_prompt"],
            turns,
            on_delta=on_delta,
        )
    except Exception as ex:  # noqa: BLE001
        logger.error(f"Completion for {request_user_id(request)} failed: {type(ex).__name__}: {ex}")
        if not response.prepared:
            return error_response(
                status=502,
                message=f"Completion failed: {type(ex).__name__}",
                error_type="server_error",
                code=CompletionFailure.code,
            )
        await response.write_eof()
        return response

    if not response.prepared:
        await response.prepare(request)
    await response.write_eof()
    return response
