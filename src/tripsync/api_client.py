from __future__ import annotations

from collections.abc import AsyncIterator, Sequence

import httpx
from loguru import logger

from tripsync.errors import CompletionFailure, InvalidInput, NotFound, SyncFailure, Unauthorized
from tripsync.storage.models import AppendResult, ChatMessage, SessionRecord


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return str(payload["error"].get("message", response.reason_phrase))
    return response.reason_phrase


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    message = _error_message(response)
    if status == 401:
        raise Unauthorized(message)
    if status == 404:
        raise NotFound(message)
    if status == 400:
        raise InvalidInput(message)
    raise SyncFailure(f"HTTP {status}: {message}", retryable=status >= 500, status=status)


class ApiClient:
    """Client for the session ledger HTTP API.

    Transport errors and 5xx responses become retryable ``SyncFailure``s; the
    ``SyncAgent`` decides whether to try again.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def list_sessions(self) -> list[SessionRecord]:
        payload = await self._request("GET", "/sessions")
        return [SessionRecord.from_payload(item) for item in payload.get("sessions", [])]

    async def create_session(self, title: str | None = None) -> SessionRecord:
        body = {"title": title} if title else {}
        payload = await self._request("POST", "/sessions", json=body)
        return SessionRecord.from_payload(payload)

    async def read_messages(self, session_id: str) -> tuple[SessionRecord, list[ChatMessage]]:
        payload = await self._request("GET", f"/sessions/{session_id}")
        session = SessionRecord.from_payload(payload["session"])
        messages = [ChatMessage.from_payload(item) for item in payload.get("messages", [])]
        return session, messages

    async def delete_session(self, session_id: str) -> bool:
        payload = await self._request("DELETE", f"/sessions/{session_id}")
        return bool(payload.get("success"))

    async def append_messages(
        self,
        session_id: str,
        messages: list[ChatMessage],
        title: str | None = None,
    ) -> AppendResult:
        body: dict = {"messages": [{"role": m.role, "content": m.content} for m in messages]}
        if title:
            body["title"] = title
        payload = await self._request("POST", f"/sessions/{session_id}/messages", json=body)
        return AppendResult(
            saved_count=int(payload.get("savedCount", 0)),
            total_count=int(payload.get("totalCount", 0)),
        )

    async def stream_completion(self, turns: Sequence[ChatMessage]) -> AsyncIterator[str]:
        body = {"messages": [{"role": m.role, "content": m.content} for m in turns]}
        try:
            async with self._client.stream("POST", "/chat", json=body) as response:
                if response.status_code >= 400:
                    await response.aread()
                    if response.status_code == 502:
                        raise CompletionFailure(_error_message(response))
                    _raise_for_status(response)
                async for chunk in response.aiter_text():
                    if chunk:
                        yield chunk
        except httpx.TransportError as ex:
            logger.warning(f"Completion stream interrupted: {ex}")
            raise CompletionFailure(f"Completion stream interrupted: {ex}") from ex

    async def _request(self, method: str, path: str, *, json: dict | None = None) -> dict:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TransportError as ex:
            logger.debug(f"{method} {path} transport error: {ex}")
            raise SyncFailure(f"{method} {path} failed: {ex}") from ex
        _raise_for_status(response)
        try:
            payload = response.json()
        except ValueError as ex:
            raise SyncFailure(f"{method} {path} returned invalid JSON", retryable=False) from ex
        if not isinstance(payload, dict):
            raise SyncFailure(f"{method} {path} returned unexpected payload", retryable=False)
        return payload
