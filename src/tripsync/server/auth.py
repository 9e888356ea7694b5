from __future__ import annotations

import hmac
from collections.abc import Awaitable, Callable, Mapping
from typing import Protocol, runtime_checkable

from aiohttp import web
from loguru import logger

from tripsync.server.responses import unauthorized_response

PUBLIC_PATHS: frozenset[str] = frozenset({"/health"})

USER_ID = web.RequestKey("user_id", str)


@runtime_checkable
class TokenVerifier(Protocol):
    def verify(self, token: str) -> str | None:
        """Return the user id the token belongs to, or None to reject it."""
        ...


TOKEN_VERIFIER = web.AppKey("token_verifier", TokenVerifier)


class StaticTokenVerifier:
    """Verifies bearer tokens against a fixed token -> user id table."""

    def __init__(self, tokens: Mapping[str, str]):
        self._tokens = dict(tokens)

    def verify(self, token: str) -> str | None:
        matched: str | None = None
        for candidate, user_id in self._tokens.items():
            if hmac.compare_digest(token.encode("utf-8"), candidate.encode("utf-8")):
                matched = user_id
        return matched


def extract_bearer_token(request: web.Request) -> str | None:
    auth_header = request.headers.get("Authorization", "").strip()
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    normalized = token.strip()
    return normalized or None


def request_user_id(request: web.Request) -> str:
    return request[USER_ID]


@web.middleware
async def auth_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    if request.path in PUBLIC_PATHS:
        return await handler(request)
    verifier: TokenVerifier = request.app[TOKEN_VERIFIER]
    token = extract_bearer_token(request)
    user_id = verifier.verify(token) if token is not None else None
    if not user_id:
        logger.info(f"Rejected unauthenticated {request.method} {request.path} from {request.remote}")
        return unauthorized_response()
    request[USER_ID] = user_id
    return await handler(request)
