from __future__ import annotations

from aiohttp import web

from tripsync.errors import TripSyncError


def json_response(payload: dict, *, status: int = 200) -> web.Response:
    return web.json_response(payload, status=status)


def error_response(*, status: int, message: str, error_type: str, code: str) -> web.Response:
    return json_response(
        {"error": {"message": message, "type": error_type, "code": code}},
        status=status,
    )


def unauthorized_response() -> web.Response:
    return error_response(
        status=401,
        message="Unauthorized.",
        error_type="authentication_error",
        code="unauthorized",
    )


def error_from_exception(exc: TripSyncError, *, status: int) -> web.Response:
    error_type = "server_error" if status >= 500 else "invalid_request_error"
    return error_response(status=status, message=exc.message, error_type=error_type, code=exc.code)
