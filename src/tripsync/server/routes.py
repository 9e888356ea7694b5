from __future__ import annotations

from aiohttp import web

from tripsync.server import handlers


def register_routes(app: web.Application) -> None:
    app.router.add_get("/health", handlers.handle_health)
    app.router.add_get("/sessions", handlers.handle_sessions_list)
    app.router.add_post("/sessions", handlers.handle_sessions_create)
    app.router.add_get("/sessions/{session_id}", handlers.handle_session_get)
    app.router.add_delete("/sessions/{session_id}", handlers.handle_session_delete)
    app.router.add_post("/sessions/{session_id}/messages", handlers.handle_messages_append)
    app.router.add_post("/chat", handlers.handle_chat)
