"""aiohttp server exposing the chat assistant over a small JSON API.

Routes:
    POST /api/chat   {"message": str, "session_id"?: str}
    POST /api/reset  {"session_id"?: str}
    GET  /api/urls
    GET  /health
Static files are served from ``static_dir`` at ``/`` when it exists.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from sitebot.chat.orchestrator import ChatOrchestrator
from sitebot.chat.session import DEFAULT_SESSION_ID
from sitebot.sitemap import UrlIndex

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY = web.AppKey("orchestrator", ChatOrchestrator)
INDEX_KEY = web.AppKey("url_index", UrlIndex)


@web.middleware
async def _log_requests(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    logger.info("%s %s", request.method, request.path)
    return await handler(request)


async def _read_json(request: web.Request) -> dict[str, Any] | None:
    """Parse a JSON object body; None when the body is missing or invalid."""
    if not request.can_read_body:
        return {}
    try:
        payload = await request.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _session_id(payload: dict[str, Any]) -> str:
    value = payload.get("session_id")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return DEFAULT_SESSION_ID


async def _handle_chat(request: web.Request) -> web.Response:
    """POST /api/chat: run one conversation turn."""
    payload = await _read_json(request)
    if payload is None:
        logger.warning("Chat request rejected: invalid JSON")
        return web.json_response({"error": "invalid JSON"}, status=400)

    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        logger.warning("Chat request rejected: no message in body")
        return web.json_response({"error": "Message is required"}, status=400)

    session_id = _session_id(payload)
    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        response = await orchestrator.chat(message.strip(), session_id=session_id)
    except Exception:
        logger.exception("Chat request failed (session %s)", session_id)
        return web.json_response({"error": "Failed to process message"}, status=500)

    return web.json_response({"response": response, "session_id": session_id})


async def _handle_reset(request: web.Request) -> web.Response:
    """POST /api/reset: clear a session's conversation history."""
    payload = await _read_json(request) or {}
    request.app[ORCHESTRATOR_KEY].reset_conversation(_session_id(payload))
    return web.json_response({"message": "Conversation reset successfully"})


async def _handle_urls(request: web.Request) -> web.Response:
    """GET /api/urls: every URL the assistant knows about."""
    urls = request.app[INDEX_KEY].get_all_urls()
    return web.json_response({"count": len(urls), "urls": [u.to_dict() for u in urls]})


async def _health(request: web.Request) -> web.Response:
    """GET /health: basic liveness check."""
    return web.json_response({"status": "ok"})


def create_app(
    orchestrator: ChatOrchestrator,
    index: UrlIndex,
    static_dir: Path | None = None,
) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(middlewares=[_log_requests])
    app[ORCHESTRATOR_KEY] = orchestrator
    app[INDEX_KEY] = index

    app.router.add_get("/health", _health)
    app.router.add_post("/api/chat", _handle_chat)
    app.router.add_post("/api/reset", _handle_reset)
    app.router.add_get("/api/urls", _handle_urls)

    if static_dir is not None and static_dir.is_dir():
        index_file = static_dir / "index.html"
        if index_file.is_file():

            async def _index(request: web.Request) -> web.FileResponse:
                return web.FileResponse(index_file)

            app.router.add_get("/", _index)
        app.router.add_static("/", static_dir)
        logger.info("Serving static files from %s", static_dir)

    return app


class ChatServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, app: web.Application, host: str = "0.0.0.0", port: int = 3000) -> None:
        self.app = app
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Server running on http://localhost:%d", self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Server stopped")
