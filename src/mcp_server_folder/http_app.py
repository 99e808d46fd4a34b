"""
HTTP boundary.

A single endpoint prefix accepts GET, POST, DELETE and OPTIONS. Per request:

1. anything outside the prefix is answered with 404;
2. CORS preflight is answered with 204, no authentication;
3. mutating verbs must carry the configured API key;
4. expired sessions are swept;
5. the session is resolved (or a new one opened) and its protocol engine
   handles the raw request;
6. the broker table is reconciled with what the engine answered;
7. any error on this path becomes a JSON body with the error's status (500
   when it carries none).
"""

from __future__ import annotations

import logging
import secrets
import time
from contextlib import asynccontextmanager
from functools import partial
from typing import Callable

from mcp.server.streamable_http import MCP_SESSION_ID_HEADER
from starlette.applications import Starlette
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Mount
from starlette.types import Message, Receive, Scope, Send

from .broker import SessionBroker
from .config import (
    CACHE_SUBDIR,
    DOCS_SUBDIR,
    EXCEL_SUBDIR,
    MCP_PATH,
    UPLOADS_SUBDIR,
    Settings,
    get_settings,
)
from .content_cache import ContentCache
from .errors import AuthenticationFailure, FolderServerError
from .sandbox import PathSandbox
from .server import build_server
from .spreadsheet_tools import SpreadsheetTools
from .system_utils import log_system_status
from .tools import FolderTools

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
MUTATING_METHODS = frozenset({"POST", "DELETE"})
ALLOWED_METHODS = "GET,POST,DELETE,OPTIONS"
PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "content-type, x-api-key, mcp-session-id, "
    "mcp-protocol-version, accept",
    "Access-Control-Allow-Methods": ALLOWED_METHODS,
}


class ResponseRecorder:
    """ASGI ``send`` wrapper that remembers the response status and session header."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self.started = False
        self.status: int | None = None
        self.session_id: str | None = None

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.started = True
            self.status = message["status"]
            headers = MutableHeaders(scope=message)
            self.session_id = headers.get(MCP_SESSION_ID_HEADER)
            headers["Access-Control-Allow-Origin"] = "*"
            headers["Access-Control-Expose-Headers"] = MCP_SESSION_ID_HEADER
        await self._send(message)

    def confirms(self, session_id: str) -> bool:
        """True when the engine answered 2xx and handed out ``session_id``."""
        return (
            self.status is not None
            and 200 <= self.status < 300
            and self.session_id == session_id
        )


class McpEndpoint:
    """ASGI app implementing the request pipeline in front of the SessionBroker."""

    def __init__(self, broker: SessionBroker, settings: Settings) -> None:
        self._broker = broker
        self._settings = settings
        self._sandbox_root = settings.base_dir

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return
        request = Request(scope, receive)
        if self._settings.debug:
            logger.debug(
                f"[REQ] {request.method} {request.url.path} "
                f"origin={request.headers.get('origin')} "
                f"has_api_key={API_KEY_HEADER in request.headers} "
                f"session={request.headers.get(MCP_SESSION_ID_HEADER)}"
            )

        recorder = ResponseRecorder(send)
        try:
            await self._dispatch(request, scope, receive, recorder)
        except FolderServerError as exc:
            logger.debug(f"[{exc.status_code}] {exc.code}: {exc.message}")
            await self._send_error(
                recorder, scope, receive, exc.status_code, exc.message, exc.code
            )
        except Exception:
            logger.exception(f"Unhandled error for {request.method} {request.url.path}")
            await self._send_error(
                recorder, scope, receive, 500, "Internal Error", "INTERNAL_ERROR"
            )

    async def _dispatch(
        self, request: Request, scope: Scope, receive: Receive, recorder: ResponseRecorder
    ) -> None:
        if not request.url.path.startswith(MCP_PATH):
            await PlainTextResponse("Not Found", status_code=404)(scope, receive, recorder)
            return

        if request.method == "OPTIONS":
            await Response(status_code=204, headers=PREFLIGHT_HEADERS)(
                scope, receive, recorder
            )
            return

        if request.method in MUTATING_METHODS or self._settings.require_key_for_reads:
            self._require_api_key(request)

        await self._broker.sweep()

        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if session_id:
            entry = self._broker.resolve(session_id)
        else:
            entry = await self._broker.open_session()
            log_system_status(self._broker.session_count(), self._sandbox_root)

        try:
            await entry.handle_request(scope, receive, recorder)
        finally:
            await self._broker.settle(entry, recorder.confirms(entry.session_id))

    def _require_api_key(self, request: Request) -> None:
        expected = self._settings.api_key
        if not expected:
            return
        got = request.headers.get(API_KEY_HEADER) or ""
        if not secrets.compare_digest(got.encode("utf-8"), expected.encode("utf-8")):
            if self._settings.debug:
                logger.warning(
                    f"[401] {API_KEY_HEADER} mismatch method={request.method} "
                    f"path={request.url.path} expected_length={len(expected)} "
                    f"got_length={len(got)}"
                )
            raise AuthenticationFailure()

    @staticmethod
    async def _send_error(
        recorder: ResponseRecorder,
        scope: Scope,
        receive: Receive,
        status_code: int,
        message: str,
        code: str,
    ) -> None:
        if recorder.started:
            logger.error(f"Response already started; dropping error {code}: {message}")
            return
        response = JSONResponse({"error": message, "code": code}, status_code=status_code)
        await response(scope, receive, recorder)


def create_app(
    settings: Settings | None = None, clock: Callable[[], float] = time.time
) -> Starlette:
    """
    Create the Starlette application serving the MCP endpoint.

    Args:
        settings: Application settings (defaults to the cached environment settings)
        clock: Time source for session activity (injectable for tests)

    Returns:
        Starlette app; its lifespan runs the SessionBroker
    """
    settings = settings or get_settings()
    sandbox = PathSandbox(settings.base_dir)
    sandbox.ensure_dirs(CACHE_SUBDIR, DOCS_SUBDIR, EXCEL_SUBDIR, UPLOADS_SUBDIR)

    cache = ContentCache(
        sandbox.resolve(CACHE_SUBDIR), size_limit=settings.cache_size_limit
    )
    folder = FolderTools(sandbox, cache, max_upload_bytes=settings.max_upload_bytes)
    sheets = SpreadsheetTools(sandbox)
    broker = SessionBroker(
        partial(build_server, folder, sheets),
        ttl_seconds=settings.session_ttl_seconds,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: Starlette):
        log_system_status(broker.session_count(), sandbox.root)
        try:
            async with broker.run():
                yield
                logger.info(f"Shutting down: {broker.stats()}")
        finally:
            cache.close()

    app = Starlette(routes=[Mount("/", app=McpEndpoint(broker, settings))], lifespan=lifespan)
    app.state.settings = settings
    app.state.sandbox = sandbox
    app.state.cache = cache
    app.state.broker = broker
    return app
