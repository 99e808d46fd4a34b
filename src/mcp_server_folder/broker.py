"""
Session Broker

Multiplexes stateless HTTP requests onto long-lived protocol engines, one per
client session. Each engine is a freshly built tool catalog connected to a
Streamable-HTTP transport and runs inside the broker's task group.

Lifecycle per session id: absent -> active -> expired/closed.

- A request without a session id gets a new engine. The id becomes known to the
  table only after the engine answers that first exchange successfully with the
  id in its response headers.
- A request with a known id refreshes the session's last-activity time.
- A request with an unknown id is refused (``UnknownSession``); the broker never
  fabricates a session for an id the client believes it already has.
- Expired sessions are swept on each incoming request rather than by a timer.
- A terminated transport or a finished engine removes the session immediately.

All table updates happen between await points of a single event loop, so the
table needs no lock.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from fastmcp import FastMCP
from mcp.server.streamable_http import StreamableHTTPServerTransport

from .errors import UnknownSession
from .session_metadata import SessionEntry

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 30 * 60


class SessionBroker:
    """
    Owns the session table and the protocol engines behind it.

    Attributes:
        _sessions: Confirmed sessions, keyed by session id
        _pending: Engines whose handshake has not been confirmed yet
        _ttl_seconds: Idle time after which a session is swept
    """

    def __init__(
        self,
        engine_factory: Callable[[], FastMCP],
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the broker.

        Args:
            engine_factory: Builds a new tool catalog for each session
            ttl_seconds: Idle session TTL in seconds
            clock: Time source for activity timestamps
        """
        self._engine_factory = engine_factory
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, SessionEntry] = {}
        self._pending: dict[str, SessionEntry] = {}
        self._task_group: TaskGroup | None = None

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    @asynccontextmanager
    async def run(self) -> AsyncIterator[SessionBroker]:
        """Host the engines' task group; every engine is terminated on exit."""
        if self._task_group is not None:
            raise RuntimeError("SessionBroker is already running")
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            try:
                yield self
            finally:
                await self.close_all()
                tg.cancel_scope.cancel()
                self._task_group = None

    # === table operations ===
    def session_count(self) -> int:
        return len(self._sessions)

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def stats(self) -> dict[str, float]:
        return {
            "active_sessions": len(self._sessions),
            "pending_sessions": len(self._pending),
            "ttl_seconds": self._ttl_seconds,
        }

    def get_oldest_sessions(self, limit: int = 10) -> list[tuple[str, float]]:
        """(session_id, last_access) pairs, least recently used first."""
        ordered = sorted(self._sessions.values(), key=lambda e: e.last_access)
        return [(e.session_id, e.last_access) for e in ordered[:limit]]

    async def sweep(self) -> int:
        """Remove and terminate sessions idle for longer than the TTL."""
        now = self._clock()
        expired = [
            entry
            for entry in self._sessions.values()
            if entry.is_expired(self._ttl_seconds, now)
        ]
        for entry in expired:
            del self._sessions[entry.session_id]
            logger.info(f"Session {entry.session_id} expired")
            await entry.terminate()
        return len(expired)

    def resolve(self, session_id: str) -> SessionEntry:
        """
        Get the live session for ``session_id`` and refresh its activity time.

        Raises:
            UnknownSession: If the id was never confirmed, expired or was closed
        """
        entry = self._sessions.get(session_id)
        if entry is None:
            logger.debug(f"Unknown session id {session_id}")
            raise UnknownSession()
        entry.touch(self._clock())
        return entry

    async def open_session(self) -> SessionEntry:
        """Start a new protocol engine; it joins the table once settled as confirmed."""
        if self._task_group is None:
            raise RuntimeError("SessionBroker is not running")

        session_id = uuid4().hex
        transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=True,
        )
        now = self._clock()
        entry = SessionEntry(
            session_id=session_id,
            server=self._engine_factory(),
            transport=transport,
            created_at=now,
            last_access=now,
        )
        self._pending[session_id] = entry
        await self._task_group.start(self._run_engine, entry)
        return entry

    async def settle(self, entry: SessionEntry, confirmed: bool) -> None:
        """Reconcile the table with an engine after it handled a request."""
        self._pending.pop(entry.session_id, None)

        if entry.is_terminated:
            if self._sessions.pop(entry.session_id, None) is not None:
                logger.info(f"Session {entry.session_id} closed by client")
            return

        if entry.session_id in self._sessions:
            entry.touch(self._clock())
            return

        if confirmed:
            entry.touch(self._clock())
            self._sessions[entry.session_id] = entry
            logger.info(
                f"Session {entry.session_id} opened ({len(self._sessions)} active)"
            )
        else:
            # Handshake did not complete; the id was never handed out
            logger.debug(f"Discarding unconfirmed engine {entry.session_id}")
            await entry.terminate()

    async def close(self, session_id: str) -> None:
        entry = self._sessions.pop(session_id, None)
        if entry is not None:
            await entry.terminate()

    async def close_all(self) -> None:
        entries = list(self._sessions.values()) + list(self._pending.values())
        self._sessions.clear()
        self._pending.clear()
        for entry in entries:
            await entry.terminate()

    # === engine task ===
    async def _run_engine(
        self,
        entry: SessionEntry,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        # FastMCP exposes no public accessor; the transport needs the low-level
        # server to drive run() over its own streams
        lowlevel = entry.server._mcp_server
        async with entry.transport.connect() as (read_stream, write_stream):
            task_status.started()
            try:
                await lowlevel.run(
                    read_stream,
                    write_stream,
                    lowlevel.create_initialization_options(),
                    stateless=False,
                )
            except Exception:
                logger.exception(f"Protocol engine for session {entry.session_id} failed")
            finally:
                self._on_engine_closed(entry)

    def _on_engine_closed(self, entry: SessionEntry) -> None:
        if self._sessions.get(entry.session_id) is entry:
            del self._sessions[entry.session_id]
            logger.info(f"Session {entry.session_id} transport closed")
