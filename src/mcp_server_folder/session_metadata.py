"""
Session Metadata

This module contains the SessionEntry record the SessionBroker keeps for each
live client session: the protocol engine it owns and its activity timestamps.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastmcp import FastMCP
from mcp.server.streamable_http import StreamableHTTPServerTransport
from starlette.types import Receive, Scope, Send


@dataclass
class SessionEntry:
    """One client session and the protocol engine serving it."""

    session_id: str
    server: FastMCP
    transport: StreamableHTTPServerTransport
    created_at: float
    last_access: float

    def touch(self, now: float) -> None:
        self.last_access = now

    def is_expired(self, ttl_seconds: float, now: float) -> bool:
        return now - self.last_access > ttl_seconds

    @property
    def is_terminated(self) -> bool:
        return self.transport.is_terminated

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.transport.handle_request(scope, receive, send)

    async def terminate(self) -> None:
        """Close the transport; the engine's run loop ends once its streams close."""
        if not self.transport.is_terminated:
            await self.transport.terminate()
