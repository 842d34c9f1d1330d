"""
Test doubles for the session layer.

FakeSession mimics ServerSession without spawning anything, so the
manager's bookkeeping can be tested deterministically.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from orbit.models import ServerConfig, ToolInfo, ToolResult


class FakeSession:
    """Stands in for ServerSession; clearing ``alive`` mimics the server process exiting."""

    def __init__(
        self,
        config: ServerConfig,
        handshake_timeout: float = 30.0,
        close_timeout: float = 10.0,
        open_error: Optional[BaseException] = None,
        close_error: Optional[BaseException] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.config = config
        self.server_id = config.id
        self.transport_kind = config.kind
        self.handshake_timeout = handshake_timeout
        self.close_timeout = close_timeout
        self.open_error = open_error
        self.close_error = close_error
        self.gate = gate
        self.opened = False
        self.closed = False
        self.alive = True
        self.calls: List[Dict[str, Any]] = []

    @property
    def connected(self) -> bool:
        return self.opened and not self.closed and self.alive

    async def open(self) -> None:
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    async def list_tools(self) -> List[ToolInfo]:
        if not self.alive:
            raise RuntimeError("Tool server process died")
        return [
            ToolInfo(name="echo", description="Echo a message", input_schema={"type": "object"}),
            ToolInfo(name="add"),
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        self.calls.append({"name": name, "arguments": arguments})
        if not self.alive:
            raise RuntimeError("Tool server process died")
        return ToolResult(content=[{"type": "text", "text": str((arguments or {}).get("message", ""))}])

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeSessionFactory:
    """Callable passed as SessionManager(session_factory=...); records every session built."""

    def __init__(self) -> None:
        self.created: List[FakeSession] = []
        self.open_errors: Dict[str, BaseException] = {}
        self.close_errors: Dict[str, BaseException] = {}
        self.gates: Dict[str, asyncio.Event] = {}

    def __call__(self, config: ServerConfig, **kwargs: Any) -> FakeSession:
        session = FakeSession(
            config,
            open_error=self.open_errors.get(config.id),
            close_error=self.close_errors.get(config.id),
            gate=self.gates.get(config.id),
            **kwargs,
        )
        self.created.append(session)
        return session

    def created_for(self, server_id: str) -> List[FakeSession]:
        return [s for s in self.created if s.server_id == server_id]
