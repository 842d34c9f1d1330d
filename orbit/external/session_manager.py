"""
Session Manager.

Owns the live sessions to external MCP servers, at most one per server id,
and multiplexes tool listing and tool invocation over them.

Locking is per server id: concurrent connect/disconnect calls for the same
id are serialized, while different servers never wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from orbit.errors import (
    InvocationError,
    NotConnectedError,
    ServerConnectionError,
    UnsupportedTransportError,
)
from orbit.external.session import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_HANDSHAKE_TIMEOUT,
    ServerSession,
)
from orbit.models import ServerConfig, ToolInfo, ToolResult, TransportKind

logger = logging.getLogger(__name__)

SessionFactory = Callable[..., ServerSession]


class SessionManager:
    """
    Bridges server configs to live sessions.

    Sessions only stay in ``sessions`` while they are live; a session found
    dead is discarded the next time an operation touches it.
    """

    def __init__(
        self,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        session_factory: SessionFactory = ServerSession,
    ):
        """
        Initialize the manager.

        Args:
            handshake_timeout: Seconds to wait for spawn plus protocol handshake
            close_timeout: Seconds to wait for a transport to shut down
            session_factory: Callable building a session from a ServerConfig
        """
        self.handshake_timeout = handshake_timeout
        self.close_timeout = close_timeout
        self.sessions: Dict[str, ServerSession] = {}
        self._session_factory = session_factory
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, server_id: str) -> asyncio.Lock:
        return self._locks.setdefault(server_id, asyncio.Lock())

    async def connect(self, config: ServerConfig) -> ServerSession:
        """
        Return the live session for ``config.id``, creating it if needed.

        Raises:
            UnsupportedTransportError: For transport kinds other than stdio
            ServerConnectionError: If spawn or handshake fails
        """
        async with self._lock_for(config.id):
            existing = self.sessions.get(config.id)
            if existing is not None:
                if existing.connected:
                    logger.debug(f"Reusing session for {config.id}")
                    return existing
                logger.info(f"Discarding dead session for {config.id}")
                del self.sessions[config.id]
                await self._close_quietly(existing)

            if config.kind != TransportKind.STDIO:
                raise UnsupportedTransportError(config.id, config.kind.value)

            session = self._session_factory(
                config,
                handshake_timeout=self.handshake_timeout,
                close_timeout=self.close_timeout,
            )

            try:
                await session.open()
            except Exception as e:
                logger.error(f"Failed to connect to {config.id}: {e}")
                raise ServerConnectionError(config.id, e) from e

            self.sessions[config.id] = session
            logger.info(f"Connected to {config.id} ({config.kind.value})")
            return session

    def _require_session(self, server_id: str, tool_name: Optional[str] = None) -> ServerSession:
        session = self.sessions.get(server_id)
        if session is None or not session.connected:
            raise NotConnectedError(server_id, tool_name=tool_name)
        return session

    async def list_tools(self, server_id: str) -> List[ToolInfo]:
        """
        List the tools of a connected server.

        Raises:
            NotConnectedError: If there is no live session for server_id
            InvocationError: If the request fails on the transport
        """
        session = self.sessions.get(server_id)
        if session is not None and not session.connected:
            await self._discard(server_id, session)
        session = self._require_session(server_id)

        try:
            return await session.list_tools()
        except Exception as e:
            logger.error(f"Failed to list tools on {server_id}: {e}")
            await self._discard_if_dead(server_id, session)
            raise InvocationError(server_id, e) from e

    async def invoke_tool(
        self,
        server_id: str,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> ToolResult:
        """
        Invoke a tool on a connected server. Never retried.

        Raises:
            NotConnectedError: If there is no live session for server_id
            InvocationError: If the call fails on the transport
        """
        session = self.sessions.get(server_id)
        if session is not None and not session.connected:
            await self._discard(server_id, session)
        session = self._require_session(server_id, tool_name=tool_name)

        try:
            return await session.call_tool(tool_name, arguments or {})
        except Exception as e:
            logger.error(f"Tool call failed for {server_id}:{tool_name}: {e}")
            await self._discard_if_dead(server_id, session)
            raise InvocationError(server_id, e, tool_name=tool_name) from e

    async def disconnect(self, server_id: str) -> bool:
        """
        Close and forget the session for ``server_id``.

        Returns:
            True if a session was removed, False if none existed
        """
        async with self._lock_for(server_id):
            session = self.sessions.pop(server_id, None)
            if session is None:
                return False

            await self._close_quietly(session)
            logger.info(f"Server {server_id} disconnected")
            return True

    async def disconnect_all(self) -> None:
        """Disconnect every tracked session concurrently."""
        server_ids = list(self.sessions.keys())
        logger.info(f"Shutting down {len(server_ids)} sessions")

        results = await asyncio.gather(
            *(self.disconnect(server_id) for server_id in server_ids),
            return_exceptions=True,
        )
        for server_id, result in zip(server_ids, results):
            if isinstance(result, BaseException):
                logger.error(f"Error shutting down {server_id}: {result}")

        logger.info("All sessions shut down")

    async def _close_quietly(self, session: ServerSession) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Error during disconnect of {session.server_id}: {e}")

    async def _discard(self, server_id: str, session: ServerSession) -> None:
        async with self._lock_for(server_id):
            if self.sessions.get(server_id) is session:
                del self.sessions[server_id]
                logger.info(f"Discarding dead session for {server_id}")
                await self._close_quietly(session)

    async def _discard_if_dead(self, server_id: str, session: ServerSession) -> None:
        if not session.connected:
            await self._discard(server_id, session)

    def get_session(self, server_id: str) -> Optional[ServerSession]:
        return self.sessions.get(server_id)

    def has_session(self, server_id: str) -> bool:
        return server_id in self.sessions

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about tracked sessions."""
        connected = [sid for sid, s in self.sessions.items() if s.connected]
        return {
            "total_sessions": len(self.sessions),
            "connected_sessions": len(connected),
            "server_ids": list(self.sessions.keys()),
        }
