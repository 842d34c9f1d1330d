"""
Server Service.

Direct-call facade combining the config registry and the session manager.
This is what adapters (the HTTP routes, scripts, tests) talk to: registry
booleans become ServerNotFoundError/ServerConflictError here, and results
come back in their wire shapes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from orbit.errors import ServerConflictError, ServerError, ServerNotFoundError
from orbit.external.session_manager import SessionManager
from orbit.models import ServerConfig
from orbit.registry import ServerRegistry

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 5.0


class ServerService:
    """
    Owns one ServerRegistry and one SessionManager.

    Constructed once at process start; ``shutdown()`` disconnects every
    session when the process stops.
    """

    def __init__(
        self,
        registry: Optional[ServerRegistry] = None,
        sessions: Optional[SessionManager] = None,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    ):
        self.registry = registry if registry is not None else ServerRegistry()
        self.sessions = sessions if sessions is not None else SessionManager()
        self.probe_timeout = probe_timeout

    # ==================== Config operations ====================

    def register(self, config: ServerConfig) -> ServerConfig:
        if not self.registry.register(config):
            raise ServerConflictError(config.id)
        logger.info(f"Registered server {config.id} ({config.kind.value})")
        return config

    def get(self, server_id: str) -> ServerConfig:
        config = self.registry.get(server_id)
        if config is None:
            raise ServerNotFoundError(server_id)
        return config

    def list(self) -> List[ServerConfig]:
        return self.registry.list()

    def update(self, server_id: str, patch: Mapping[str, Any]) -> ServerConfig:
        if not self.registry.update(server_id, patch):
            raise ServerNotFoundError(server_id)
        logger.info(f"Updated server {server_id}")
        return self.get(server_id)

    async def remove(self, server_id: str) -> None:
        """Remove a config and tear down its session, if any."""
        if not self.registry.remove(server_id):
            raise ServerNotFoundError(server_id)
        if await self.sessions.disconnect(server_id):
            logger.info(f"Closed session of removed server {server_id}")
        logger.info(f"Removed server {server_id}")

    # ==================== Session operations ====================

    async def connect(self, server_id: str) -> Dict[str, Any]:
        config = self.get(server_id)
        session = await self.sessions.connect(config)
        return {
            "connected": session.connected,
            "serverId": server_id,
            "transport": session.transport_kind.value,
        }

    async def disconnect(self, server_id: str) -> Dict[str, Any]:
        return {"disconnected": await self.sessions.disconnect(server_id)}

    async def status(self, server_id: str) -> Dict[str, Any]:
        """
        Probe connectivity with a live tools/list request.

        A session whose child died silently reports not connected even
        though nothing has touched it since.
        """
        try:
            await asyncio.wait_for(self.sessions.list_tools(server_id), timeout=self.probe_timeout)
            connected = True
        except ServerError as e:
            logger.debug(f"Status probe for {server_id} failed: {e}")
            connected = False
        except asyncio.TimeoutError:
            logger.warning(f"Status probe for {server_id} timed out after {self.probe_timeout}s")
            connected = False
        return {"connected": connected, "serverId": server_id}

    async def list_tools(self, server_id: str) -> List[Dict[str, Any]]:
        tools = await self.sessions.list_tools(server_id)
        return [tool.model_dump(by_alias=True, exclude_none=True) for tool in tools]

    async def invoke_tool(
        self,
        server_id: str,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        result = await self.sessions.invoke_tool(server_id, tool_name, arguments or {})
        return result.model_dump(by_alias=True)

    async def shutdown(self) -> None:
        await self.sessions.disconnect_all()
