"""
Server Management API Routes.

Provides endpoints for declaring tool servers, managing their sessions and
proxying tool operations to them. Errors raised by the service are turned
into responses by the handlers installed in orbit.web.server.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request

from orbit.models import ServerConfig
from orbit.service import ServerService
from orbit.utils import public_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/servers", tags=["servers"])


def get_service(request: Request) -> ServerService:
    return request.app.state.service


@router.get("")
async def list_servers(service: ServerService = Depends(get_service)) -> Dict[str, Any]:
    servers = [public_config(config) for config in service.list()]
    return {"servers": servers, "total": len(servers)}


@router.post("", status_code=201)
async def register_server(
    config: ServerConfig,
    service: ServerService = Depends(get_service),
) -> Dict[str, Any]:
    service.register(config)
    return {"success": True, "server": public_config(config)}


@router.get("/{server_id}")
async def get_server(server_id: str, service: ServerService = Depends(get_service)) -> Dict[str, Any]:
    return {"server": public_config(service.get(server_id))}


@router.put("/{server_id}")
async def update_server(
    server_id: str,
    patch: Dict[str, Any] = Body(...),
    service: ServerService = Depends(get_service),
) -> Dict[str, Any]:
    config = service.update(server_id, patch)
    return {"success": True, "server": public_config(config)}


@router.delete("/{server_id}")
async def remove_server(server_id: str, service: ServerService = Depends(get_service)) -> Dict[str, Any]:
    await service.remove(server_id)
    return {"success": True}


@router.post("/{server_id}/connect")
async def connect_server(server_id: str, service: ServerService = Depends(get_service)) -> Dict[str, Any]:
    return await service.connect(server_id)


@router.post("/{server_id}/disconnect")
async def disconnect_server(server_id: str, service: ServerService = Depends(get_service)) -> Dict[str, Any]:
    return await service.disconnect(server_id)


@router.get("/{server_id}/status")
async def server_status(server_id: str, service: ServerService = Depends(get_service)) -> Dict[str, Any]:
    return await service.status(server_id)


@router.get("/{server_id}/tools")
async def list_tools(server_id: str, service: ServerService = Depends(get_service)) -> Dict[str, Any]:
    return {"tools": await service.list_tools(server_id)}


@router.post("/{server_id}/tools/{tool_name}")
async def invoke_tool(
    server_id: str,
    tool_name: str,
    arguments: Optional[Dict[str, Any]] = Body(default=None),
    service: ServerService = Depends(get_service),
) -> Dict[str, Any]:
    return await service.invoke_tool(server_id, tool_name, arguments or {})
