"""
Backend API Server for Orbit.

Provides a REST API for:
- Declaring tool servers (register, update, remove)
- Connecting to and disconnecting from them
- Listing and invoking their tools

The service behind the routes is created once per application and torn
down (all sessions disconnected) when the application shuts down.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from orbit import __version__
from orbit.config import OrbitSettings, get_settings, load_server_configs
from orbit.errors import ErrorKind, ServerError
from orbit.external.session_manager import SessionManager
from orbit.service import ServerService
from orbit.web.routes import servers_router

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_CONNECTED: 409,
    ErrorKind.CONNECTION: 502,
    ErrorKind.INVOCATION: 502,
    ErrorKind.UNSUPPORTED_TRANSPORT: 501,
}


def build_service(settings: OrbitSettings) -> ServerService:
    sessions = SessionManager(
        handshake_timeout=settings.handshake_timeout_seconds,
        close_timeout=settings.close_timeout_seconds,
    )
    return ServerService(sessions=sessions, probe_timeout=settings.status_probe_timeout_seconds)


def seed_servers(service: ServerService, servers_file: str) -> int:
    """Register the declarations found in servers_file; returns how many were added."""
    added = 0
    for config in load_server_configs(servers_file):
        if service.registry.register(config):
            added += 1
        else:
            logger.warning(f"Skipping duplicate declaration for server {config.id}")
    logger.info(f"Registered {added} servers from {servers_file}")
    return added


def create_app(
    service: Optional[ServerService] = None,
    settings: Optional[OrbitSettings] = None,
) -> FastAPI:
    """
    Create the Orbit FastAPI application.

    Args:
        service: Service to expose (built from settings if omitted)
        settings: Runtime settings (read from the environment if omitted)

    Returns:
        FastAPI application with API endpoints
    """
    settings = settings or get_settings()
    service = service or build_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.servers_file:
            seed_servers(service, settings.servers_file)
        yield
        await service.shutdown()

    app = FastAPI(
        title="Orbit - API",
        description="Connection registry and session multiplexer for MCP tool servers",
        version=__version__,
        redirect_slashes=False,
        lifespan=lifespan,
    )

    cors_origins = settings.cors_origin_list
    if cors_origins == ["*"]:
        logger.warning(
            "CORS origins not configured or set to '*'. "
            "This is insecure for production. Set specific origins."
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=cors_origins != ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.state.service = service

    @app.exception_handler(ServerError)
    async def _server_error_handler(request: Request, exc: ServerError):
        return JSONResponse({"error": exc.to_dict()}, status_code=ERROR_STATUS.get(exc.kind, 400))

    @app.exception_handler(ValidationError)
    async def _validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            {
                "error": {
                    "code": "validation_error",
                    "message": "Invalid server configuration",
                    "details": {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
                }
            },
            status_code=422,
        )

    @app.exception_handler(Exception)
    async def _unhandled_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse({"error": {"code": "internal_error", "message": str(exc)}}, status_code=500)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(servers_router)

    return app
