"""API Routes."""

from orbit.web.routes.servers import router as servers_router

__all__ = [
    "servers_router",
]
