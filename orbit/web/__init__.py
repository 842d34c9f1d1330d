"""HTTP adapter exposing the server service."""

from orbit.web.server import create_app

__all__ = ["create_app"]
