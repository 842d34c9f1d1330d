"""
External MCP Server Sessions.

Provides functionality to:
- Spawn tool servers over stdio and run the protocol handshake
- Multiplex tool listing and tool calls over live sessions
- Tear sessions down individually or all at once
"""

from orbit.external.session import ServerSession, build_env
from orbit.external.session_manager import SessionManager

__all__ = [
    "ServerSession",
    "SessionManager",
    "build_env",
]
