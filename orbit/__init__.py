"""
Orbit: connection registry and session multiplexer for MCP tool servers.
"""

__version__ = "1.0.0"
