"""
Shared pytest fixtures for Orbit tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from orbit.external.session_manager import SessionManager
from orbit.models import ServerConfig
from orbit.registry import ServerRegistry
from orbit.service import ServerService
from tests.helpers import FakeSessionFactory


# ==================== Config Fixtures ====================


@pytest.fixture
def stdio_config() -> ServerConfig:
    """A stdio server declaration."""
    return ServerConfig(
        id="test-server",
        name="Test MCP Server",
        kind="stdio",
        command="echo",
        args=["test"],
    )


@pytest.fixture
def mock_server_config() -> ServerConfig:
    """Declaration of the protocol-compliant fixture server."""
    return ServerConfig(
        id="s2",
        name="Mock MCP Server",
        kind="stdio",
        command=sys.executable,
        args=[str(Path(__file__).parent / "fixtures" / "mock_mcp_server.py")],
    )


# ==================== Registry / Manager Fixtures ====================


@pytest.fixture
def registry() -> ServerRegistry:
    """Fresh ServerRegistry instance for each test."""
    return ServerRegistry()


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    """Factory producing fake sessions that never spawn a process."""
    return FakeSessionFactory()


@pytest.fixture
def manager(session_factory: FakeSessionFactory) -> SessionManager:
    """SessionManager backed by fake sessions."""
    return SessionManager(session_factory=session_factory)


@pytest.fixture
def service(registry: ServerRegistry, manager: SessionManager) -> ServerService:
    """ServerService backed by fake sessions."""
    return ServerService(registry=registry, sessions=manager, probe_timeout=1.0)
