"""
Unit tests for orbit/config.py - settings and YAML server declarations.
"""

from pathlib import Path

import pytest
import yaml

from orbit.config import OrbitSettings, load_server_configs, substitute_env_vars
from orbit.models import TransportKind


def write_yaml(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


class TestSettings:
    """Tests for OrbitSettings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        """Test settings defaults without environment overrides."""
        monkeypatch.delenv("ORBIT_HANDSHAKE_TIMEOUT_SECONDS", raising=False)
        settings = OrbitSettings(_env_file=None)

        assert settings.handshake_timeout_seconds == 30.0
        assert settings.servers_file is None
        assert settings.cors_origin_list == ["*"]

    def test_reads_prefixed_env(self, monkeypatch: pytest.MonkeyPatch):
        """Test ORBIT_-prefixed variables are read."""
        monkeypatch.setenv("ORBIT_HANDSHAKE_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("ORBIT_CORS_ORIGINS", "http://a.test, http://b.test")

        settings = OrbitSettings(_env_file=None)

        assert settings.handshake_timeout_seconds == 2.5
        assert settings.cors_origin_list == ["http://a.test", "http://b.test"]


class TestSubstituteEnvVars:
    """Tests for ${VAR} substitution."""

    def test_substitutes_nested(self, monkeypatch: pytest.MonkeyPatch):
        """Test substitution inside nested dicts and lists."""
        monkeypatch.setenv("ORBIT_TEST_TOKEN", "abc")

        result = substitute_env_vars({"env": {"TOKEN": "${ORBIT_TEST_TOKEN}"}, "args": ["--t=${ORBIT_TEST_TOKEN}"]})

        assert result == {"env": {"TOKEN": "abc"}, "args": ["--t=abc"]}

    def test_missing_var_becomes_empty(self, monkeypatch: pytest.MonkeyPatch):
        """Test unset variables become empty strings."""
        monkeypatch.delenv("ORBIT_TEST_MISSING", raising=False)
        assert substitute_env_vars("x${ORBIT_TEST_MISSING}y") == "xy"

    def test_non_strings_untouched(self):
        """Test non-string values pass through."""
        assert substitute_env_vars(42) == 42


class TestLoadServerConfigs:
    """Tests for load_server_configs."""

    def test_missing_file(self, tmp_path: Path):
        """Test a missing file yields no servers."""
        assert load_server_configs(tmp_path / "nope.yaml") == []

    def test_empty_file(self, tmp_path: Path):
        """Test an empty file yields no servers."""
        path = tmp_path / "servers.yaml"
        path.write_text("")
        assert load_server_configs(path) == []

    def test_loads_enabled_servers(self, tmp_path: Path):
        """Test enabled entries load with id and name from the key."""
        path = write_yaml(
            tmp_path / "servers.yaml",
            {
                "servers": {
                    "fs": {
                        "name": "Filesystem",
                        "type": "stdio",
                        "command": "npx",
                        "args": ["-y", "server-filesystem"],
                    },
                    "off": {"command": "echo", "enabled": False},
                    "remote": {"type": "http", "url": "https://example.com/mcp"},
                }
            },
        )

        configs = {c.id: c for c in load_server_configs(path)}

        assert set(configs) == {"fs", "remote"}
        assert configs["fs"].name == "Filesystem"
        assert configs["fs"].args == ["-y", "server-filesystem"]
        assert configs["remote"].kind == TransportKind.HTTP
        assert configs["remote"].name == "remote"

    def test_invalid_entries_skipped(self, tmp_path: Path):
        """Test invalid entries are skipped and type defaults to stdio."""
        path = write_yaml(
            tmp_path / "servers.yaml",
            {"servers": {"broken": {"type": "stdio"}, "ok": {"command": "echo"}}},
        )

        configs = load_server_configs(path)

        assert [c.id for c in configs] == ["ok"]
        assert configs[0].kind == TransportKind.STDIO

    def test_env_substitution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Test ${VAR} references resolve from the environment."""
        monkeypatch.setenv("ORBIT_TEST_API_KEY", "secret")
        path = write_yaml(
            tmp_path / "servers.yaml",
            {"servers": {"s": {"command": "echo", "env": {"API_KEY": "${ORBIT_TEST_API_KEY}"}}}},
        )

        assert load_server_configs(path)[0].env == {"API_KEY": "secret"}
