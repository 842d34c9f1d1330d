"""
Settings and server declarations.

Runtime settings come from ORBIT_* environment variables (or a .env file).
Server declarations can be seeded from a YAML file at start-up; the file is
only ever read.
"""

from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from orbit.models import ServerConfig

logger = logging.getLogger(__name__)

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class OrbitSettings(BaseSettings):
    handshake_timeout_seconds: float = 30.0
    close_timeout_seconds: float = 10.0
    status_probe_timeout_seconds: float = 5.0
    servers_file: Optional[str] = None
    cors_origins: str = "*"
    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 3000

    model_config = SettingsConfigDict(
        env_prefix="ORBIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> List[str]:
        origins = self.cors_origins.strip()
        if not origins or origins == "*":
            return ["*"]
        return [origin.strip() for origin in origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> OrbitSettings:
    return OrbitSettings()


def substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute ${VAR} patterns with environment values."""
    if isinstance(obj, str):

        def replace(match: re.Match) -> str:
            var_name = match.group(1)
            value = os.environ.get(var_name, "")
            if not value:
                logger.warning(f"Environment variable not set: {var_name}")
            return value

        return ENV_VAR_PATTERN.sub(replace, obj)

    elif isinstance(obj, dict):
        return {k: substitute_env_vars(v) for k, v in obj.items()}

    elif isinstance(obj, list):
        return [substitute_env_vars(item) for item in obj]

    return obj


def load_server_configs(path: str | Path) -> List[ServerConfig]:
    """
    Load enabled server declarations from a YAML file.

    Expected layout::

        servers:
          filesystem:
            name: Filesystem
            type: stdio
            command: npx
            args: ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]
            env:
              API_TOKEN: ${FS_TOKEN}

    The mapping key is the server id and ``type`` defaults to stdio. Entries
    with ``enabled: false`` are skipped, as are entries that fail validation
    (logged).
    """
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}")
        return []

    logger.info(f"Loading server declarations from {config_path}")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    servers = substitute_env_vars(data.get("servers") or {})
    configs: List[ServerConfig] = []

    for server_id, server_def in servers.items():
        if not server_def:
            continue

        if not server_def.get("enabled", True):
            logger.debug(f"Server {server_id} is disabled, skipping")
            continue

        fields = {k: v for k, v in server_def.items() if k != "enabled"}
        fields["id"] = str(server_id)
        fields.setdefault("name", str(server_id))
        if "kind" not in fields:
            fields.setdefault("type", "stdio")

        try:
            configs.append(ServerConfig.model_validate(fields))
        except ValidationError as e:
            logger.error(f"Invalid declaration for server {server_id}: {e}")

    return configs
