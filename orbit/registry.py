from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from orbit.models import ServerConfig, normalize_patch

logger = logging.getLogger(__name__)


class ServerRegistry:
    """
    In-memory mapping of server id to its declared configuration.

    Not-found and duplicate ids are reported through boolean returns;
    callers translate them into errors at their own boundary.
    """

    def __init__(self) -> None:
        self._servers: Dict[str, ServerConfig] = {}
        self._lock = threading.Lock()

    def register(self, config: ServerConfig) -> bool:
        with self._lock:
            if config.id in self._servers:
                return False
            self._servers[config.id] = config
        logger.debug(f"Registered server config: {config.id}")
        return True

    def get(self, server_id: str) -> Optional[ServerConfig]:
        with self._lock:
            return self._servers.get(server_id)

    def list(self) -> List[ServerConfig]:
        with self._lock:
            return list(self._servers.values())

    def update(self, server_id: str, patch: Mapping[str, Any]) -> bool:
        """
        Merge ``patch`` onto the stored config.

        The id is never changed, even if the patch carries a different one.
        Raises pydantic.ValidationError if the merged config is invalid; the
        stored entry is left untouched in that case.
        """
        with self._lock:
            existing = self._servers.get(server_id)
            if existing is None:
                return False
            merged = {**existing.model_dump(), **normalize_patch(patch), "id": server_id}
            self._servers[server_id] = ServerConfig.model_validate(merged)
        logger.debug(f"Updated server config: {server_id}")
        return True

    def remove(self, server_id: str) -> bool:
        with self._lock:
            if self._servers.pop(server_id, None) is None:
                return False
        logger.debug(f"Removed server config: {server_id}")
        return True

    def clear(self) -> None:
        with self._lock:
            self._servers.clear()

    def __contains__(self, server_id: object) -> bool:
        with self._lock:
            return server_id in self._servers

    def __len__(self) -> int:
        with self._lock:
            return len(self._servers)
