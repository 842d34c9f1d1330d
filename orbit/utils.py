"""
Shared helpers for the adapters.

Sensitive configuration data (tokens, passwords) is masked before it leaves
the process in an API response.
"""

from __future__ import annotations

import re
from typing import Any, Dict

from orbit.models import ServerConfig

MASK = "***MASKED***"

# Patterns for sensitive keys that should be masked
SENSITIVE_PATTERNS = [
    re.compile(r".*token.*", re.IGNORECASE),
    re.compile(r".*secret.*", re.IGNORECASE),
    re.compile(r".*password.*", re.IGNORECASE),
    re.compile(r".*key.*", re.IGNORECASE),
    re.compile(r".*credential.*", re.IGNORECASE),
    re.compile(r".*authorization.*", re.IGNORECASE),
]


def is_sensitive_key(key: str) -> bool:
    """Check if a key name indicates sensitive data."""
    return any(pattern.match(key) for pattern in SENSITIVE_PATTERNS)


def mask_mapping(values: Dict[str, str]) -> Dict[str, str]:
    # ${VAR} references are not secrets themselves
    return {
        k: MASK if is_sensitive_key(k) and v and not v.startswith("${") else v
        for k, v in values.items()
    }


def public_config(config: ServerConfig) -> Dict[str, Any]:
    """Serialize a config for API responses with env and headers masked."""
    data = config.model_dump(mode="json")
    data["env"] = mask_mapping(config.env)
    data["headers"] = mask_mapping(config.headers)
    return data
