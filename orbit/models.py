"""
Value objects shared by the registry, the session layer and the adapters.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class TransportKind(str, Enum):
    STDIO = "stdio"
    SSE = "sse"
    HTTP = "http"


class ServerConfig(BaseModel):
    """Declared configuration of one tool server."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique server identifier")
    name: str = Field(..., description="Human-readable label")
    kind: TransportKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
        description="Transport type: 'stdio', 'sse' or 'http'",
    )
    command: Optional[str] = Field(default=None, description="Command to run (stdio)")
    args: List[str] = Field(default_factory=list, description="Command arguments")
    url: Optional[str] = Field(default=None, description="Endpoint URL (sse/http)")
    headers: Dict[str, str] = Field(default_factory=dict)
    env: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for the child process",
    )

    @model_validator(mode="after")
    def _check_transport_fields(self) -> "ServerConfig":
        if self.kind == TransportKind.STDIO and not self.command:
            raise ValueError(f"Server {self.id}: 'command' required for stdio type")
        if self.kind in (TransportKind.SSE, TransportKind.HTTP) and not self.url:
            raise ValueError(f"Server {self.id}: 'url' required for {self.kind.value} type")
        return self


def normalize_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Map the wire key 'type' onto 'kind' so it wins over the stored value."""
    data = dict(patch)
    if "type" in data:
        kind = data.pop("type")
        data.setdefault("kind", kind)
    return data


class ToolInfo(BaseModel):
    """Tool metadata as reported by a tool server."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = Field(default=None, alias="inputSchema")


class ToolResult(BaseModel):
    """Structured result of a tool invocation."""

    model_config = ConfigDict(populate_by_name=True)

    content: List[Dict[str, Any]] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")
