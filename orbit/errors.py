from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    NOT_CONNECTED = "not_connected"
    CONNECTION = "connection_error"
    INVOCATION = "invocation_error"
    UNSUPPORTED_TRANSPORT = "unsupported_transport"


def root_cause(exc: BaseException) -> BaseException:
    """Unwrap task-group exception groups down to their first leaf."""
    while isinstance(exc, BaseExceptionGroup) and exc.exceptions:
        exc = exc.exceptions[0]
    return exc


def describe(exc: BaseException) -> str:
    cause = root_cause(exc)
    text = str(cause)
    return f"{type(cause).__name__}: {text}" if text else type(cause).__name__


@dataclass(eq=False)
class ServerError(Exception):
    kind: ErrorKind
    message: str
    server_id: Optional[str] = None
    tool_name: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "code": self.kind.value,
            "message": self.message,
            "serverId": self.server_id,
            "details": self.details or {},
        }
        if self.tool_name is not None:
            data["toolName"] = self.tool_name
        return data


class ServerNotFoundError(ServerError):
    def __init__(self, server_id: str):
        super().__init__(
            kind=ErrorKind.NOT_FOUND,
            message=f"Server not found: {server_id}",
            server_id=server_id,
        )


class ServerConflictError(ServerError):
    def __init__(self, server_id: str):
        super().__init__(
            kind=ErrorKind.CONFLICT,
            message=f"Server with this ID already exists: {server_id}",
            server_id=server_id,
        )


class NotConnectedError(ServerError):
    def __init__(self, server_id: str, tool_name: Optional[str] = None):
        super().__init__(
            kind=ErrorKind.NOT_CONNECTED,
            message=f"Server not connected: {server_id}",
            server_id=server_id,
            tool_name=tool_name,
        )


class ServerConnectionError(ServerError):
    def __init__(self, server_id: str, cause: BaseException):
        super().__init__(
            kind=ErrorKind.CONNECTION,
            message=f"Failed to connect to server {server_id}: {describe(cause)}",
            server_id=server_id,
            details={"cause": describe(cause)},
        )


class InvocationError(ServerError):
    def __init__(
        self,
        server_id: str,
        cause: BaseException,
        tool_name: Optional[str] = None,
    ):
        if tool_name is None:
            message = f"Failed to list tools on server {server_id}: {describe(cause)}"
        else:
            message = f"Failed to execute tool {tool_name} on server {server_id}: {describe(cause)}"
        super().__init__(
            kind=ErrorKind.INVOCATION,
            message=message,
            server_id=server_id,
            tool_name=tool_name,
            details={"cause": describe(cause)},
        )


class UnsupportedTransportError(ServerError):
    def __init__(self, server_id: str, transport: str):
        super().__init__(
            kind=ErrorKind.UNSUPPORTED_TRANSPORT,
            message=f"Transport '{transport}' is not supported for server {server_id}",
            server_id=server_id,
            details={"transport": transport},
        )
