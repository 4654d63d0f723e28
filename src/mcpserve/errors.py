"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error hierarchy shared by the JSON-RPC dispatcher and the MCP layers.
"""

from __future__ import annotations

from typing import Any


class MCPError(RuntimeError):
    """Base mcpserve error."""


class MCPHTTPError(MCPError):
    """
    Failure carrying an HTTP-style status.

    Handlers raise this to pick the JSON-RPC error class of a failed call:
    a 4xx status surfaces as ``InvalidParams`` and anything else as
    ``InternalError``. ``message`` and ``data`` are forwarded to the client.
    """

    def __init__(self, status: int, message: str, *, data: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.data = data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


class MCPTransportError(MCPHTTPError):
    """Transport-level violation (wrong verb, unacceptable media type).

    Never folded into a JSON-RPC error object for single requests; the host
    replies with the raw HTTP status instead.
    """


class MCPSchemaError(MCPError):
    """Raised when a tool validator cannot be converted to JSON Schema."""
