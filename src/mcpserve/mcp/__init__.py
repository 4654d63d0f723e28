"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

MCP protocol core: handshake, tool and resource registries, streamed results.
"""

from .protocol import (
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    MCPProtocolHandler,
    negotiate_protocol_version,
)
from .resources import ResourceRegistry
from .schema import PydanticSchema, StandardSchema, ValidationResult
from .stream import MCPStream, MCPStreamController, create_mcp_stream
from .tools import ToolRegistry
from .types import (
    NOT_HANDLED,
    Handled,
    Implementation,
    Listing,
    ResourceDefinition,
    ResourceTemplate,
    ToolDefinition,
)

__all__ = [
    "MCPProtocolHandler",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "LATEST_PROTOCOL_VERSION",
    "negotiate_protocol_version",
    "ToolRegistry",
    "ResourceRegistry",
    "StandardSchema",
    "PydanticSchema",
    "ValidationResult",
    "MCPStream",
    "MCPStreamController",
    "create_mcp_stream",
    "Implementation",
    "ToolDefinition",
    "ResourceDefinition",
    "ResourceTemplate",
    "Listing",
    "Handled",
    "NOT_HANDLED",
]
