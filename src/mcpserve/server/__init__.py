"""
MCP server package.

Contains FastAPI app wiring around the transport-neutral protocol core.
"""

from .runtime import (
    MCPServer,
    MCPServerConfig,
    create_mcp_server,
    to_fastapi_response,
    to_http_request,
)

__all__ = [
    "MCPServer",
    "MCPServerConfig",
    "create_mcp_server",
    "to_fastapi_response",
    "to_http_request",
]
