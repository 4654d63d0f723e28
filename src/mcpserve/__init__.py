"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

mcpserve: Model Context Protocol server core over JSON-RPC 2.0.

Quick start::

    from pydantic import BaseModel
    from mcpserve import MCPServer, MCPServerConfig

    class EchoArgs(BaseModel):
        input: str

    server = MCPServer(MCPServerConfig(name="demo", version="1.0.0"))

    @server.tool(schema=EchoArgs, description="Echo the input")
    async def echo(args: EchoArgs, ctx, request):
        return {"output": f"You said: {args.input}"}

    server.run()  # starts on http://0.0.0.0:8000
"""

from .errors import MCPError, MCPHTTPError, MCPSchemaError, MCPTransportError
from .http import HTTPRequest, HTTPResponse, RequestContext
from .jsonrpc import JsonRpcDispatcher, JsonRpcRequest, jsonrpc_error, jsonrpc_response
from .mcp import (
    NOT_HANDLED,
    Handled,
    Implementation,
    Listing,
    MCPProtocolHandler,
    MCPStream,
    PydanticSchema,
    ResourceDefinition,
    ResourceRegistry,
    ResourceTemplate,
    StandardSchema,
    ToolDefinition,
    ToolRegistry,
    ValidationResult,
    create_mcp_stream,
)
from .server import MCPServer, MCPServerConfig, create_mcp_server

__all__ = [
    "MCPServer",
    "MCPServerConfig",
    "create_mcp_server",
    "MCPProtocolHandler",
    "JsonRpcDispatcher",
    "JsonRpcRequest",
    "jsonrpc_response",
    "jsonrpc_error",
    "HTTPRequest",
    "HTTPResponse",
    "RequestContext",
    "ToolRegistry",
    "ResourceRegistry",
    "ToolDefinition",
    "ResourceDefinition",
    "ResourceTemplate",
    "Implementation",
    "Listing",
    "Handled",
    "NOT_HANDLED",
    "StandardSchema",
    "PydanticSchema",
    "ValidationResult",
    "MCPStream",
    "create_mcp_stream",
    "MCPError",
    "MCPHTTPError",
    "MCPTransportError",
    "MCPSchemaError",
]
