"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

MCP protocol layer: handshake methods, capability advertisement, HTTP verb
gating and composition of the tool/resource method tables.

Expected client flow (documented, not enforced since no session state is
kept between exchanges)::

    Uninitialized --initialize--> Initializing
                  --notifications/initialized--> Initialized
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from mcpserve.errors import MCPHTTPError
from mcpserve.http import (
    SESSION_HEADER,
    HTTPRequest,
    HTTPResponse,
    RequestContext,
    accepted_response,
    error_response,
)
from mcpserve.jsonrpc.dispatcher import JsonRpcDispatcher
from mcpserve.jsonrpc.models import JsonRpcRequest, MethodHandler
from mcpserve.mcp.resources import ResourceRegistry
from mcpserve.mcp.tools import ToolRegistry
from mcpserve.mcp.types import Implementation

logger = logging.getLogger("mcpserve.mcp")

SUPPORTED_PROTOCOL_VERSIONS: tuple[str, ...] = ("2025-06-18", "2025-03-26")
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[0]

ALLOWED_HTTP_METHODS = frozenset({"POST", "GET", "DELETE"})


def negotiate_protocol_version(requested: str) -> str:
    """Echo a supported version; anything else maps to the newest one."""
    if requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return LATEST_PROTOCOL_VERSION


class MCPProtocolHandler:
    """
    Handles MCP methods over a ``JsonRpcDispatcher``.

    This class keeps protocol behavior independent from HTTP routing concerns:
    ``handle`` takes a transport-neutral ``HTTPRequest`` and returns an
    ``HTTPResponse``, so any host can adapt its own request/response shapes.
    Registries are read live, so tools and resources registered after
    construction are served immediately.
    """

    def __init__(
        self,
        *,
        server_info: Implementation,
        capabilities: Mapping[str, Any] | None = None,
        tools: ToolRegistry | None = None,
        resources: ResourceRegistry | None = None,
        instructions: str | None = None,
    ) -> None:
        self._server_info = server_info
        self._capabilities = dict(capabilities or {})
        self._tools = tools if tools is not None else ToolRegistry()
        self._resources = resources if resources is not None else ResourceRegistry()
        self._instructions = instructions
        self._dispatcher = JsonRpcDispatcher(self.methods())

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    @property
    def resources(self) -> ResourceRegistry:
        return self._resources

    @property
    def dispatcher(self) -> JsonRpcDispatcher:
        return self._dispatcher

    def methods(self) -> dict[str, MethodHandler]:
        """Flat method table: handshake methods plus registry methods."""
        return {
            "initialize": self.handle_initialize,
            "notifications/initialized": self.handle_initialized,
            "ping": self.handle_ping,
            **self._resources.methods(),
            **self._tools.methods(),
        }

    async def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Handle one HTTP exchange at the MCP endpoint."""
        if request.method not in ALLOWED_HTTP_METHODS:
            return error_response(405, "[mcp] Method Not Allowed.", Allow="POST, GET, DELETE")

        if request.method == "DELETE":
            # Session teardown is stateless; an external store would hook in here.
            logger.debug("Session %s closed by client", request.header(SESSION_HEADER))
            return accepted_response()

        if request.method == "GET":
            return error_response(
                405,
                "[mcp] Method Not Allowed. Currently `GET` (SSE) is not automatically supported.",
                Allow="POST, DELETE",
            )

        return await self._dispatcher.dispatch(request, RequestContext(request=request))

    def capabilities(self) -> dict[str, Any]:
        """Auto-derived capability flags with caller-supplied flags merged on top."""
        derived: dict[str, Any] = {}
        if len(self._tools) > 0:
            derived["tools"] = {}
        if len(self._resources) > 0:
            derived["resources"] = {}
        return {**derived, **self._capabilities}

    def handle_initialize(self, request: JsonRpcRequest, ctx: RequestContext) -> dict[str, Any]:
        """RPC method ``initialize``: version negotiation and session issuance."""
        params = request.params
        if (
            not isinstance(params, dict)
            or not isinstance(params.get("protocolVersion"), str)
            or not isinstance(params.get("clientInfo"), dict)
        ):
            raise MCPHTTPError(
                400,
                "Invalid request parameters. 'protocolVersion' and 'clientInfo' are required.",
            )

        negotiated = negotiate_protocol_version(params["protocolVersion"])
        session_id = uuid.uuid4().hex
        ctx.response_headers[SESSION_HEADER] = session_id

        logger.info(
            "Initialized session %s for client %s with version %s",
            session_id,
            params["clientInfo"].get("name"),
            negotiated,
        )

        result: dict[str, Any] = {
            "protocolVersion": negotiated,
            "capabilities": self.capabilities(),
            "serverInfo": self._server_info.to_dict(),
        }
        if self._instructions:
            result["instructions"] = self._instructions
        return result

    def handle_initialized(self, request: JsonRpcRequest, ctx: RequestContext) -> None:
        """RPC method ``notifications/initialized``; fire-and-forget."""
        if not request.is_notification or request.params is not None:
            raise MCPHTTPError(
                400,
                "The 'notifications/initialized' method does not accept parameters.",
            )
        logger.debug(
            "Client confirmed initialization for session %s",
            ctx.request.header(SESSION_HEADER),
        )

    def handle_ping(self, request: JsonRpcRequest, ctx: RequestContext) -> dict[str, Any]:
        """RPC method ``ping``."""
        _ = request, ctx
        return {}
