"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

MCP server built on FastAPI.

The protocol core (``MCPProtocolHandler.handle``) owns every MCP decision,
including HTTP verb gating; this module only adapts FastAPI requests and
responses to and from it, and offers registration helpers.
"""

from __future__ import annotations

import inspect
import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, StreamingResponse
from starlette.requests import Request

from mcpserve.http import EVENT_STREAM_MEDIA_TYPE, HTTPRequest, HTTPResponse
from mcpserve.mcp.protocol import MCPProtocolHandler
from mcpserve.mcp.resources import ResourceRegistry
from mcpserve.mcp.tools import ToolRegistry
from mcpserve.mcp.types import (
    CallingHandler,
    Implementation,
    ListingHandler,
    ResourceDefinition,
    ResourceHandler,
    ResourceTemplate,
    ToolDefinition,
    ToolHandler,
)

logger = logging.getLogger("mcpserve.server")

# Every verb is routed to the core so it can answer 405 itself.
_ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


# ---------------------------------------------------------------------------
# MCP server configuration
# ---------------------------------------------------------------------------


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class MCPServerConfig:
    """
    Configuration for the MCP server.

    Attributes:
        name: Server name advertised during ``initialize``.
        version: Server version string.
        title: Optional display name advertised in ``serverInfo``.
        description: Optional description advertised in ``serverInfo``.
        instructions: Optional instructions describing the server's purpose.
        capabilities: Explicit capability flags; merged over the flags
            derived from registered tools/resources.
        host: Bind host for uvicorn.
        port: Bind port for uvicorn.
        cors_origins: List of allowed CORS origins.
        mcp_path: MCP endpoint path.
        health_path: Health endpoint path.
        enable_health: Whether to expose the health endpoint.
    """

    name: str = "mcpserve"
    version: str = "1.0.0"
    title: str | None = None
    description: str | None = None
    instructions: str | None = None
    capabilities: dict[str, Any] = field(default_factory=dict)
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    mcp_path: str = "/mcp"
    health_path: str = "/health"
    enable_health: bool = True

    @staticmethod
    def from_env() -> "MCPServerConfig":
        """Load configuration from ``MCPSERVE_*`` environment variables."""
        origins = os.getenv("MCPSERVE_CORS_ORIGINS", "*")
        return MCPServerConfig(
            name=os.getenv("MCPSERVE_NAME", "mcpserve"),
            version=os.getenv("MCPSERVE_VERSION", "1.0.0"),
            title=os.getenv("MCPSERVE_TITLE"),
            description=os.getenv("MCPSERVE_DESCRIPTION"),
            instructions=os.getenv("MCPSERVE_INSTRUCTIONS"),
            host=os.getenv("MCPSERVE_HOST", "0.0.0.0"),
            port=int(os.getenv("MCPSERVE_PORT", "8000")),
            cors_origins=[item.strip() for item in origins.split(",") if item.strip()],
            mcp_path=os.getenv("MCPSERVE_PATH", "/mcp"),
            health_path=os.getenv("MCPSERVE_HEALTH_PATH", "/health"),
            enable_health=_env_bool("MCPSERVE_ENABLE_HEALTH", True),
        )

    def server_info(self) -> Implementation:
        return Implementation(
            name=self.name,
            version=self.version,
            title=self.title,
            description=self.description,
        )


# ---------------------------------------------------------------------------
# Request / response adaptation
# ---------------------------------------------------------------------------


async def to_http_request(request: Request) -> HTTPRequest:
    """Convert a FastAPI request into the core's transport-neutral form."""
    return HTTPRequest(
        method=request.method,
        headers=dict(request.headers),
        body=await request.body(),
        path=request.url.path,
    )


def to_fastapi_response(response: HTTPResponse) -> Response:
    """Render a core ``HTTPResponse`` as a FastAPI response."""
    if response.is_stream:
        headers = {k: v for k, v in response.headers.items() if k.lower() != "content-type"}
        media_type = next(
            (v for k, v in response.headers.items() if k.lower() == "content-type"),
            EVENT_STREAM_MEDIA_TYPE,
        )
        return StreamingResponse(
            response.body,
            status_code=response.status,
            headers=headers,
            media_type=media_type,
        )
    return Response(
        content=response.body,
        status_code=response.status,
        headers=response.headers,
    )


# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------


class MCPServer:
    """
    MCP server that exposes tools and resources via FastAPI.

    Usage::

        from pydantic import BaseModel
        from mcpserve import MCPServer, MCPServerConfig

        class EchoArgs(BaseModel):
            input: str

        server = MCPServer(MCPServerConfig(name="demo"))

        @server.tool(schema=EchoArgs, description="Echo the input")
        async def echo(args: EchoArgs, ctx, request):
            return {"output": f"You said: {args.input}"}

        server.run()  # starts FastAPI on port 8000

    Endpoints:
        ``POST /mcp`` for JSON-RPC 2.0 (single or batch)
        ``DELETE /mcp`` for session teardown
        ``GET /health`` for health checks

    Args:
        config: Server configuration.
        tools: Optional pre-populated ``ToolRegistry``.
        resources: Optional pre-populated ``ResourceRegistry``.
        app: Existing FastAPI app to mount routes into.
    """

    def __init__(
        self,
        config: MCPServerConfig | None = None,
        *,
        tools: ToolRegistry | None = None,
        resources: ResourceRegistry | None = None,
        app: FastAPI | None = None,
    ) -> None:
        self._config = config or MCPServerConfig()
        self._tools = tools if tools is not None else ToolRegistry()
        self._resources = resources if resources is not None else ResourceRegistry()
        self._protocol_handler = MCPProtocolHandler(
            server_info=self._config.server_info(),
            capabilities=self._config.capabilities,
            tools=self._tools,
            resources=self._resources,
            instructions=self._config.instructions,
        )
        if app is not None:
            self._app = self.mount(app)
        else:
            self._app = self._create_app()

    @property
    def app(self) -> FastAPI:
        """
        The FastAPI application instance.

        Use this to serve the MCP server or for testing::

            from fastapi.testclient import TestClient
            client = TestClient(server.app)
        """
        return self._app

    @property
    def config(self) -> MCPServerConfig:
        """Server configuration."""
        return self._config

    @property
    def protocol(self) -> MCPProtocolHandler:
        return self._protocol_handler

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    @property
    def resources(self) -> ResourceRegistry:
        return self._resources

    # ''''''''''''
    # Registration
    # ''''''''''''

    def add_tool(self, definition: ToolDefinition, handler: ToolHandler) -> bool:
        """Register a tool. Returns True when an existing tool was replaced."""
        return self._tools.register(definition, handler)

    def tool(
        self,
        name: str | None = None,
        *,
        schema: Any = None,
        title: str | None = None,
        description: str | None = None,
        json_schema: dict[str, Any] | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator form of ``add_tool``; name and description default to the function's."""

        def decorator(fn: ToolHandler) -> ToolHandler:
            self.add_tool(
                ToolDefinition(
                    name=name or fn.__name__,
                    title=title,
                    description=description or inspect.getdoc(fn),
                    schema=schema,
                    json_schema=json_schema,
                ),
                fn,
            )
            return fn

        return decorator

    def add_resource(
        self,
        definition: ResourceDefinition,
        handler: ResourceHandler | None = None,
    ) -> bool:
        """Register a resource. Returns True when an existing resource was replaced."""
        return self._resources.register(definition, handler)

    def resource(
        self,
        uri: str,
        *,
        name: str | None = None,
        title: str | None = None,
        description: str | None = None,
        mime_type: str | None = None,
        annotations: dict[str, Any] | None = None,
    ) -> Callable[[ResourceHandler], ResourceHandler]:
        """Decorator registering a resource whose content comes from the handler."""

        def decorator(fn: ResourceHandler) -> ResourceHandler:
            self.add_resource(
                ResourceDefinition(
                    uri=uri,
                    name=name,
                    title=title,
                    description=description,
                    mime_type=mime_type,
                    annotations=annotations,
                ),
                fn,
            )
            return fn

        return decorator

    def add_resource_template(self, template: ResourceTemplate) -> bool:
        """Register a resource template. Returns True on overwrite."""
        return self._resources.register_template(template)

    def tools_list(self, handler: ListingHandler) -> ListingHandler:
        """Install a ``tools/list`` override (usable as a decorator)."""
        self._tools.list_handler = handler
        return handler

    def tools_call(self, handler: CallingHandler) -> CallingHandler:
        """Install the ``tools/call`` fallback for unknown tool names."""
        self._tools.call_fallback = handler
        return handler

    def resources_list(self, handler: ListingHandler) -> ListingHandler:
        """Install a ``resources/list`` override."""
        self._resources.list_handler = handler
        return handler

    def resources_read(self, handler: CallingHandler) -> CallingHandler:
        """Install the ``resources/read`` fallback for unknown URIs."""
        self._resources.read_fallback = handler
        return handler

    def resources_templates_list(self, handler: ListingHandler) -> ListingHandler:
        """Install a ``resources/templates/list`` override."""
        self._resources.templates_list_handler = handler
        return handler

    # ''''''''''''''
    # HTTP wiring
    # ''''''''''''''

    async def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Transport-neutral entry point; see ``MCPProtocolHandler.handle``."""
        return await self._protocol_handler.handle(request)

    def _create_router(self, mcp_path: str | None = None) -> APIRouter:
        """Build an APIRouter containing MCP routes."""
        router = APIRouter()

        if self._config.enable_health:

            @router.get(self._config.health_path)
            async def health() -> dict[str, Any]:
                return {
                    "status": "ok",
                    "server": self._config.name,
                    "version": self._config.version,
                    "tools_count": len(self._tools),
                    "resources_count": len(self._resources),
                }

        async def mcp_endpoint(request: Request) -> Response:
            """MCP endpoint; every verb is forwarded to the protocol core."""
            response = await self.handle(await to_http_request(request))
            return to_fastapi_response(response)

        router.add_api_route(
            mcp_path or self._config.mcp_path,
            mcp_endpoint,
            methods=_ROUTED_METHODS,
            include_in_schema=False,
        )
        return router

    def _create_app(self) -> FastAPI:
        """Build the FastAPI application with MCP routes."""
        app = FastAPI(
            title=self._config.name,
            version=self._config.version,
            description="mcpserve Model Context Protocol server",
        )

        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["Mcp-Session-Id"],
        )
        app.include_router(self._create_router())
        return app

    def mount(self, app: FastAPI, *, path: str | None = None) -> FastAPI:
        """
        Mount MCP routes into an existing FastAPI app, optionally at ``path``.

        Returns the provided app for fluent usage.
        """
        app.include_router(self._create_router(path))
        return app

    def run(self, **kwargs: Any) -> None:
        """
        Start the MCP server using uvicorn.

        Args:
            **kwargs: Additional arguments passed to ``uvicorn.run()``.
        """
        import uvicorn

        logger.info(
            "Starting MCP server %s on %s:%s%s",
            self._config.name,
            kwargs.get("host", self._config.host),
            kwargs.get("port", self._config.port),
            self._config.mcp_path,
        )
        uvicorn.run(
            self._app,
            host=kwargs.pop("host", self._config.host),
            port=kwargs.pop("port", self._config.port),
            **kwargs,
        )


def create_mcp_server(
    *,
    config: MCPServerConfig | None = None,
    tools: Iterable[tuple[ToolDefinition, ToolHandler]] | None = None,
    resources: Iterable[ResourceDefinition | tuple[ResourceDefinition, ResourceHandler]] | None = None,
    resource_templates: Iterable[ResourceTemplate] | None = None,
    app: FastAPI | None = None,
) -> MCPServer:
    """
    Declarative constructor for MCP servers.

    ``tools`` are ``(definition, handler)`` pairs; ``resources`` are static
    definitions or ``(definition, handler)`` pairs.
    """
    server = MCPServer(config, app=app)
    for definition, handler in tools or ():
        server.add_tool(definition, handler)
    for item in resources or ():
        if isinstance(item, ResourceDefinition):
            server.add_resource(item)
        else:
            definition, handler = item
            server.add_resource(definition, handler)
    for template in resource_templates or ():
        server.add_resource_template(template)
    return server
