"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Tool registry and the ``tools/list`` / ``tools/call`` method handlers.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from mcpserve.errors import MCPHTTPError, MCPSchemaError, MCPTransportError
from mcpserve.http import RequestContext
from mcpserve.jsonrpc.models import JsonRpcRequest, MethodHandler
from mcpserve.mcp.registry import Registration, Registry, cursor_from_params
from mcpserve.mcp.schema import (
    StandardSchema,
    as_standard_schema,
    run_validation,
    to_json_schema,
)
from mcpserve.mcp.types import (
    CallingHandler,
    ListingHandler,
    Listing,
    ToolDefinition,
    ToolHandler,
    resolve_fallback,
)
from mcpserve.utils import drop_none, maybe_await

logger = logging.getLogger("mcpserve.mcp.tools")


@dataclass(frozen=True)
class RegisteredTool(Registration[ToolDefinition]):
    validator: StandardSchema | None = None


class ToolRegistry:
    """
    Stores tools by name and serves the MCP tool methods.

    Optional hooks:
      - ``list_handler``: receives ``Listing(items, cursor)`` and returns the
        ``tools/list`` result verbatim.
      - ``call_fallback``: consulted by ``tools/call`` for unknown names; see
        ``resolve_fallback`` for the accepted return values.
    """

    def __init__(
        self,
        *,
        list_handler: ListingHandler | None = None,
        call_fallback: CallingHandler | None = None,
    ) -> None:
        self._tools: Registry[RegisteredTool] = Registry("Tool")
        self.list_handler = list_handler
        self.call_fallback = call_fallback

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> bool:
        """Register ``handler`` under ``definition.name``. Returns True on overwrite."""
        if not callable(handler):
            raise TypeError("Tool handler must be callable")
        entry = RegisteredTool(
            definition=definition,
            handler=handler,
            validator=as_standard_schema(definition.schema),
        )
        return self._tools.register(definition.name, entry)

    def unregister(self, name: str) -> bool:
        return self._tools.unregister(name)

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return self._tools.keys()

    def definitions(self) -> list[ToolDefinition]:
        return [entry.definition for entry in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def methods(self) -> dict[str, MethodHandler]:
        return {
            "tools/list": self.list_tools,
            "tools/call": self.call_tool,
        }

    async def describe(self) -> list[dict[str, Any]]:
        """Wire descriptions of every tool, in registration order."""
        return list(
            await asyncio.gather(*(self._describe(entry) for entry in self._tools.values()))
        )

    async def _describe(self, entry: RegisteredTool) -> dict[str, Any]:
        definition = entry.definition
        input_schema = definition.json_schema
        if input_schema is None and entry.validator is not None:
            try:
                input_schema = await to_json_schema(entry.validator)
            except MCPSchemaError as exc:
                logger.warning(
                    "Failed to convert schema for tool %r: %s",
                    definition.name,
                    exc,
                )
        return drop_none(
            {
                "name": definition.name,
                "title": definition.title,
                "description": definition.description,
                "inputSchema": input_schema,
            }
        )

    async def list_tools(self, request: JsonRpcRequest, ctx: RequestContext) -> Any:
        """RPC method ``tools/list``."""
        tools = await self.describe()
        if self.list_handler is not None:
            listing = Listing(items=tools, cursor=cursor_from_params(request.params))
            return await maybe_await(self.list_handler(listing, ctx, request))
        return {"tools": tools}

    async def call_tool(self, request: JsonRpcRequest, ctx: RequestContext) -> Any:
        """RPC method ``tools/call``."""
        params = request.params
        if not isinstance(params, dict) or not isinstance(params.get("name"), str):
            raise MCPHTTPError(
                400,
                'Invalid parameters for "tools/call". It must be an object with a "name" property.',
            )

        name = params["name"]
        entry = self._tools.get(name)
        if entry is None:
            return await self._call_unknown(name, params, request, ctx)

        value = params.get("arguments")
        if entry.validator is not None:
            result = await run_validation(entry.validator, value)
            if not result.ok:
                raise MCPHTTPError(
                    400,
                    f'Invalid arguments for tool "{name}".',
                    data=result.issues,
                )
            value = result.value

        try:
            return await maybe_await(entry.handler(value, ctx, request))
        except MCPTransportError:
            raise
        except Exception as exc:
            logger.exception("Error executing tool %r", name)
            raise MCPHTTPError(
                500,
                f'Error executing tool "{name}".',
                data=str(exc) or type(exc).__name__,
            ) from exc

    async def _call_unknown(
        self,
        name: str,
        params: dict[str, Any],
        request: JsonRpcRequest,
        ctx: RequestContext,
    ) -> Any:
        if self.call_fallback is not None:
            outcome = resolve_fallback(
                await maybe_await(self.call_fallback(params, ctx, request))
            )
            if outcome is not None and not request.is_notification:
                return outcome.value
        raise MCPHTTPError(404, f'Tool "{name}" not found.')
