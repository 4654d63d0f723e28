"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Resource registry and the ``resources/*`` method handlers.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from mcpserve.errors import MCPHTTPError
from mcpserve.http import ByteStream, RequestContext
from mcpserve.jsonrpc.models import JsonRpcRequest, MethodHandler
from mcpserve.mcp.registry import Registration, Registry, cursor_from_params
from mcpserve.mcp.types import (
    CallingHandler,
    Listing,
    ListingHandler,
    ResourceDefinition,
    ResourceHandler,
    ResourceTemplate,
    resolve_fallback,
)
from mcpserve.utils import maybe_await

logger = logging.getLogger("mcpserve.mcp.resources")


def _resource_payload(item: Any) -> dict[str, Any]:
    if isinstance(item, ResourceDefinition):
        return item.to_dict()
    if isinstance(item, Mapping):
        return dict(item)
    raise MCPHTTPError(500, f"Invalid resource returned by fallback: {type(item).__name__}")


def merge_resource(static: dict[str, Any], override: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Merge a handler's partial override over a static resource payload.

    An override carrying ``text`` drops a static ``blob`` and vice versa, so the
    merged resource never holds both. An override carrying both is rejected.
    """
    merged = dict(static)
    if not override:
        return merged
    if "text" in override and "blob" in override:
        raise MCPHTTPError(
            500,
            f'Resource override for "{static.get("uri")}" cannot set both text and blob.',
        )
    if "text" in override:
        merged.pop("blob", None)
    if "blob" in override:
        merged.pop("text", None)
    merged.update(override)
    return merged


class ResourceRegistry:
    """
    Stores resources by URI and resource templates by URI template, and
    serves ``resources/list``, ``resources/read`` and
    ``resources/templates/list``.
    """

    def __init__(
        self,
        *,
        list_handler: ListingHandler | None = None,
        read_fallback: CallingHandler | None = None,
        templates_list_handler: ListingHandler | None = None,
    ) -> None:
        self._resources: Registry[Registration[ResourceDefinition]] = Registry("Resource")
        self._templates: Registry[ResourceTemplate] = Registry("Resource template")
        self.list_handler = list_handler
        self.read_fallback = read_fallback
        self.templates_list_handler = templates_list_handler

    def register(
        self,
        definition: ResourceDefinition,
        handler: ResourceHandler | None = None,
    ) -> bool:
        """Register a resource under ``definition.uri``. Returns True on overwrite."""
        if handler is not None and not callable(handler):
            raise TypeError("Resource handler must be callable")
        return self._resources.register(
            definition.uri, Registration(definition=definition, handler=handler)
        )

    def register_template(self, template: ResourceTemplate) -> bool:
        """Register a template under ``template.uri_template``. Returns True on overwrite."""
        return self._templates.register(template.uri_template, template)

    def unregister(self, uri: str) -> bool:
        return self._resources.unregister(uri)

    def get(self, uri: str) -> Registration[ResourceDefinition] | None:
        return self._resources.get(uri)

    def uris(self) -> list[str]:
        return self._resources.keys()

    def templates(self) -> list[ResourceTemplate]:
        return self._templates.values()

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, uri: object) -> bool:
        return uri in self._resources

    def methods(self) -> dict[str, MethodHandler]:
        return {
            "resources/list": self.list_resources,
            "resources/read": self.read_resource,
            "resources/templates/list": self.list_templates,
        }

    async def list_resources(self, request: JsonRpcRequest, ctx: RequestContext) -> Any:
        """RPC method ``resources/list``; metadata only, never payloads."""
        resources = [entry.definition.metadata() for entry in self._resources.values()]
        if self.list_handler is not None:
            listing = Listing(items=resources, cursor=cursor_from_params(request.params))
            return await maybe_await(self.list_handler(listing, ctx, request))
        return {"resources": resources}

    async def read_resource(self, request: JsonRpcRequest, ctx: RequestContext) -> Any:
        """RPC method ``resources/read``."""
        params = request.params
        uri = params.get("uri") if isinstance(params, dict) else None
        if not isinstance(uri, str) or not uri:
            raise MCPHTTPError(400, 'Missing or invalid "uri" parameter for resources/read.')

        entry = self._resources.get(uri)
        if entry is None:
            return await self._read_unknown(uri, params, request, ctx)

        override = None
        if entry.handler is not None:
            try:
                override = await maybe_await(entry.handler(uri, ctx, request))
            except MCPHTTPError:
                raise
            except Exception as exc:
                logger.exception("Error reading resource %r", uri)
                raise MCPHTTPError(
                    500,
                    f'Error reading resource "{uri}".',
                    data=str(exc) or type(exc).__name__,
                ) from exc
            if isinstance(override, ByteStream):
                return override
            if override is not None and not isinstance(override, Mapping):
                raise MCPHTTPError(
                    500,
                    f'Resource handler for "{uri}" must return a mapping or None.',
                )

        return {"contents": [merge_resource(entry.definition.to_dict(), override)]}

    async def _read_unknown(
        self,
        uri: str,
        params: dict[str, Any],
        request: JsonRpcRequest,
        ctx: RequestContext,
    ) -> Any:
        if self.read_fallback is not None:
            outcome = resolve_fallback(
                await maybe_await(self.read_fallback(params, ctx, request))
            )
            if outcome is not None:
                items = outcome.value if isinstance(outcome.value, list) else [outcome.value]
                return {"contents": [_resource_payload(item) for item in items]}
        raise MCPHTTPError(404, f'Resource "{uri}" not found.')

    async def list_templates(self, request: JsonRpcRequest, ctx: RequestContext) -> Any:
        """RPC method ``resources/templates/list``."""
        templates = [template.to_dict() for template in self._templates.values()]
        if self.templates_list_handler is not None:
            listing = Listing(items=templates, cursor=cursor_from_params(request.params))
            return await maybe_await(self.templates_list_handler(listing, ctx, request))
        return {"resourceTemplates": templates}
