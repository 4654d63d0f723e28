"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

JSON-RPC 2.0 dispatcher: body parsing, envelope validation, method routing,
error classification and single/batch response framing.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from mcpserve.errors import MCPHTTPError, MCPTransportError
from mcpserve.http import (
    EVENT_STREAM_MEDIA_TYPE,
    ByteStream,
    HTTPRequest,
    HTTPResponse,
    RequestContext,
    accepted_response,
    error_response,
    json_response,
)
from mcpserve.jsonrpc.models import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JsonRpcRequest,
    MethodHandler,
    MethodTable,
    jsonrpc_error,
    jsonrpc_response,
)
from mcpserve.utils import maybe_await

logger = logging.getLogger("mcpserve.jsonrpc")

UNSAFE_KEYS = frozenset({"__proto__", "constructor", "prototype"})

_PARSE_FAILED = object()


def has_unsafe_keys(value: Any) -> bool:
    """Return True when any object in the parsed JSON tree uses a reserved key.

    Walks with an explicit stack, so nesting depth is bounded only by what the
    JSON parser accepted.
    """
    pending = [value]
    while pending:
        node = pending.pop()
        if isinstance(node, dict):
            if not UNSAFE_KEYS.isdisjoint(node):
                return True
            pending.extend(node.values())
        elif isinstance(node, list):
            pending.extend(node)
    return False


def _is_valid_id(value: Any) -> bool:
    if value is None or isinstance(value, str):
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def error_from_exception(request: JsonRpcRequest, exc: Exception) -> dict[str, Any]:
    """
    Classify a handler failure into a JSON-RPC error response.

    ``MCPHTTPError`` with a 4xx status becomes ``InvalidParams`` and keeps its
    message and data. Every other failure becomes ``InternalError``.
    """
    if isinstance(exc, MCPHTTPError):
        if 400 <= exc.status < 500:
            return jsonrpc_error(request.id, INVALID_PARAMS, exc.message, exc.data)
        logger.warning(
            "JSON-RPC method %s failed with status %s: %s",
            request.method,
            exc.status,
            exc.message,
        )
        return jsonrpc_error(request.id, INTERNAL_ERROR, exc.message, exc.data)
    return jsonrpc_error(
        request.id,
        INTERNAL_ERROR,
        "Internal error",
        {"exc_type": type(exc).__name__},
    )


class JsonRpcDispatcher:
    """
    Routes JSON-RPC 2.0 requests to a flat table of method handlers.

    Every handler shares one contract: ``handler(request, ctx)`` returning a
    result (or an awaitable of one). Batch entries run concurrently and their
    responses keep the input order, with notifications filtered out.

    Usage::

        dispatcher = JsonRpcDispatcher({"sum": lambda req, ctx: sum(req.params)})
        response = await dispatcher.dispatch(HTTPRequest("POST", body=raw))
    """

    def __init__(self, methods: MethodTable | None = None) -> None:
        self._methods: dict[str, MethodHandler] = dict(methods or {})

    @property
    def methods(self) -> dict[str, MethodHandler]:
        return dict(self._methods)

    def register(self, method: str, handler: MethodHandler) -> bool:
        """Add or replace one method handler. Returns True when replacing."""
        if not isinstance(method, str) or not method:
            raise ValueError("method must be a non-empty string")
        if not callable(handler):
            raise TypeError("handler must be callable")
        overwritten = method in self._methods
        if overwritten:
            logger.warning("JSON-RPC method %s is being redefined", method)
        self._methods[method] = handler
        return overwritten

    async def dispatch(
        self,
        request: HTTPRequest,
        ctx: RequestContext | None = None,
    ) -> HTTPResponse:
        """Handle one HTTP exchange carrying a JSON-RPC request or batch."""
        if request.method != "POST":
            return error_response(405, "Method Not Allowed", Allow="POST")

        ctx = ctx or RequestContext(request=request)
        body = self._parse_body(request.body)
        if body is _PARSE_FAILED or body is None or has_unsafe_keys(body):
            return json_response(
                jsonrpc_error(None, PARSE_ERROR, "Parse error"),
                headers=ctx.response_headers,
            )

        is_batch = isinstance(body, list)
        entries = body if is_batch else [body]

        try:
            results = await asyncio.gather(
                *(self._process(entry, ctx, single=not is_batch) for entry in entries)
            )
        except MCPTransportError as exc:
            return error_response(exc.status, exc.message)

        responses = [item for item in results if item is not None]
        headers = dict(ctx.response_headers)

        if not responses:
            # Empty body carries no media type.
            return accepted_response(
                {k: v for k, v in headers.items() if k.lower() != "content-type"}
            )

        if not is_batch:
            single = responses[0]
            if isinstance(single, ByteStream):
                headers.setdefault("Content-Type", single.media_type or EVENT_STREAM_MEDIA_TYPE)
                return HTTPResponse(status=200, headers=headers, body=single.__aiter__())
            return json_response(single, headers=headers)
        return json_response(responses, headers=headers)

    def _parse_body(self, raw: bytes) -> Any:
        if not raw:
            return _PARSE_FAILED
        try:
            return json.loads(raw)
        except ValueError:
            logger.debug("Rejecting request body that is not valid JSON")
            return _PARSE_FAILED
        except RecursionError:
            logger.warning("Rejecting request body nested too deeply to parse")
            return _PARSE_FAILED

    async def _process(
        self,
        entry: Any,
        ctx: RequestContext,
        *,
        single: bool,
    ) -> dict[str, Any] | ByteStream | None:
        if not isinstance(entry, dict):
            return jsonrpc_error(None, INVALID_REQUEST, "Invalid Request")

        raw_id = entry.get("id")
        if not _is_valid_id(raw_id):
            return jsonrpc_error(None, INVALID_REQUEST, "Invalid Request")
        if entry.get("jsonrpc") != JSONRPC_VERSION or not isinstance(entry.get("method"), str):
            return jsonrpc_error(raw_id, INVALID_REQUEST, "Invalid Request")

        request = JsonRpcRequest(
            method=entry["method"],
            params=entry.get("params"),
            id=raw_id,
        )
        handler = self._methods.get(request.method)
        if handler is None:
            if request.is_notification:
                return None
            return jsonrpc_error(request.id, METHOD_NOT_FOUND, "Method not found")

        try:
            result = await maybe_await(handler(request, ctx))
        except Exception as exc:
            if request.is_notification:
                logger.warning(
                    "Notification %s failed: %s",
                    request.method,
                    exc,
                )
                return None
            if single and isinstance(exc, MCPTransportError):
                raise
            if not isinstance(exc, MCPHTTPError):
                logger.exception("Error handling JSON-RPC method %s", request.method)
            return error_from_exception(request, exc)

        if request.is_notification:
            return None
        if isinstance(result, ByteStream):
            if single:
                return result
            return jsonrpc_error(
                request.id,
                INTERNAL_ERROR,
                "Streaming responses are not supported in batch requests",
            )
        return jsonrpc_response(request.id, result)
