"""
JSON-RPC 2.0 package.

Transport-neutral envelope handling used by the MCP protocol layer, usable on
its own for plain JSON-RPC endpoints.
"""

from .dispatcher import JsonRpcDispatcher, error_from_exception, has_unsafe_keys
from .models import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JsonRpcRequest,
    MethodHandler,
    MethodTable,
    jsonrpc_error,
    jsonrpc_response,
)

__all__ = [
    "JsonRpcDispatcher",
    "JsonRpcRequest",
    "MethodHandler",
    "MethodTable",
    "error_from_exception",
    "has_unsafe_keys",
    "jsonrpc_error",
    "jsonrpc_response",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
]
