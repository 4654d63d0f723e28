from __future__ import annotations

import asyncio
import json
import logging

import pytest
from pydantic import BaseModel

from mcpserve.errors import MCPHTTPError
from mcpserve.http import HTTPRequest
from mcpserve.jsonrpc import INTERNAL_ERROR, INVALID_PARAMS, JsonRpcDispatcher
from mcpserve.mcp import NOT_HANDLED, Handled, ToolDefinition, ToolRegistry, ValidationResult


def run_async(coro):
    return asyncio.run(coro)


class EchoArgs(BaseModel):
    input: str


def echo(args: EchoArgs, ctx, request):
    _ = ctx, request
    return {"output": f"You said: {args.input}"}


def rpc(registry: ToolRegistry, method: str, params=None, *, id=1):
    payload = {"jsonrpc": "2.0", "method": method, "id": id}
    if params is not None:
        payload["params"] = params
    dispatcher = JsonRpcDispatcher(registry.methods())
    response = run_async(
        dispatcher.dispatch(HTTPRequest("POST", body=json.dumps(payload).encode("utf-8")))
    )
    return response.json()


def _echo_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(
        ToolDefinition(name="echo", description="Echoes back the input.", schema=EchoArgs),
        echo,
    )
    return registry


def test_tools_list_derives_input_schema_from_pydantic_model():
    body = rpc(_echo_registry(), "tools/list")

    (tool,) = body["result"]["tools"]
    assert tool["name"] == "echo"
    assert tool["description"] == "Echoes back the input."
    assert "title" not in tool
    assert tool["inputSchema"]["type"] == "object"
    assert tool["inputSchema"]["properties"]["input"]["type"] == "string"
    assert tool["inputSchema"]["required"] == ["input"]


def test_tools_list_prefers_precomputed_json_schema():
    registry = ToolRegistry()
    precomputed = {"type": "object", "properties": {"q": {"type": "string"}}}
    registry.register(
        ToolDefinition(name="search", schema=EchoArgs, json_schema=precomputed),
        lambda args, ctx, request: [],
    )

    body = rpc(registry, "tools/list")

    assert body["result"]["tools"][0]["inputSchema"] == precomputed


def test_tools_list_omits_schema_when_conversion_fails(caplog):
    class OpaqueValidator:
        def validate(self, value):
            return ValidationResult(value=value)

    registry = ToolRegistry()
    registry.register(ToolDefinition(name="opaque", schema=OpaqueValidator()), lambda a, c, r: a)

    with caplog.at_level(logging.WARNING, logger="mcpserve.mcp.tools"):
        body = rpc(registry, "tools/list")

    assert body["result"] == {"tools": [{"name": "opaque"}]}
    assert "Failed to convert schema for tool 'opaque'" in caplog.text


def test_tools_list_is_idempotent_and_keeps_registration_order():
    registry = _echo_registry()
    registry.register(ToolDefinition(name="second"), lambda a, c, r: None)

    first = rpc(registry, "tools/list")
    second = rpc(registry, "tools/list")

    assert first == second
    assert [tool["name"] for tool in first["result"]["tools"]] == ["echo", "second"]


def test_tools_call_validates_and_invokes_handler():
    body = rpc(
        _echo_registry(),
        "tools/call",
        {"name": "echo", "arguments": {"input": "hi"}},
        id="abc",
    )

    assert body == {"jsonrpc": "2.0", "id": "abc", "result": {"output": "You said: hi"}}


def test_tools_call_reports_validation_issues_as_invalid_params():
    body = rpc(_echo_registry(), "tools/call", {"name": "echo", "arguments": {}})

    error = body["error"]
    assert error["code"] == INVALID_PARAMS
    assert error["message"] == 'Invalid arguments for tool "echo".'
    assert error["data"][0]["path"] == ["input"]
    assert error["data"][0]["message"]


def test_tools_call_requires_name():
    body = rpc(_echo_registry(), "tools/call", {"arguments": {"input": "hi"}})

    assert body["error"]["code"] == INVALID_PARAMS
    assert '"name" property' in body["error"]["message"]


def test_tools_call_without_validator_passes_raw_arguments():
    seen = []

    def handler(args, ctx, request):
        _ = ctx
        seen.append((args, request.id))
        return "ok"

    registry = ToolRegistry()
    registry.register(ToolDefinition(name="raw"), handler)

    body = rpc(registry, "tools/call", {"name": "raw", "arguments": {"x": [1, 2]}}, id=4)

    assert body["result"] == "ok"
    assert seen == [({"x": [1, 2]}, 4)]


def test_tools_call_supports_async_validators_and_handlers():
    class Upper:
        async def validate(self, value):
            await asyncio.sleep(0)
            if not isinstance(value, str):
                return {"issues": [{"message": "expected a string", "path": []}]}
            return {"value": value.upper()}

    async def shout(args, ctx, request):
        _ = ctx, request
        await asyncio.sleep(0)
        return args + "!"

    registry = ToolRegistry()
    registry.register(ToolDefinition(name="shout", schema=Upper()), shout)

    ok = rpc(registry, "tools/call", {"name": "shout", "arguments": "hey"})
    bad = rpc(registry, "tools/call", {"name": "shout", "arguments": 3})

    assert ok["result"] == "HEY!"
    assert bad["error"]["data"] == [{"message": "expected a string", "path": []}]


def test_tools_call_wraps_handler_failures():
    def boom(args, ctx, request):
        _ = args, ctx, request
        raise RuntimeError("kaboom")

    registry = ToolRegistry()
    registry.register(ToolDefinition(name="boom"), boom)

    body = rpc(registry, "tools/call", {"name": "boom"})

    assert body["error"] == {
        "code": INTERNAL_ERROR,
        "message": 'Error executing tool "boom".',
        "data": "kaboom",
    }


def test_tools_call_wraps_status_errors_raised_by_handler():
    def strict(args, ctx, request):
        _ = args, ctx, request
        raise MCPHTTPError(422, "Unprocessable.")

    registry = ToolRegistry()
    registry.register(ToolDefinition(name="strict"), strict)

    body = rpc(registry, "tools/call", {"name": "strict"})

    assert body["error"]["code"] == INTERNAL_ERROR
    assert body["error"]["message"] == 'Error executing tool "strict".'


def test_unknown_tool_without_fallback_is_invalid_params():
    body = rpc(_echo_registry(), "tools/call", {"name": "nope"}, id=7)

    assert body == {
        "jsonrpc": "2.0",
        "id": 7,
        "error": {"code": INVALID_PARAMS, "message": 'Tool "nope" not found.'},
    }


@pytest.mark.parametrize(
    ("outcome", "expected"),
    [
        (Handled({}), {}),
        (Handled(None), None),
        ({"dynamic": True}, {"dynamic": True}),
    ],
)
def test_call_fallback_handled_outcomes(outcome, expected):
    registry = ToolRegistry(call_fallback=lambda params, ctx, request: outcome)

    body = rpc(registry, "tools/call", {"name": "dynamic"})

    assert "error" not in body
    assert body["result"] == expected


@pytest.mark.parametrize("outcome", [None, NOT_HANDLED])
def test_call_fallback_decline_yields_not_found(outcome):
    seen = []

    def fallback(params, ctx, request):
        _ = ctx, request
        seen.append(params["name"])
        return outcome

    registry = ToolRegistry(call_fallback=fallback)
    body = rpc(registry, "tools/call", {"name": "ghost"})

    assert seen == ["ghost"]
    assert body["error"]["message"] == 'Tool "ghost" not found.'


def test_list_handler_receives_items_and_cursor():
    seen = []

    async def list_handler(listing, ctx, request):
        _ = ctx, request
        seen.append(listing)
        return {"tools": listing.items[:1], "nextCursor": "page-2"}

    registry = _echo_registry()
    registry.register(ToolDefinition(name="other"), lambda a, c, r: None)
    registry.list_handler = list_handler

    body = rpc(registry, "tools/list", {"cursor": "page-1"})

    assert seen[0].cursor == "page-1"
    assert [tool["name"] for tool in seen[0].items] == ["echo", "other"]
    assert body["result"]["nextCursor"] == "page-2"
    assert [tool["name"] for tool in body["result"]["tools"]] == ["echo"]


def test_register_overwrite_is_last_write_wins():
    registry = _echo_registry()

    replaced = registry.register(ToolDefinition(name="echo"), lambda args, ctx, request: "v2")

    assert replaced is True
    assert registry.names() == ["echo"]
    assert rpc(registry, "tools/call", {"name": "echo"})["result"] == "v2"


def test_unregister_and_membership():
    registry = _echo_registry()

    assert "echo" in registry
    assert registry.unregister("echo") is True
    assert registry.unregister("echo") is False
    assert len(registry) == 0


def test_tool_definition_requires_name():
    with pytest.raises(ValueError):
        ToolDefinition(name="")


def test_tools_call_result_models_are_serialized_as_objects():
    registry = ToolRegistry()
    registry.register(ToolDefinition(name="parse", schema=EchoArgs), lambda args, ctx, request: args)

    body = rpc(registry, "tools/call", {"name": "parse", "arguments": {"input": "hi"}})

    assert body["result"] == {"input": "hi"}
