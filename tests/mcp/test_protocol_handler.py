from __future__ import annotations

import asyncio
import json
import re

import pytest

from mcpserve.http import HTTPRequest
from mcpserve.jsonrpc import INVALID_PARAMS
from mcpserve.mcp import (
    LATEST_PROTOCOL_VERSION,
    Implementation,
    MCPProtocolHandler,
    ResourceDefinition,
    ResourceRegistry,
    ToolDefinition,
    ToolRegistry,
    negotiate_protocol_version,
)


def run_async(coro):
    return asyncio.run(coro)


def post(handler: MCPProtocolHandler, payload, **headers):
    request = HTTPRequest("POST", headers=headers, body=json.dumps(payload).encode("utf-8"))
    return run_async(handler.handle(request))


def initialize_payload(version: str = "2025-06-18", *, id=1):
    return {
        "jsonrpc": "2.0",
        "id": id,
        "method": "initialize",
        "params": {
            "protocolVersion": version,
            "capabilities": {},
            "clientInfo": {"name": "test-client", "version": "1.0.0"},
        },
    }


def make_handler(**kwargs) -> MCPProtocolHandler:
    kwargs.setdefault("server_info", Implementation(name="test-server", version="0.1.0"))
    return MCPProtocolHandler(**kwargs)


def test_initialize_returns_server_info_and_session_header():
    tools = ToolRegistry()
    tools.register(ToolDefinition(name="echo"), lambda args, ctx, request: args)
    handler = make_handler(tools=tools, instructions="Use the echo tool.")

    response = post(handler, initialize_payload("2025-03-26"))
    body = response.json()

    assert response.status == 200
    assert body["id"] == 1
    assert body["result"] == {
        "protocolVersion": "2025-03-26",
        "capabilities": {"tools": {}},
        "serverInfo": {"name": "test-server", "version": "0.1.0"},
        "instructions": "Use the echo tool.",
    }
    assert re.fullmatch(r"[0-9a-f]{32}", response.headers["Mcp-Session-Id"])


def test_initialize_issues_distinct_sessions():
    handler = make_handler()

    first = post(handler, initialize_payload())
    second = post(handler, initialize_payload())

    assert first.headers["Mcp-Session-Id"] != second.headers["Mcp-Session-Id"]


def test_initialize_falls_back_to_latest_supported_version():
    handler = make_handler()

    body = post(handler, initialize_payload("1999-01-01")).json()

    assert body["result"]["protocolVersion"] == LATEST_PROTOCOL_VERSION == "2025-06-18"


@pytest.mark.parametrize(
    ("requested", "expected"),
    [("2025-06-18", "2025-06-18"), ("2025-03-26", "2025-03-26"), ("2024-11-05", "2025-06-18")],
)
def test_negotiate_protocol_version(requested, expected):
    assert negotiate_protocol_version(requested) == expected


def test_initialize_without_client_info_is_invalid_params():
    handler = make_handler()
    payload = initialize_payload()
    del payload["params"]["clientInfo"]

    response = post(handler, payload)

    assert response.json()["error"]["code"] == INVALID_PARAMS
    assert "Mcp-Session-Id" not in response.headers


def test_capabilities_are_derived_then_overridden():
    tools = ToolRegistry()
    tools.register(ToolDefinition(name="echo"), lambda args, ctx, request: args)
    resources = ResourceRegistry()
    resources.register(ResourceDefinition(uri="memo://a", text="a"))

    bare = make_handler()
    derived = make_handler(tools=tools, resources=resources)
    explicit = make_handler(
        tools=tools,
        resources=resources,
        capabilities={"tools": {"listChanged": True}, "logging": {}},
    )

    assert bare.capabilities() == {}
    assert derived.capabilities() == {"tools": {}, "resources": {}}
    assert explicit.capabilities() == {
        "tools": {"listChanged": True},
        "resources": {},
        "logging": {},
    }


def test_capabilities_follow_late_registration():
    handler = make_handler()
    handler.tools.register(ToolDefinition(name="late"), lambda args, ctx, request: None)

    body = post(handler, initialize_payload()).json()

    assert body["result"]["capabilities"] == {"tools": {}}


def test_initialized_notification_is_accepted():
    handler = make_handler()

    response = post(handler, {"jsonrpc": "2.0", "method": "notifications/initialized"})

    assert response.status == 202
    assert response.body == b""


def test_initialized_with_id_or_params_is_rejected():
    handler = make_handler()

    with_id = post(handler, {"jsonrpc": "2.0", "method": "notifications/initialized", "id": 3})
    with_params = post(
        handler,
        [
            {"jsonrpc": "2.0", "method": "notifications/initialized", "params": {}},
            {"jsonrpc": "2.0", "method": "ping", "id": 4},
        ],
    )

    assert with_id.json()["error"]["code"] == INVALID_PARAMS
    assert with_params.json() == [{"jsonrpc": "2.0", "id": 4, "result": {}}]


def test_initialize_and_initialized_in_one_batch():
    handler = make_handler()

    response = post(
        handler,
        [
            initialize_payload(id=1),
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
        ],
    )
    body = response.json()

    assert isinstance(body, list)
    assert len(body) == 1
    assert body[0]["id"] == 1
    assert body[0]["result"]["protocolVersion"] == "2025-06-18"
    assert "Mcp-Session-Id" in response.headers


def test_ping_returns_empty_object():
    body = post(make_handler(), {"jsonrpc": "2.0", "method": "ping", "id": "p"}).json()

    assert body == {"jsonrpc": "2.0", "id": "p", "result": {}}


@pytest.mark.parametrize("verb", ["PUT", "PATCH", "HEAD"])
def test_unsupported_http_verbs_are_rejected(verb):
    response = run_async(make_handler().handle(HTTPRequest(verb)))

    assert response.status == 405
    assert response.headers["Allow"] == "POST, GET, DELETE"
    assert response.json()["message"] == "[mcp] Method Not Allowed."


def test_get_reports_missing_event_stream_support():
    response = run_async(make_handler().handle(HTTPRequest("GET")))

    assert response.status == 405
    assert "SSE" in response.json()["message"]


def test_delete_acknowledges_session_close():
    request = HTTPRequest("DELETE", headers={"Mcp-Session-Id": "abc"})

    response = run_async(make_handler().handle(request))

    assert response.status == 202
    assert response.body == b""
    assert "Mcp-Session-Id" not in response.headers


def test_methods_table_composes_registries():
    handler = make_handler()

    assert set(handler.methods()) == {
        "initialize",
        "notifications/initialized",
        "ping",
        "tools/list",
        "tools/call",
        "resources/list",
        "resources/read",
        "resources/templates/list",
    }
