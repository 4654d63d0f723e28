"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Transport-neutral HTTP exchange types.

The protocol core never touches a web framework directly. Hosts convert their
own request objects into ``HTTPRequest`` and render the returned
``HTTPResponse`` (see ``mcpserve.server.runtime`` for the FastAPI adapter).
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from mcpserve.utils import json_default

JSON_MEDIA_TYPE = "application/json"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
SESSION_HEADER = "Mcp-Session-Id"

ResponseBody = Union[bytes, AsyncIterator[bytes]]


@dataclass
class HTTPRequest:
    """
    Inbound HTTP exchange as seen by the core.

    Attributes:
        method: HTTP verb, upper-cased on construction.
        headers: Request headers; keys are lower-cased on construction.
        body: Raw request body.
        path: Request path, informational only.
    """

    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    path: str = "/"

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {str(k).lower(): str(v) for k, v in self.headers.items()}

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


@dataclass
class HTTPResponse:
    """Outbound HTTP response; ``body`` is either bytes or an async byte stream."""

    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: ResponseBody = b""

    @property
    def is_stream(self) -> bool:
        return not isinstance(self.body, (bytes, bytearray))

    def json(self) -> Any:
        """Decode a non-streamed JSON body (test and debugging convenience)."""
        if self.is_stream:
            raise TypeError("Cannot decode a streamed response body as JSON")
        if not self.body:
            return None
        return json.loads(self.body)


class ByteStream:
    """
    Base class for handler results delivered as a chunked byte stream.

    The dispatcher sends a ``ByteStream`` result as the raw response body
    instead of wrapping it in a JSON-RPC envelope.
    """

    media_type: str = EVENT_STREAM_MEDIA_TYPE

    def __aiter__(self) -> AsyncIterator[bytes]:
        raise NotImplementedError


@dataclass
class RequestContext:
    """
    Per-exchange context handed to every JSON-RPC method handler.

    Handlers read the inbound ``request`` and may add ``response_headers``
    (for example the session id minted by ``initialize``).
    """

    request: HTTPRequest
    response_headers: dict[str, str] = field(default_factory=dict)


def json_response(
    payload: Any,
    *,
    status: int = 200,
    headers: Mapping[str, str] | None = None,
) -> HTTPResponse:
    """Serialize ``payload`` into a JSON ``HTTPResponse``."""
    out = dict(headers or {})
    out["Content-Type"] = JSON_MEDIA_TYPE
    return HTTPResponse(
        status=status,
        headers=out,
        body=json.dumps(payload, default=json_default).encode("utf-8"),
    )


def error_response(status: int, message: str, **headers: str) -> HTTPResponse:
    """Transport-level error response with a ``{status, message}`` JSON body."""
    return json_response({"status": status, "message": message}, status=status, headers=headers)


def accepted_response(headers: Mapping[str, str] | None = None) -> HTTPResponse:
    """202 Accepted with an empty body."""
    return HTTPResponse(status=202, headers=dict(headers or {}), body=b"")
