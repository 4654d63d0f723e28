"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Type models for MCP tools, resources, resource templates and handler hooks.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Union

from mcpserve.http import RequestContext
from mcpserve.jsonrpc.models import JsonRpcRequest
from mcpserve.utils import drop_none


@dataclass(frozen=True, slots=True)
class Implementation:
    """
    Name/version pair describing a server (or client) implementation.

    Attributes:
        name: Implementation name advertised during ``initialize``.
        version: Implementation version string.
        title: Optional human-readable display name.
        description: Optional free-form description.
    """

    name: str
    version: str
    title: str | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none(
            {
                "name": self.name,
                "version": self.version,
                "title": self.title,
                "description": self.description,
            }
        )


@dataclass(frozen=True)
class ToolDefinition:
    """
    Static description of a callable tool.

    Attributes:
        name: Unique tool name; registry key.
        title: Optional display name.
        description: Optional description shown to clients.
        schema: Optional argument validator (pydantic model/type or any
            ``StandardSchema``). Arguments pass through unchanged without one.
        json_schema: Optional precomputed JSON Schema; wins over derivation
            from ``schema`` in ``tools/list``.
    """

    name: str
    title: str | None = None
    description: str | None = None
    schema: Any = None
    json_schema: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Tool name must be a non-empty string")


@dataclass(frozen=True)
class ResourceDefinition:
    """
    Static description of a readable resource.

    At most one of ``text`` and ``blob`` (base64) may be set.
    """

    uri: str
    name: str | None = None
    title: str | None = None
    description: str | None = None
    mime_type: str | None = None
    annotations: dict[str, Any] | None = None
    text: str | None = None
    blob: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.uri, str) or not self.uri:
            raise ValueError("Resource uri must be a non-empty string")
        if self.text is not None and self.blob is not None:
            raise ValueError(f"Resource {self.uri!r} cannot define both text and blob")

    def metadata(self) -> dict[str, Any]:
        """Wire form without the ``text``/``blob`` payload."""
        return drop_none(
            {
                "uri": self.uri,
                "name": self.name,
                "title": self.title,
                "description": self.description,
                "mimeType": self.mime_type,
                "annotations": self.annotations,
            }
        )

    def to_dict(self) -> dict[str, Any]:
        out = self.metadata()
        if self.text is not None:
            out["text"] = self.text
        if self.blob is not None:
            out["blob"] = self.blob
        return out


@dataclass(frozen=True, slots=True)
class ResourceTemplate:
    """Parameterized resource description (RFC 6570 ``uri_template``)."""

    uri_template: str
    name: str | None = None
    title: str | None = None
    description: str | None = None
    mime_type: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.uri_template, str) or not self.uri_template:
            raise ValueError("Resource template uri_template must be a non-empty string")

    def to_dict(self) -> dict[str, Any]:
        return drop_none(
            {
                "uriTemplate": self.uri_template,
                "name": self.name,
                "title": self.title,
                "description": self.description,
                "mimeType": self.mime_type,
            }
        )


@dataclass(frozen=True, slots=True)
class Handled:
    """Fallback outcome: the fallback produced ``value`` (which may be falsy)."""

    value: Any


class _NotHandled:
    _instance: "_NotHandled | None" = None

    def __new__(cls) -> "_NotHandled":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_HANDLED"

    def __bool__(self) -> bool:
        return False


NOT_HANDLED = _NotHandled()
"""Fallback outcome: the fallback declined the request."""


def resolve_fallback(outcome: Any) -> Handled | None:
    """
    Normalize a fallback return value.

    ``Handled`` is returned as-is, ``NOT_HANDLED`` and ``None`` mean the
    fallback declined, and any other value counts as handled.
    """
    if isinstance(outcome, Handled):
        return outcome
    if outcome is None or outcome is NOT_HANDLED:
        return None
    return Handled(outcome)


@dataclass(frozen=True, slots=True)
class Listing:
    """Input handed to listing override hooks."""

    items: list[dict[str, Any]] = field(default_factory=list)
    cursor: str | None = None


MaybeAwaitable = Union[Any, Awaitable[Any]]

ToolHandler = Callable[[Any, RequestContext, JsonRpcRequest], MaybeAwaitable]
ResourceHandler = Callable[[str, RequestContext, JsonRpcRequest], MaybeAwaitable]
ListingHandler = Callable[[Listing, RequestContext, JsonRpcRequest], MaybeAwaitable]
CallingHandler = Callable[[dict[str, Any], RequestContext, JsonRpcRequest], MaybeAwaitable]
