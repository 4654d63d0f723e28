"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Ordered key -> entry registry shared by tools, resources and templates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger("mcpserve.mcp")

E = TypeVar("E")


class Registry(Generic[E]):
    """
    Insertion-ordered mapping with last-write-wins registration.

    Re-registering a key replaces the entry in place (listing order keeps the
    existing slot), logs a warning and returns ``True``. Writes are not locked:
    registries are populated at setup and read during request handling.
    """

    def __init__(self, kind: str) -> None:
        self._kind = kind
        self._entries: dict[str, E] = {}

    def register(self, key: str, entry: E) -> bool:
        overwritten = key in self._entries
        if overwritten:
            logger.warning("%s %r is being redefined", self._kind, key)
        self._entries[key] = entry
        return overwritten

    def unregister(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def get(self, key: str) -> E | None:
        return self._entries.get(key)

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def values(self) -> list[E]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))


@dataclass(frozen=True)
class Registration(Generic[E]):
    """A registered definition paired with its optional handler."""

    definition: E
    handler: Any = None


def cursor_from_params(params: Any) -> str | None:
    """Pagination cursor from request params, when it is a string."""
    if isinstance(params, dict) and isinstance(params.get("cursor"), str):
        return params["cursor"]
    return None
