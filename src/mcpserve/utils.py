"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Small helpers shared across mcpserve modules.
"""

from __future__ import annotations

import inspect
from typing import Any

from pydantic_core import to_jsonable_python


async def maybe_await(value: Any) -> Any:
    """Await ``value`` when it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


def drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``payload`` without ``None``-valued keys."""
    return {key: value for key, value in payload.items() if value is not None}


def json_default(value: Any) -> Any:
    """``json.dumps`` hook: pydantic models become plain JSON, unknown types their ``str``."""
    return to_jsonable_python(value, fallback=str)
