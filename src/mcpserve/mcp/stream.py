"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

One-shot streamed results for long-running tool and resource calls.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import Any, Union

from mcpserve.errors import MCPTransportError
from mcpserve.http import EVENT_STREAM_MEDIA_TYPE, ByteStream, RequestContext
from mcpserve.utils import json_default, maybe_await

logger = logging.getLogger("mcpserve.mcp.stream")

_STREAM_END = object()

Chunk = Union[str, bytes]


class MCPStreamController:
    """Handle given to producer routines to push chunks into the stream."""

    def __init__(self, queue: asyncio.Queue[object]) -> None:
        self._queue = queue

    def enqueue(self, chunk: Chunk) -> None:
        self._queue.put_nowait(_encode(chunk))


StreamRoutine = Callable[[MCPStreamController], Union[None, Awaitable[None]]]
StreamSource = Union[AsyncIterable[Chunk], StreamRoutine]


def _encode(chunk: Chunk) -> bytes:
    if isinstance(chunk, (bytes, bytearray)):
        return bytes(chunk)
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    raise TypeError(f"Stream chunks must be str or bytes, got {type(chunk).__name__}")


class MCPStream(ByteStream):
    """
    Single-consumer byte stream with an optional terminal JSON-RPC frame.

    ``source`` is either an async iterable of chunks or a routine receiving an
    ``MCPStreamController``. The producer starts when iteration starts. Once it
    completes, ``final_response`` (when given) is serialized and emitted as the
    last chunk. A producer failure is logged and re-raised to the consumer; the
    terminal frame is then not emitted.
    """

    def __init__(
        self,
        source: StreamSource,
        *,
        final_response: dict[str, Any] | None = None,
    ) -> None:
        self._source = source
        self._final_response = final_response
        self._consumed = False

    @property
    def final_response(self) -> dict[str, Any] | None:
        return self._final_response

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise RuntimeError("MCPStream can only be consumed once")
        self._consumed = True

        if isinstance(self._source, AsyncIterable):
            chunks = self._iter_source(self._source)
        else:
            chunks = self._run_routine(self._source)
        async for chunk in chunks:
            yield chunk

        if self._final_response is not None:
            yield json.dumps(self._final_response, default=json_default).encode("utf-8")

    async def _iter_source(self, source: AsyncIterable[Chunk]) -> AsyncIterator[bytes]:
        try:
            async for chunk in source:
                yield _encode(chunk)
        except Exception:
            logger.exception("Stream source failed")
            raise

    async def _run_routine(self, routine: StreamRoutine) -> AsyncIterator[bytes]:
        queue: asyncio.Queue[object] = asyncio.Queue()
        controller = MCPStreamController(queue)

        async def _pump() -> None:
            try:
                await maybe_await(routine(controller))
            except Exception as error:
                logger.exception("Stream routine failed")
                queue.put_nowait(error)
            finally:
                queue.put_nowait(_STREAM_END)

        task = asyncio.create_task(_pump())
        try:
            while True:
                item = await queue.get()
                if item is _STREAM_END:
                    break
                if isinstance(item, Exception):
                    raise item
                yield item  # type: ignore[misc]
        finally:
            if not task.done():
                task.cancel()


def accepts_event_stream(ctx: RequestContext) -> bool:
    """True when the inbound request declares a streaming-compatible media type."""
    accept = ctx.request.header("accept") or ""
    content_type = ctx.request.header("content-type") or ""
    return (
        "*/*" in accept
        or EVENT_STREAM_MEDIA_TYPE in accept
        or EVENT_STREAM_MEDIA_TYPE in content_type
    )


def create_mcp_stream(
    ctx: RequestContext,
    source: StreamSource,
    *,
    final_response: dict[str, Any] | None = None,
) -> MCPStream:
    """
    Wrap ``source`` as a streamed result for the current exchange.

    Raises ``MCPTransportError(406)`` before any bytes are produced when the
    client did not accept ``text/event-stream``. Sets the response media type.

    Usage::

        async def handler(args, ctx, request):
            async def produce(controller):
                controller.enqueue("event: progress\\ndata: 50\\n\\n")

            return create_mcp_stream(
                ctx,
                produce,
                final_response=jsonrpc_response(request.id, {"done": True}),
            )
    """
    if not accepts_event_stream(ctx):
        raise MCPTransportError(406, "Not Acceptable")
    ctx.response_headers["Content-Type"] = EVENT_STREAM_MEDIA_TYPE
    return MCPStream(source, final_response=final_response)
