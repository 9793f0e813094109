"""Lazy, single-pass iteration over a streamed response.

A :class:`ChatStream` wraps an open HTTP response.  Each pull reads just
enough bytes to produce the next item, which is either a parsed chunk
or an item-level error (:class:`~chatwire.errors.ChunkDecodeError`,
:class:`~chatwire.errors.APIStreamError`).  Stream-level failures
(truncation, connection loss) are raised and end iteration.

The response is closed when the stream is exhausted, when
:meth:`Stream.aclose` is called, or when the ``async with`` block exits::

    async with await client.chat.create_stream(params) as stream:
        async for item in stream:
            if isinstance(item, StreamError):
                continue
            print(item.content or "", end="")
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx

from chatwire.chunks import parse_payloads
from chatwire.errors import StreamConsumedError, StreamError, StreamTruncatedError
from chatwire.sse import iter_sse_data
from chatwire.streaming import AccumulatedChoice, ChunkAccumulator
from chatwire.transport import translate_transport_error
from chatwire.types import ChatCompletion, ChatCompletionChunk, ChatCompletionMessage

logger = logging.getLogger(__name__)

ChunkT = TypeVar("ChunkT")


class Stream(Generic[ChunkT]):
    """Base stream driver, parameterised by chunk model.

    Args:
        response: An open ``httpx.Response`` whose body has not been
            read.  The stream takes ownership of it.
    """

    chunk_type: type

    def __init__(self, response: httpx.Response):
        self.response = response
        self._items: AsyncIterator[ChunkT | StreamError] | None = None
        self._closed = False

    def __aiter__(self) -> "Stream[ChunkT]":
        if self._items is not None and self._closed:
            raise StreamConsumedError("Stream has already been consumed.")
        return self

    async def __anext__(self) -> ChunkT | StreamError:
        if self._items is None:
            if self._closed:
                raise StreamConsumedError("Stream has already been closed.")
            self._items = self._iter_items()
        return await self._items.__anext__()

    async def __aenter__(self) -> "Stream[ChunkT]":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def started(self) -> bool:
        return self._items is not None

    @property
    def closed(self) -> bool:
        return self._closed

    async def _bytes(self) -> AsyncIterator[bytes]:
        try:
            async for raw in self.response.aiter_bytes():
                yield raw
        except httpx.RequestError as e:
            raise translate_transport_error(e) from e

    async def _iter_items(self) -> AsyncIterator[ChunkT | StreamError]:
        try:
            async with aclosing(self._bytes()) as raw:
                async with aclosing(iter_sse_data(raw)) as payloads:
                    async with aclosing(parse_payloads(payloads, self.chunk_type)) as items:
                        async for item in items:
                            yield item
        finally:
            await self._close_response()

    async def _close_response(self) -> None:
        if not self._closed:
            self._closed = True
            await self.response.aclose()
            logger.debug("Stream response closed")

    async def aclose(self) -> None:
        """Stop reading and release the HTTP connection.

        Safe to call at any point, including more than once.
        """
        if self._items is not None:
            await self._items.aclose()
        await self._close_response()

    def _check_unstarted(self) -> None:
        if self._items is not None or self._closed:
            raise StreamConsumedError(
                "Stream has already been iterated; it cannot be collected."
            )


@dataclass
class StreamResult:
    """Outcome of driving a chat stream to completion.

    Attributes:
        choices: Accumulated state per choice index, in index order.
        errors: Item-level errors met along the way, in order.
        completion: The merged response as a :class:`ChatCompletion`.
    """

    choices: list[AccumulatedChoice] = field(default_factory=list)
    errors: list[StreamError] = field(default_factory=list)
    completion: ChatCompletion = field(default_factory=ChatCompletion)

    @property
    def message(self) -> ChatCompletionMessage | None:
        return self.completion.message


class ChatStream(Stream[ChatCompletionChunk]):
    """Stream of :class:`~chatwire.types.ChatCompletionChunk` items."""

    chunk_type = ChatCompletionChunk

    async def collect(self) -> StreamResult:
        """Drive the stream to the end, merging every chunk.

        Item-level errors are collected, not raised.  The response is
        closed on return and on error.

        Raises:
            StreamConsumedError: Iteration has already started.
            StreamTruncatedError: The stream ended without ``[DONE]``.
                Its ``partial`` attribute holds the :class:`StreamResult`
                merged up to that point.
            APIConnectionError: The connection failed mid-stream.
        """
        self._check_unstarted()
        acc = ChunkAccumulator()
        errors: list[StreamError] = []
        try:
            async for item in self:
                if isinstance(item, StreamError):
                    errors.append(item)
                else:
                    acc.feed_chunk(item)
        except StreamTruncatedError as e:
            e.partial = _result(acc, errors)
            raise
        finally:
            await self.aclose()
        return _result(acc, errors)


def _result(acc: ChunkAccumulator, errors: list[StreamError]) -> StreamResult:
    return StreamResult(
        choices=acc.finalize(),
        errors=list(errors),
        completion=acc.to_completion(),
    )
