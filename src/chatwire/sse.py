"""Server-Sent Events decoding for streamed responses.

Turns the raw byte stream of an HTTP response into the sequence of
``data:`` payloads it carries.  The ``[DONE]`` sentinel ends the
sequence; a stream that ends without it raises
:class:`~chatwire.errors.StreamTruncatedError`.
"""

from __future__ import annotations

import codecs
import logging
import re
from collections.abc import AsyncIterator
from contextlib import aclosing

from chatwire.errors import SSEError, StreamTruncatedError

logger = logging.getLogger(__name__)

DONE = "[DONE]"

_LINE_END = re.compile(r"\r\n|\r|\n")


class SSEDecoder:
    """Line-level SSE decoder.

    Feed it one line at a time (without its terminator).  :meth:`feed`
    returns the event's data once a blank line dispatches it, and
    ``None`` otherwise.
    """

    def __init__(self) -> None:
        self._data: list[str] = []

    @property
    def pending(self) -> str | None:
        """Data buffered for the event currently being read, if any."""
        if not self._data:
            return None
        return "\n".join(self._data)

    def feed(self, line: str) -> str | None:
        if not line:
            data = self.pending
            self._data = []
            return data

        if line.startswith(":"):
            # keep-alive / comment
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data.append(value)
        elif field not in ("event", "id", "retry"):
            logger.debug(f"Ignoring unknown SSE line: {line!r}")
        return None


async def iter_lines(byte_stream: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """Split a byte stream into text lines.

    Handles ``\\r\\n``, ``\\n`` and ``\\r`` terminators and UTF-8
    sequences split across byte chunks.  A final unterminated line is
    yielded as-is.
    """
    decoder = codecs.getincrementaldecoder("utf-8")()
    buffer = ""
    pending_cr = False

    async for raw in byte_stream:
        try:
            text = decoder.decode(raw)
        except UnicodeDecodeError as e:
            raise SSEError(f"Invalid UTF-8 in event stream: {e}") from e
        if not text:
            continue
        # A \r\n pair split across two byte chunks is one terminator.
        if pending_cr and text.startswith("\n"):
            text = text[1:]
        pending_cr = text.endswith("\r")
        buffer += text

        start = 0
        for match in _LINE_END.finditer(buffer):
            yield buffer[start:match.start()]
            start = match.end()
        buffer = buffer[start:]

    try:
        buffer += decoder.decode(b"", final=True)
    except UnicodeDecodeError as e:
        raise SSEError(f"Invalid UTF-8 in event stream: {e}") from e
    if buffer:
        yield buffer


async def iter_sse_data(byte_stream: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """Yield the data payload of each event in *byte_stream*.

    Events without data are skipped.  Iteration stops at ``[DONE]``
    without reading any further; if the byte stream is exhausted first,
    :class:`StreamTruncatedError` is raised after every complete event
    has been yielded.
    """
    decoder = SSEDecoder()
    async with aclosing(iter_lines(byte_stream)) as lines:
        async for line in lines:
            data = decoder.feed(line)
            if not data:
                continue
            if data == DONE:
                return
            yield data

    # An event still pending at EOF never got its blank-line dispatch.
    pending = decoder.pending
    if pending == DONE:
        return
    if pending:
        raise StreamTruncatedError(
            "Stream ended in the middle of an event.", pending=pending,
        )
    raise StreamTruncatedError()
