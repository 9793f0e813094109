"""Unit tests for the SSE event decoder."""

import pytest

from chatwire.errors import SSEError, StreamTruncatedError
from chatwire.sse import SSEDecoder, iter_lines, iter_sse_data
from tests.conftest import aiter_list, collect_async, split_bytes


async def decode(*chunks: bytes) -> list[str]:
    return await collect_async(iter_sse_data(aiter_list(chunks)))


# ---------------------------------------------------------------------------
# SSEDecoder
# ---------------------------------------------------------------------------

class TestSSEDecoder:
    def test_blank_line_dispatches_data(self):
        d = SSEDecoder()
        assert d.feed("data: hello") is None
        assert d.feed("") == "hello"

    def test_multiple_data_lines_joined_with_newline(self):
        d = SSEDecoder()
        d.feed("data: one")
        d.feed("data: two")
        assert d.feed("") == "one\ntwo"

    def test_comment_ignored(self):
        d = SSEDecoder()
        assert d.feed(": keep-alive") is None
        assert d.pending is None

    def test_event_and_id_lines_ignored(self):
        d = SSEDecoder()
        d.feed("event: message")
        d.feed("id: 7")
        d.feed("data: x")
        assert d.feed("") == "x"

    def test_blank_line_without_data_returns_none(self):
        d = SSEDecoder()
        assert d.feed("") is None

    def test_only_one_leading_space_stripped(self):
        d = SSEDecoder()
        d.feed("data:   indented")
        assert d.feed("") == "  indented"

    def test_no_space_after_colon(self):
        d = SSEDecoder()
        d.feed("data:{}")
        assert d.feed("") == "{}"


# ---------------------------------------------------------------------------
# iter_lines
# ---------------------------------------------------------------------------

class TestIterLines:
    @pytest.mark.asyncio
    async def test_mixed_terminators(self):
        lines = await collect_async(iter_lines(aiter_list([b"a\r\nb\nc\rd"])))
        assert lines == ["a", "b", "c", "d"]

    @pytest.mark.asyncio
    async def test_crlf_split_across_chunks_is_one_terminator(self):
        lines = await collect_async(iter_lines(aiter_list([b"a\r", b"\nb\n"])))
        assert lines == ["a", "b"]

    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_chunks(self):
        data = "data: héllo ✓\n".encode()
        lines = await collect_async(iter_lines(aiter_list(split_bytes(data, 1))))
        assert lines == ["data: héllo ✓"]

    @pytest.mark.asyncio
    async def test_unicode_line_separator_is_not_a_line_break(self):
        lines = await collect_async(iter_lines(aiter_list(["a\u2028b\n".encode()])))
        assert lines == ["a\u2028b"]

    @pytest.mark.asyncio
    async def test_invalid_utf8_raises(self):
        with pytest.raises(SSEError):
            await collect_async(iter_lines(aiter_list([b"data: \xff\xfe\n"])))


# ---------------------------------------------------------------------------
# iter_sse_data
# ---------------------------------------------------------------------------

class TestIterSSEData:
    @pytest.mark.asyncio
    async def test_payloads_in_order_until_done(self):
        payloads = await decode(b'data: {"a":1}\n\ndata: {"b":2}\n\ndata: [DONE]\n\n')
        assert payloads == ['{"a":1}', '{"b":2}']

    @pytest.mark.asyncio
    async def test_any_chunking_gives_same_payloads(self):
        body = 'data: {"t":"ü"}\r\n\r\n: ping\n\ndata: {"t":"✓"}\n\ndata: [DONE]\n\n'.encode()
        expected = ['{"t":"ü"}', '{"t":"✓"}']
        for size in (1, 2, 3, 5, 7, len(body)):
            assert await decode(*split_bytes(body, size)) == expected

    @pytest.mark.asyncio
    async def test_comments_and_event_lines_produce_nothing(self):
        payloads = await decode(
            b": OPENROUTER PROCESSING\n\n"
            b"event: message\ndata: x\n\n"
            b"data: [DONE]\n\n"
        )
        assert payloads == ["x"]

    @pytest.mark.asyncio
    async def test_bytes_after_done_are_not_read(self):
        read = []

        async def source():
            for chunk in (b"data: a\n\n", b"data: [DONE]\n\n", b"data: never\n\n"):
                read.append(chunk)
                yield chunk

        payloads = await collect_async(iter_sse_data(source()))
        assert payloads == ["a"]
        assert len(read) == 2

    @pytest.mark.asyncio
    async def test_eof_without_done_raises_after_payloads(self):
        seen = []
        with pytest.raises(StreamTruncatedError) as exc_info:
            async for payload in iter_sse_data(aiter_list([b"data: a\n\ndata: b\n\n"])):
                seen.append(payload)
        assert seen == ["a", "b"]
        assert exc_info.value.pending == ""

    @pytest.mark.asyncio
    async def test_eof_mid_event_raises_with_pending_data(self):
        with pytest.raises(StreamTruncatedError) as exc_info:
            await decode(b"data: a\n\ndata: {\"partial\"")
        assert exc_info.value.pending == '{"partial"'

    @pytest.mark.asyncio
    async def test_done_without_trailing_blank_line_ends_cleanly(self):
        assert await decode(b"data: a\n\ndata: [DONE]") == ["a"]

    @pytest.mark.asyncio
    async def test_empty_stream_is_truncated(self):
        with pytest.raises(StreamTruncatedError):
            await decode()
