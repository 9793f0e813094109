import json

import httpx
import pytest

from chatwire.client import AsyncClient
from chatwire.config import ClientConfig
from chatwire.tools import tool


# ---------------------------------------------------------------------------
# Chunk builders (mirror the OpenAI wire shape)
# ---------------------------------------------------------------------------

def make_chunk(
    content: str | None = None,
    *,
    index: int = 0,
    role: str | None = None,
    reasoning: str | None = None,
    reasoning_content: str | None = None,
    tool_calls: list[dict] | None = None,
    finish_reason: str | None = None,
    chunk_id: str = "chatcmpl-1",
    model: str = "gpt-test",
    usage: dict | None = None,
) -> dict:
    """A chat completion chunk dict with a single choice."""
    delta: dict = {}
    if role is not None:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning"] = reasoning
    if reasoning_content is not None:
        delta["reasoning_content"] = reasoning_content
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    chunk = {
        "id": chunk_id,
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": model,
        "choices": [
            {"index": index, "delta": delta, "finish_reason": finish_reason},
        ],
    }
    if usage is not None:
        chunk["usage"] = usage
    return chunk


def make_tool_delta(
    index: int = 0,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict:
    """One ``tool_calls`` fragment inside a delta."""
    fragment: dict = {"index": index}
    if call_id is not None:
        fragment["id"] = call_id
        fragment["type"] = "function"
    function: dict = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        fragment["function"] = function
    return fragment


def sse_body(*payloads, done: bool = True) -> bytes:
    """Frame payloads as an SSE body.

    Dicts are JSON-encoded; strings are sent as-is.
    """
    parts = []
    for p in payloads:
        data = p if isinstance(p, str) else json.dumps(p)
        parts.append(f"data: {data}\n\n")
    if done:
        parts.append("data: [DONE]\n\n")
    return "".join(parts).encode()


def split_bytes(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


async def aiter_list(items):
    for item in items:
        yield item


async def collect_async(ait) -> list:
    return [item async for item in ait]


# ---------------------------------------------------------------------------
# Mock HTTP
# ---------------------------------------------------------------------------

class TrackingStream(httpx.AsyncByteStream):
    """Response body that records how far it was read and if closed."""

    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks
        self.read_count = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.read_count += 1
            yield chunk

    async def aclose(self):
        self.closed = True


class RecordingHandler:
    """Queue of responses served in order by ``httpx.MockTransport``.

    Each entry is an ``httpx.Response`` or an exception to raise.
    Requests are recorded in :attr:`requests`.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def json_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def sse_response(*payloads, done: bool = True, chunk_size: int | None = None) -> httpx.Response:
    body = sse_body(*payloads, done=done)
    chunks = split_bytes(body, chunk_size) if chunk_size else [body]
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        stream=TrackingStream(chunks),
    )


def make_client(handler, **kwargs) -> AsyncClient:
    """Client whose requests are served by *handler*; sleeps disabled."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = ClientConfig(
        api_key="sk-test",
        base_url="https://api.test/v1",
        **kwargs,
    )
    client = AsyncClient(config=config, http_client=http_client)

    async def no_sleep(seconds):
        client.sleeps.append(seconds)

    client.sleeps = []
    client._transport._sleep = no_sleep
    return client


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "OPENAI_TIMEOUT",
        "OPENAI_CONNECT_TIMEOUT",
        "OPENAI_RETRY_COUNT",
        "OPENAI_USER_AGENT",
        "OPENROUTER_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def sample_tool():
    @tool
    def get_weather(city: str, unit: str = "celsius"):
        """Look up the current weather for a city."""
        return {"city": city, "temp": 21, "unit": unit}
    return get_weather


@pytest.fixture
def sample_async_tool():
    @tool
    async def lookup(query: str):
        """Search the notes."""
        return f"found {query}"
    return lookup
