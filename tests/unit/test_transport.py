import httpx
import pytest

from chatwire.config import RequestOptions
from chatwire.errors import (
    APIConnectionError,
    APITimeoutError,
    BadRequestError,
    InternalServerError,
    RateLimitError,
    ResponseDecodeError,
)
from chatwire.transport import USER_AGENT, retry_delay
from tests.conftest import RecordingHandler, make_client


def rate_limited(**headers) -> httpx.Response:
    return httpx.Response(
        429,
        headers=headers,
        json={"error": {"message": "slow down", "type": "requests", "code": "rate_limit_exceeded"}},
    )


# ---------------------------------------------------------------------------
# retry_delay
# ---------------------------------------------------------------------------


class TestRetryDelay:
    def test_retry_after_wins(self):
        delay = retry_delay(1, RateLimitError("x", status_code=429), retry_after=3.0)
        assert 3.0 <= delay <= 4.0

    def test_rate_limit_backoff_doubles(self):
        err = RateLimitError("x", status_code=429)
        assert 5.0 <= retry_delay(1, err) <= 5.5
        assert 10.0 <= retry_delay(2, err) <= 11.0

    def test_server_error_capped(self):
        err = InternalServerError("x", status_code=500)
        assert 1.0 <= retry_delay(1, err) <= 1.1
        assert 30.0 <= retry_delay(10, err) <= 33.0

    def test_transport_errors(self):
        assert 0.1 <= retry_delay(1, APITimeoutError()) <= 0.11
        assert 0.2 <= retry_delay(1, APIConnectionError()) <= 0.22
        assert 10.0 <= retry_delay(20, APIConnectionError()) <= 11.0


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------


class TestRetries:
    @pytest.mark.asyncio
    async def test_rate_limit_then_success(self):
        handler = RecordingHandler(rate_limited(), httpx.Response(200, json={"ok": True}))
        client = make_client(handler)

        data = await client._transport.request_json("GET", "models")
        assert data == {"ok": True}
        assert len(handler.requests) == 2
        assert len(client.sleeps) == 1
        assert 5.0 <= client.sleeps[0] <= 5.5

    @pytest.mark.asyncio
    async def test_retry_after_header_honoured(self):
        handler = RecordingHandler(rate_limited(**{"retry-after": "2"}), httpx.Response(200, json={}))
        client = make_client(handler)

        await client._transport.request_json("GET", "models")
        assert 2.0 <= client.sleeps[0] <= 3.0

    @pytest.mark.asyncio
    async def test_bad_request_not_retried(self):
        handler = RecordingHandler(
            httpx.Response(400, json={"error": {"message": "bad model", "type": "invalid_request_error"}}),
        )
        client = make_client(handler)

        with pytest.raises(BadRequestError) as exc_info:
            await client._transport.request_json("POST", "chat/completions", body={})
        assert exc_info.value.message == "bad model"
        assert len(handler.requests) == 1
        assert client.sleeps == []

    @pytest.mark.asyncio
    async def test_connection_error_retried(self):
        handler = RecordingHandler(httpx.ConnectError("refused"), httpx.Response(200, json={}))
        client = make_client(handler)

        assert await client._transport.request_json("GET", "models") == {}
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        handler = RecordingHandler(*(httpx.Response(503) for _ in range(3)))
        client = make_client(handler, max_retries=3)

        with pytest.raises(InternalServerError) as exc_info:
            await client._transport.request_json("GET", "models")
        assert exc_info.value.status_code == 503
        assert len(handler.requests) == 3
        assert len(client.sleeps) == 2

    @pytest.mark.asyncio
    async def test_per_request_max_retries(self):
        handler = RecordingHandler(httpx.Response(503))
        client = make_client(handler)

        with pytest.raises(InternalServerError):
            await client._transport.request_json(
                "GET", "models", options=RequestOptions(max_retries=0),
            )
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_timeout_translated(self):
        handler = RecordingHandler(httpx.ReadTimeout("slow"))
        client = make_client(handler, max_retries=1)

        with pytest.raises(APITimeoutError) as exc_info:
            await client._transport.request_json("GET", "models")
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequestBuilding:
    @pytest.mark.asyncio
    async def test_default_headers_and_url(self):
        handler = RecordingHandler(httpx.Response(200, json={}))
        client = make_client(handler)

        await client._transport.request_json("GET", "/models")
        request = handler.requests[0]
        assert str(request.url) == "https://api.test/v1/models"
        assert request.headers["authorization"] == "Bearer sk-test"
        assert request.headers["user-agent"] == USER_AGENT

    @pytest.mark.asyncio
    async def test_request_options_applied(self):
        handler = RecordingHandler(httpx.Response(200, json={}))
        client = make_client(handler, default_headers={"X-Team": "a"})

        await client._transport.request_json(
            "POST", "chat/completions",
            body={"model": "m"},
            options=RequestOptions(
                user_agent="agent/2",
                extra_headers={"X-Trace": "1"},
                extra_query={"api-version": "2024"},
                extra_body={"top_k": 5},
            ),
        )
        request = handler.requests[0]
        assert request.headers["user-agent"] == "agent/2"
        assert request.headers["x-team"] == "a"
        assert request.headers["x-trace"] == "1"
        assert request.url.params["api-version"] == "2024"
        assert handler.json_bodies()[0] == {"model": "m", "top_k": 5}

    @pytest.mark.asyncio
    async def test_invalid_json_body(self):
        handler = RecordingHandler(httpx.Response(200, content=b"<html>"))
        client = make_client(handler)

        with pytest.raises(ResponseDecodeError) as exc_info:
            await client._transport.request_json("GET", "models")
        assert exc_info.value.raw == "<html>"

    def test_system_name(self):
        client = make_client(RecordingHandler())
        assert client._transport.system == "api.test"
