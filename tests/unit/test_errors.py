import pytest

from chatwire.errors import (
    APIConnectionError,
    APIStatusError,
    APIStreamError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    ChunkDecodeError,
    ConflictError,
    InternalServerError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ResponseDecodeError,
    StreamError,
    StreamTruncatedError,
    UnprocessableEntityError,
    make_status_error,
    status_code_to_error,
)


@pytest.mark.parametrize(
    "status,cls",
    [
        (400, BadRequestError),
        (401, AuthenticationError),
        (403, PermissionDeniedError),
        (404, NotFoundError),
        (409, ConflictError),
        (422, UnprocessableEntityError),
        (429, RateLimitError),
        (500, InternalServerError),
        (503, InternalServerError),
        (418, APIStatusError),
    ],
)
def test_status_code_to_error(status, cls):
    assert status_code_to_error(status) is cls


@pytest.mark.parametrize(
    "status,retryable",
    [(400, False), (401, False), (404, False), (409, True), (429, True), (500, True), (502, True)],
)
def test_status_error_retryable(status, retryable):
    assert make_status_error(status).is_retryable is retryable


def test_transport_errors_retryable():
    assert APIConnectionError().is_retryable
    assert APITimeoutError().is_retryable
    assert isinstance(APITimeoutError(), APIConnectionError)


def test_make_status_error_from_error_body():
    body = {"error": {"message": "Rate limit reached", "code": "rate_limit_exceeded", "type": "requests"}}
    err = make_status_error(429, body, "Too Many Requests")
    assert isinstance(err, RateLimitError)
    assert err.status_code == 429
    assert err.message == "Rate limit reached"
    assert err.code == "rate_limit_exceeded"
    assert err.type == "requests"
    assert err.body == body
    assert str(err) == "Error code: 429 - Rate limit reached"


def test_make_status_error_without_body_uses_reason():
    err = make_status_error(502, "<html>bad gateway</html>", "Bad Gateway")
    assert err.message == "Bad Gateway"
    assert err.code is None


def test_numeric_error_code_becomes_string():
    err = make_status_error(400, {"error": {"message": "bad", "code": 400}})
    assert err.code == "400"


def test_stream_error_family():
    for err in (
        ChunkDecodeError("x", "bad"),
        APIStreamError("boom"),
        StreamTruncatedError(),
    ):
        assert isinstance(err, StreamError)
    assert StreamTruncatedError().is_retryable
    assert not ChunkDecodeError("x").is_retryable


def test_response_decode_error_message():
    err = ResponseDecodeError("{}", "ChatCompletion", "missing field")
    assert str(err) == "Failed to convert response into ChatCompletion: missing field"
    assert err.raw == "{}"
