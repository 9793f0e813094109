"""Exceptions raised by chatwire.

Errors fall into three families:

* transport errors (:class:`APIConnectionError`, :class:`APITimeoutError`)
  raised when the HTTP exchange itself fails,
* API errors (:class:`APIStatusError` and its subclasses) raised when the
  server answers with a non-2xx status,
* stream errors (:class:`StreamError` and its subclasses) raised or yielded
  while a streamed response is being decoded.

:class:`ChunkDecodeError` and :class:`APIStreamError` are *item-level*: the
stream driver yields them inline instead of raising, so one bad payload does
not end the stream.
"""

from __future__ import annotations

from typing import Any


class ChatwireError(Exception):
    """Base class for every error raised by chatwire."""

    @property
    def is_retryable(self) -> bool:
        return False


class ConfigError(ChatwireError):
    """Client configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class APIConnectionError(ChatwireError):
    """The connection failed before or while reading a response."""

    def __init__(self, message: str = "Connection error."):
        super().__init__(message)
        self.message = message

    @property
    def is_retryable(self) -> bool:
        return True


class APITimeoutError(APIConnectionError):
    """The request timed out."""

    def __init__(self, message: str = "Request timed out."):
        super().__init__(message)


# ---------------------------------------------------------------------------
# HTTP status
# ---------------------------------------------------------------------------

class APIStatusError(ChatwireError):
    """The API answered with a non-success HTTP status.

    Args:
        message: Error message from the response body, or the HTTP
            reason phrase when the body carries none.
        status_code: HTTP status code.
        code: Provider error code, if any.
        type: Provider error type, if any.
        body: Decoded response body, if it was JSON.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        code: str | None = None,
        type: str | None = None,
        body: Any = None,
    ):
        super().__init__(f"Error code: {status_code} - {message}")
        self.message = message
        self.status_code = status_code
        self.code = code
        self.type = type
        self.body = body

    @property
    def is_retryable(self) -> bool:
        return (
            self.status_code in (409, 429)
            or 500 <= self.status_code < 600
        )


class BadRequestError(APIStatusError):
    pass


class AuthenticationError(APIStatusError):
    pass


class PermissionDeniedError(APIStatusError):
    pass


class NotFoundError(APIStatusError):
    pass


class ConflictError(APIStatusError):
    pass


class UnprocessableEntityError(APIStatusError):
    pass


class RateLimitError(APIStatusError):
    pass


class InternalServerError(APIStatusError):
    pass


_STATUS_ERRORS: dict[int, type[APIStatusError]] = {
    400: BadRequestError,
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: ConflictError,
    422: UnprocessableEntityError,
    429: RateLimitError,
}


def status_code_to_error(status_code: int) -> type[APIStatusError]:
    """Return the exception class used for an HTTP status code."""
    if 500 <= status_code < 600:
        return InternalServerError
    return _STATUS_ERRORS.get(status_code, APIStatusError)


def make_status_error(
    status_code: int,
    body: Any = None,
    reason: str | None = None,
) -> APIStatusError:
    """Build the right :class:`APIStatusError` from a decoded error body.

    Bodies of the form ``{"error": {"message", "code", "type"}}`` fill
    the structured fields; anything else falls back to *reason*.
    """
    message = reason or "Unknown status"
    code = None
    err_type = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        message = error.get("message") or "No error message provided"
        code = error.get("code")
        err_type = error.get("type")
        if code is not None and not isinstance(code, str):
            code = str(code)
    cls = status_code_to_error(status_code)
    return cls(
        message,
        status_code=status_code,
        code=code,
        type=err_type,
        body=body,
    )


class ResponseDecodeError(ChatwireError):
    """A non-streaming response body could not be decoded.

    Args:
        raw: The raw response text.
        target: Name of the type the body was decoded into.
    """

    def __init__(self, raw: str, target: str, detail: str = ""):
        message = f"Failed to convert response into {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.raw = raw
        self.target = target

    @property
    def is_retryable(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

class StreamError(ChatwireError):
    """Base class for errors raised while consuming a stream."""


class SSEError(StreamError):
    """The event stream itself could not be decoded (e.g. invalid UTF-8)."""


class StreamTruncatedError(StreamError):
    """The stream ended before the ``[DONE]`` sentinel was received.

    Args:
        pending: Undispatched event data buffered when the stream ended,
            if any.

    Attributes:
        partial: Set by ``collect()`` to what was merged before the
            stream was cut short; ``None`` when raised during plain
            iteration.
    """

    def __init__(self, message: str = "Stream ended before [DONE].", pending: str = ""):
        super().__init__(message)
        self.pending = pending
        self.partial: Any = None

    @property
    def is_retryable(self) -> bool:
        return True


class StreamConsumedError(StreamError):
    """A single-pass stream was iterated a second time."""


class ChunkDecodeError(StreamError):
    """One stream payload was not a valid chunk.

    Yielded inline by the stream driver; iteration continues.

    Args:
        payload: The raw ``data:`` payload that failed to decode.
        detail: Parser error message.
    """

    def __init__(self, payload: str, detail: str = ""):
        message = "Failed to decode stream chunk"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.payload = payload
        self.detail = detail


class APIStreamError(StreamError):
    """The provider reported an error object in the middle of a stream.

    Yielded inline by the stream driver; iteration continues.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        type: str | None = None,
        payload: str = "",
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.type = type
        self.payload = payload
