"""HTTP transport built on httpx.

Handles authentication headers, per-request overrides, retries with
backoff and translation of httpx failures into chatwire errors.
Retries only happen while a response is being established: once a
streamed body is handed to the caller it is never replayed.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Iterable
from typing import Any

import httpx

from chatwire.config import ClientConfig, RequestOptions
from chatwire.errors import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    ChatwireError,
    InternalServerError,
    RateLimitError,
    ResponseDecodeError,
    make_status_error,
)
from chatwire.interceptors import Interceptor, InterceptorChain

logger = logging.getLogger(__name__)

USER_AGENT = "chatwire-python"


def retry_delay(
    attempt: int,
    error: ChatwireError,
    retry_after: float | None = None,
) -> float:
    """Seconds to wait before retry number *attempt* (1-based).

    A server-provided ``Retry-After`` wins, plus up to a second of
    jitter.  Otherwise the delay doubles per attempt from a base that
    depends on the error kind, with up to 10% jitter.
    """
    if retry_after is not None:
        return retry_after + random.uniform(0, 1)

    if isinstance(error, APIStatusError):
        if isinstance(error, RateLimitError):
            base = 5.0
        elif isinstance(error, InternalServerError):
            base = 1.0
        else:
            base = 0.5
        cap = 30.0
    else:
        base = 0.1 if isinstance(error, APITimeoutError) else 0.2
        cap = 10.0

    delay = min(base * 2 ** (attempt - 1), cap)
    return delay + delay * random.uniform(0, 0.1)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def translate_transport_error(e: httpx.RequestError) -> APIConnectionError:
    if isinstance(e, httpx.TimeoutException):
        return APITimeoutError(str(e) or "Request timed out.")
    return APIConnectionError(str(e) or "Connection error.")


class HttpTransport:
    """Sends requests for a client.

    Args:
        config: Client-wide settings.
        http_client: Optional preconfigured ``httpx.AsyncClient``; the
            transport does not close clients it did not create.
        interceptors: Client-level interceptors, run for every request.
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: httpx.AsyncClient | None = None,
        interceptors: Iterable[Interceptor] = (),
    ):
        self.config = config
        self.interceptors = InterceptorChain(interceptors)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout, connect=config.connect_timeout),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def update_config(self, config: ClientConfig) -> None:
        """Use *config* for every request from now on.

        Streams already open are unaffected.  The timeout of an
        ``httpx.AsyncClient`` passed in by the caller is left alone.
        """
        self.config = config
        if self._owns_client:
            self._client.timeout = httpx.Timeout(
                config.timeout, connect=config.connect_timeout,
            )
        logger.debug(f"Transport config updated for {config.base_url}")

    def _headers(self, options: RequestOptions) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "User-Agent": options.user_agent or self.config.user_agent or USER_AGENT,
        }
        headers.update(self.config.default_headers)
        headers.update(options.extra_headers)
        return headers

    def _build_request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
        options: RequestOptions,
    ) -> httpx.Request:
        if body is not None and options.extra_body:
            body = {**body, **options.extra_body}
        timeout = None
        if options.timeout is not None:
            timeout = httpx.Timeout(
                options.timeout, connect=self.config.connect_timeout,
            )
        kwargs: dict[str, Any] = {
            "headers": self._headers(options),
            "params": options.extra_query or None,
            "json": body,
        }
        if timeout is not None:
            kwargs["timeout"] = timeout
        return self._client.build_request(
            method, f"{self.config.base_url}/{path.lstrip('/')}", **kwargs,
        )

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def send(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        options: RequestOptions | None = None,
        stream: bool = False,
        interceptors: InterceptorChain | None = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        With ``stream=True`` the returned response body is unread and
        the caller must close it.

        Args:
            interceptors: Endpoint-level interceptors, run inside the
                client-level ones.

        Raises:
            APIStatusError: Final non-2xx response.
            APIConnectionError: Final transport failure.
        """
        options = options or RequestOptions()
        retries = options.max_retries
        if retries is None:
            retries = self.config.max_retries
        max_attempts = max(retries, 1)
        chain = self.interceptors
        if interceptors:
            chain = chain + interceptors

        attempt = 0
        while True:
            attempt += 1
            request = await chain.on_request(
                self._build_request(method, path, body, options)
            )
            retry_after = None
            try:
                response = await self._client.send(request, stream=stream)
            except httpx.RequestError as e:
                error: ChatwireError = translate_transport_error(e)
                cause: BaseException | None = e
            else:
                if response.is_success:
                    try:
                        return await chain.on_response(response)
                    except BaseException:
                        await response.aclose()
                        raise
                retry_after = _retry_after(response)
                error = await self._status_error(response)
                cause = None

            if attempt >= max_attempts or not error.is_retryable:
                error = await chain.on_error(error)
                raise error from cause
            delay = retry_delay(attempt, error, retry_after)
            logger.debug(
                f"Attempt {attempt}/{max_attempts} for {method} {path} "
                f"failed ({error}); retrying in {delay:.2f}s"
            )
            await self._sleep(delay)

    async def _status_error(self, response: httpx.Response) -> APIStatusError:
        try:
            await response.aread()
        finally:
            await response.aclose()
        try:
            body = response.json()
        except ValueError:
            body = None
        return make_status_error(
            response.status_code, body, response.reason_phrase,
        )

    async def open_stream(
        self,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        options: RequestOptions | None = None,
        interceptors: InterceptorChain | None = None,
    ) -> httpx.Response:
        """POST *body* and return the response with its body unread.

        The caller owns the response and must close it.
        """
        return await self.send(
            "POST", path, body=body, options=options, stream=True,
            interceptors=interceptors,
        )

    @property
    def system(self) -> str:
        """Provider name reported on tracing spans."""
        host = httpx.URL(self.config.base_url).host
        if host == "api.openai.com":
            return "openai"
        return host or "openai"

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        options: RequestOptions | None = None,
        interceptors: InterceptorChain | None = None,
    ) -> Any:
        """Send a request and decode its JSON body.

        Raises:
            ResponseDecodeError: The body is not valid JSON.
        """
        response = await self.send(
            method, path, body=body, options=options, interceptors=interceptors,
        )
        try:
            return response.json()
        except ValueError as e:
            raise ResponseDecodeError(response.text, "JSON", str(e)) from e
