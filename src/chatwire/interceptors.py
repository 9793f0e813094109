"""Request, response and error interceptors.

An :class:`Interceptor` sees every request a client sends.  Interceptors
registered on the client run for every endpoint; those registered on one
endpoint (``client.chat.interceptors``) run only for that endpoint's
calls.

Ordering follows an onion model.  Requests pass through interceptors from
highest to lowest priority, client-level before endpoint-level.
Responses and errors travel back the opposite way.

Example::

    class RequestId(Interceptor):
        priority = Priority.HIGH

        async def on_request(self, request):
            request.headers["X-Request-Id"] = uuid.uuid4().hex
            return request

    client.add_interceptor(RequestId())
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from enum import IntEnum

import httpx

from chatwire.errors import ChatwireError

logger = logging.getLogger(__name__)


class Priority(IntEnum):
    LOWEST = 0
    LOW = 25
    MEDIUM = 50
    HIGH = 75
    HIGHEST = 100


class Interceptor:
    """Base class for interceptors; override the hooks you need.

    Any hook may raise instead of returning; the exception propagates to
    the caller and the remaining interceptors are skipped.

    Attributes:
        priority: Any integer; the :class:`Priority` levels are
            conventional values.  Higher runs earlier on requests.
    """

    priority: int = Priority.MEDIUM

    async def on_request(self, request: httpx.Request) -> httpx.Request:
        """Called before each attempt is sent, retries included.

        Args:
            request: The request about to be sent.  It may be modified
                in place or replaced.
        """
        return request

    async def on_response(self, response: httpx.Response) -> httpx.Response:
        """Called once with the successful response.

        For streamed calls the body has not been read yet.
        """
        return response

    async def on_error(self, error: ChatwireError) -> ChatwireError:
        """Called once with the final error, just before it is raised.

        Return the error to raise, which may be a different one.
        """
        return error


class InterceptorChain:
    """Interceptors kept in priority order, highest first.

    Interceptors of equal priority keep the order they were added in.
    """

    def __init__(self, interceptors: Iterable[Interceptor] = ()):
        self._interceptors: list[Interceptor] = []
        for interceptor in interceptors:
            self.add(interceptor)

    def add(self, interceptor: Interceptor) -> None:
        self._interceptors.append(interceptor)
        self._interceptors.sort(key=lambda i: i.priority, reverse=True)
        logger.debug(
            f"Added interceptor {type(interceptor).__name__} "
            f"(priority {int(interceptor.priority)})"
        )

    def remove(self, interceptor: Interceptor) -> None:
        self._interceptors.remove(interceptor)

    def clear(self) -> None:
        self._interceptors.clear()

    def __len__(self) -> int:
        return len(self._interceptors)

    def __iter__(self) -> Iterator[Interceptor]:
        return iter(self._interceptors)

    def __add__(self, other: "InterceptorChain") -> "InterceptorChain":
        """Chain running *self* outside *other*, preserving each order."""
        chain = InterceptorChain()
        chain._interceptors = self._interceptors + other._interceptors
        return chain

    async def on_request(self, request: httpx.Request) -> httpx.Request:
        for interceptor in self._interceptors:
            request = await interceptor.on_request(request)
        return request

    async def on_response(self, response: httpx.Response) -> httpx.Response:
        for interceptor in reversed(self._interceptors):
            response = await interceptor.on_response(response)
        return response

    async def on_error(self, error: ChatwireError) -> ChatwireError:
        for interceptor in reversed(self._interceptors):
            error = await interceptor.on_error(error)
        return error
