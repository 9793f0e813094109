"""The async client façade.

Example::

    from chatwire.client import AsyncClient
    from chatwire.chat import ChatParams
    from chatwire.message import user

    async with AsyncClient() as client:
        completion = await client.chat.create(
            ChatParams(model="gpt-4o-mini", messages=[user("Hi!")])
        )
        print(completion.content)
"""

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from chatwire.chat import Chat
from chatwire.completions import Completions
from chatwire.config import ClientConfig
from chatwire.embeddings import Embeddings
from chatwire.interceptors import Interceptor, InterceptorChain
from chatwire.models import Models
from chatwire.transport import HttpTransport

logger = logging.getLogger(__name__)


class AsyncClient:
    """Client for an OpenAI-compatible HTTP API.

    Without *config*, settings come from the keyword arguments and fall
    back to the ``OPENAI_*`` environment variables (see
    :meth:`ClientConfig.from_env`).

    Args:
        api_key: Bearer token.  Defaults to ``OPENAI_API_KEY``.
        base_url: API root.  Defaults to ``OPENAI_BASE_URL`` or the
            OpenAI endpoint.
        config: Complete settings; keyword settings are then ignored.
        http_client: An ``httpx.AsyncClient`` to send requests with.
            It is not closed by :meth:`aclose`.
        interceptors: Interceptors run for every request; see
            :mod:`chatwire.interceptors`.
        **kwargs: Any other :class:`ClientConfig` field.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        interceptors: Iterable[Interceptor] = (),
        **kwargs: Any,
    ):
        if config is None:
            config = ClientConfig.from_env(api_key=api_key, base_url=base_url, **kwargs)
        self._transport = HttpTransport(
            config, http_client=http_client, interceptors=interceptors,
        )
        self.chat = Chat(self._transport)
        self.completions = Completions(self._transport)
        self.models = Models(self._transport)
        self.embeddings = Embeddings(self._transport)
        logger.debug(f"Client created for {config.base_url}")

    @classmethod
    def openrouter(cls, api_key: str | None = None, **kwargs: Any) -> "AsyncClient":
        http_client = kwargs.pop("http_client", None)
        interceptors = kwargs.pop("interceptors", ())
        return cls(
            config=ClientConfig.openrouter(api_key, **kwargs),
            http_client=http_client, interceptors=interceptors,
        )

    @classmethod
    def vllm(cls, url: str, port: int, **kwargs: Any) -> "AsyncClient":
        http_client = kwargs.pop("http_client", None)
        interceptors = kwargs.pop("interceptors", ())
        return cls(
            config=ClientConfig.vllm(url, port, **kwargs),
            http_client=http_client, interceptors=interceptors,
        )

    @property
    def config(self) -> ClientConfig:
        return self._transport.config

    @property
    def interceptors(self) -> InterceptorChain:
        """Client-level interceptors, run for every endpoint."""
        return self._transport.interceptors

    def add_interceptor(self, interceptor: Interceptor) -> None:
        self._transport.interceptors.add(interceptor)

    def update_config(self, **changes: Any) -> ClientConfig:
        """Change settings for every later request.

        Keyword arguments are :class:`ClientConfig` fields.  Streams
        already open keep the settings they were opened with.

        Raises:
            pydantic.ValidationError: A value has the wrong type.
        """
        config = ClientConfig.model_validate({**self.config.model_dump(), **changes})
        self._transport.update_config(config)
        return config

    def with_base_url(self, base_url: str) -> None:
        self.update_config(base_url=base_url)

    def with_api_key(self, api_key: str) -> None:
        self.update_config(api_key=api_key)

    def with_timeout(self, timeout: float) -> None:
        """Set the total request timeout, in seconds."""
        self.update_config(timeout=timeout)

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> "AsyncClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
