"""Chat completions: request parameters and the ``chat`` endpoint."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from chatwire.chat_stream import ChatStream
from chatwire.config import RequestOptions
from chatwire.errors import ResponseDecodeError
from chatwire.instrumentation import completion_span, record_error, record_usage
from chatwire.interceptors import InterceptorChain
from chatwire.message import Message, dump_messages
from chatwire.tools import Tool, ToolParam
from chatwire.transport import HttpTransport
from chatwire.types import ChatCompletion

logger = logging.getLogger(__name__)


def _dump_tool(t: Tool | ToolParam | dict[str, Any]) -> dict[str, Any]:
    if isinstance(t, (Tool, ToolParam)):
        return t.model_dump()
    return dict(t)


class ChatParams(BaseModel):
    """Body of a ``POST /chat/completions`` request.

    Only ``model`` and ``messages`` are required.  Fields left as
    ``None`` are not sent, so the server applies its own defaults.
    ``tools`` accepts :class:`~chatwire.tools.Tool` objects,
    :class:`~chatwire.tools.ToolParam` objects or plain dicts.
    """

    model: str
    # Items are kept as given: a dict is sent verbatim, never coerced.
    messages: list[Any]
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    max_tokens: int | None = None
    max_completion_tokens: int | None = None
    stop: str | list[str] | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    logit_bias: dict[str, int] | None = None
    logprobs: bool | None = None
    top_logprobs: int | None = None
    user: str | None = None
    seed: int | None = None
    tools: list[Any] | None = None
    tool_choice: str | dict[str, Any] | None = None
    parallel_tool_calls: bool | None = None
    response_format: dict[str, Any] | None = None
    reasoning_effort: str | None = None
    service_tier: str | None = None
    metadata: dict[str, str] | None = None
    stream_options: dict[str, Any] | None = None

    @field_validator("messages")
    @classmethod
    def check_messages(cls, messages: list[Any]) -> list[Any]:
        for m in messages:
            if not isinstance(m, (Message, dict)):
                raise ValueError(f"messages must be Message objects or dicts, got {type(m).__name__}")
        return messages

    @field_validator("tools")
    @classmethod
    def check_tools(cls, tools: list[Any] | None) -> list[Any] | None:
        for t in tools or ():
            if not isinstance(t, (Tool, ToolParam, dict)):
                raise ValueError(f"tools must be Tool, ToolParam or dict, got {type(t).__name__}")
        return tools

    def to_body(self, stream: bool = False) -> dict[str, Any]:
        """Build the JSON request body.

        ``stream`` always reflects the call being made.  For a plain
        call ``stream_options`` is dropped, since servers reject it
        without streaming.
        """
        body: dict[str, Any] = {
            "model": self.model,
            "messages": dump_messages(self.messages),
        }
        for name in type(self).model_fields:
            if name in ("model", "messages", "tools"):
                continue
            value = getattr(self, name)
            if value is not None:
                body[name] = value
        if self.tools:
            body["tools"] = [_dump_tool(t) for t in self.tools]
        body["stream"] = stream
        if not stream:
            body.pop("stream_options", None)
        return body


class Chat:
    """The ``chat/completions`` endpoint."""

    def __init__(self, transport: HttpTransport):
        self._transport = transport
        self.interceptors = InterceptorChain()

    async def create(
        self,
        params: ChatParams,
        options: RequestOptions | None = None,
    ) -> ChatCompletion:
        """Request a complete, non-streamed chat completion.

        Raises:
            APIStatusError: The server answered with an error status.
            APIConnectionError: The request could not be completed.
            ResponseDecodeError: The response is not a chat completion.
        """
        async with completion_span(self._transport.system, params.model) as span:
            try:
                data = await self._transport.request_json(
                    "POST", "chat/completions",
                    body=params.to_body(stream=False), options=options,
                    interceptors=self.interceptors,
                )
                try:
                    completion = ChatCompletion.model_validate(data)
                except ValidationError as e:
                    raise ResponseDecodeError(str(data), "ChatCompletion", str(e)) from e
            except Exception as e:
                record_error(span, e)
                raise
            record_usage(span, completion.usage, completion.model)
        logger.debug(
            f"Chat completion {completion.id} for {params.model}: "
            f"{len(completion.choices)} choice(s)"
        )
        return completion

    async def create_stream(
        self,
        params: ChatParams,
        options: RequestOptions | None = None,
    ) -> ChatStream:
        """Start a streamed chat completion.

        Returns once the response headers have arrived; chunks are read
        as the returned :class:`~chatwire.chat_stream.ChatStream` is
        iterated.  The caller must exhaust or close it.
        """
        async with completion_span(
            self._transport.system, params.model, streaming=True,
        ) as span:
            try:
                response = await self._transport.open_stream(
                    "chat/completions",
                    body=params.to_body(stream=True), options=options,
                    interceptors=self.interceptors,
                )
            except Exception as e:
                record_error(span, e)
                raise
        return ChatStream(response)
