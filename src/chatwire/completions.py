"""Legacy text completions (``POST /completions``).

Streamed completions reuse the chat stream driver: only the chunk model
and the merge differ, since each choice carries a ``text`` fragment
instead of a delta.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from chatwire.chat_stream import Stream
from chatwire.config import RequestOptions
from chatwire.errors import ResponseDecodeError, StreamError
from chatwire.instrumentation import completion_span, record_error, record_usage
from chatwire.interceptors import InterceptorChain
from chatwire.transport import HttpTransport
from chatwire.types import FinishReason, FinishReasonValue, Usage, coalesce_reasoning


class CompletionParams(BaseModel):
    """Body of a ``POST /completions`` request."""

    model: str
    prompt: str | list[str]
    suffix: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    stop: str | list[str] | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    logit_bias: dict[str, int] | None = None
    logprobs: int | None = None
    echo: bool | None = None
    best_of: int | None = None
    seed: int | None = None
    user: str | None = None
    stream_options: dict[str, Any] | None = None

    def to_body(self, stream: bool = False) -> dict[str, Any]:
        body = self.model_dump(exclude_none=True)
        body["stream"] = stream
        if not stream:
            body.pop("stream_options", None)
        return body


class CompletionLogprobs(BaseModel):
    """Per-token log probabilities; streamed pieces cover consecutive tokens."""

    tokens: list[str] = Field(default_factory=list)
    token_logprobs: list[float | None] = Field(default_factory=list)
    top_logprobs: list[dict[str, float] | None] = Field(default_factory=list)
    text_offset: list[int] = Field(default_factory=list)

    def extend(self, other: "CompletionLogprobs") -> "CompletionLogprobs":
        return CompletionLogprobs(
            tokens=self.tokens + other.tokens,
            token_logprobs=self.token_logprobs + other.token_logprobs,
            top_logprobs=self.top_logprobs + other.top_logprobs,
            text_offset=self.text_offset + other.text_offset,
        )


class CompletionChoice(BaseModel):
    index: int = 0
    text: str = ""
    reasoning: str | None = None
    finish_reason: FinishReasonValue = None
    logprobs: CompletionLogprobs | None = None

    @model_validator(mode="before")
    @classmethod
    def alias_reasoning(cls, data: Any) -> Any:
        return coalesce_reasoning(data)


class Completion(BaseModel):
    id: str = ""
    object: str = "text_completion"
    created: int = 0
    model: str = ""
    choices: list[CompletionChoice] = Field(default_factory=list)
    usage: Usage | None = None
    system_fingerprint: str | None = None

    @property
    def text(self) -> str | None:
        """Text of the first choice."""
        if not self.choices:
            return None
        return self.choices[0].text


class CompletionChunk(Completion):
    """One streamed piece of a text completion.

    Each choice's ``text`` is a fragment to append to what came before.
    """


def _extend_logprobs(
    current: CompletionLogprobs | None,
    fragment: CompletionLogprobs | None,
) -> CompletionLogprobs | None:
    if current is None:
        return fragment
    if fragment is None:
        return current
    return current.extend(fragment)


class TextAccumulator:
    """Concatenates streamed completion text per choice index."""

    def __init__(self) -> None:
        self._choices: dict[int, CompletionChoice] = {}
        self.id = ""
        self.created = 0
        self.model = ""
        self.usage: Usage | None = None
        self.system_fingerprint: str | None = None

    def feed_chunk(self, chunk: CompletionChunk) -> None:
        self.id = self.id or chunk.id
        self.created = self.created or chunk.created
        self.model = self.model or chunk.model
        if chunk.usage is not None:
            self.usage = chunk.usage
        if chunk.system_fingerprint is not None:
            self.system_fingerprint = chunk.system_fingerprint
        for fragment in chunk.choices:
            current = self._choices.get(fragment.index)
            if current is None:
                self._choices[fragment.index] = fragment.model_copy()
                continue
            reasoning = current.reasoning
            if fragment.reasoning:
                reasoning = (reasoning or "") + fragment.reasoning
            self._choices[fragment.index] = CompletionChoice(
                index=current.index,
                text=current.text + fragment.text,
                reasoning=reasoning,
                finish_reason=current.finish_reason or fragment.finish_reason,
                logprobs=_extend_logprobs(current.logprobs, fragment.logprobs),
            )

    def to_completion(self) -> Completion:
        choices = []
        for i in sorted(self._choices):
            choice = self._choices[i]
            if choice.finish_reason is None:
                choice = choice.model_copy(update={"finish_reason": FinishReason.STOP})
            choices.append(choice)
        return Completion(
            id=self.id,
            created=self.created,
            model=self.model,
            choices=choices,
            usage=self.usage,
            system_fingerprint=self.system_fingerprint,
        )


class CompletionStream(Stream[CompletionChunk]):
    """Stream of :class:`CompletionChunk` items."""

    chunk_type = CompletionChunk

    async def collect(self) -> tuple[Completion, list[StreamError]]:
        """Drive the stream to the end and merge the text.

        Returns the merged completion and the item-level errors met on
        the way.  The response is closed on return and on error.
        """
        self._check_unstarted()
        acc = TextAccumulator()
        errors: list[StreamError] = []
        try:
            async for item in self:
                if isinstance(item, StreamError):
                    errors.append(item)
                else:
                    acc.feed_chunk(item)
        finally:
            await self.aclose()
        return acc.to_completion(), errors


class Completions:
    """The legacy ``completions`` endpoint."""

    def __init__(self, transport: HttpTransport):
        self._transport = transport
        self.interceptors = InterceptorChain()

    async def create(
        self,
        params: CompletionParams,
        options: RequestOptions | None = None,
    ) -> Completion:
        async with completion_span(
            self._transport.system, params.model, operation="text_completion",
        ) as span:
            try:
                data = await self._transport.request_json(
                    "POST", "completions",
                    body=params.to_body(stream=False), options=options,
                    interceptors=self.interceptors,
                )
                try:
                    completion = Completion.model_validate(data)
                except ValidationError as e:
                    raise ResponseDecodeError(str(data), "Completion", str(e)) from e
            except Exception as e:
                record_error(span, e)
                raise
            record_usage(span, completion.usage, completion.model)
        return completion

    async def create_stream(
        self,
        params: CompletionParams,
        options: RequestOptions | None = None,
    ) -> CompletionStream:
        async with completion_span(
            self._transport.system, params.model,
            operation="text_completion", streaming=True,
        ) as span:
            try:
                response = await self._transport.open_stream(
                    "completions",
                    body=params.to_body(stream=True), options=options,
                    interceptors=self.interceptors,
                )
            except Exception as e:
                record_error(span, e)
                raise
        return CompletionStream(response)
