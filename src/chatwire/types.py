"""Response models for the chat completions API.

Both the non-streaming response (:class:`ChatCompletion`) and the
streamed increments (:class:`ChatCompletionChunk`) are modelled here.
Unknown fields are ignored so provider extensions never break parsing.

Providers disagree on the name of the reasoning field: some send
``reasoning``, others ``reasoning_content``.  Both are folded into
``reasoning`` during validation, so nothing downstream has to care.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, model_validator


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    FUNCTION_CALL = "function_call"


def _finish_reason(value: Any) -> Any:
    # Unknown reasons from non-OpenAI providers stay plain strings.
    if isinstance(value, str) and not isinstance(value, FinishReason):
        try:
            return FinishReason(value)
        except ValueError:
            return value
    return value


FinishReasonValue = Annotated[
    FinishReason | str | None, BeforeValidator(_finish_reason)
]


def coalesce_reasoning(data: Any) -> Any:
    """Fold ``reasoning_content`` into ``reasoning``.

    ``reasoning`` wins when both are present and non-null.
    """
    if isinstance(data, dict) and "reasoning_content" in data:
        data = dict(data)
        alias = data.pop("reasoning_content")
        if data.get("reasoning") is None:
            data["reasoning"] = alias
    return data


class CompletionTokensDetails(BaseModel):
    accepted_prediction_tokens: int | None = None
    audio_tokens: int | None = None
    reasoning_tokens: int | None = None
    rejected_prediction_tokens: int | None = None


class PromptTokensDetails(BaseModel):
    audio_tokens: int | None = None
    cached_tokens: int | None = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    completion_tokens_details: CompletionTokensDetails | None = None
    prompt_tokens_details: PromptTokensDetails | None = None


# ---------------------------------------------------------------------------
# Non-streaming response
# ---------------------------------------------------------------------------

class Function(BaseModel):
    name: str = ""
    arguments: str = ""


class ToolCall(BaseModel):
    """A complete tool call issued by the model."""

    id: str = ""
    type: str = "function"
    function: Function = Field(default_factory=Function)

    def parse_arguments(self) -> dict[str, Any]:
        """Decode the JSON argument string.

        An empty argument string decodes to ``{}``.  Invalid JSON raises
        :class:`json.JSONDecodeError`.
        """
        if not self.function.arguments:
            return {}
        return json.loads(self.function.arguments)


class ChatCompletionMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None
    reasoning: str | None = None
    refusal: str | None = None
    tool_calls: list[ToolCall] | None = None

    @model_validator(mode="before")
    @classmethod
    def alias_reasoning(cls, data: Any) -> Any:
        return coalesce_reasoning(data)

    def has_content(self) -> bool:
        return bool(self.content)

    def has_reasoning(self) -> bool:
        return bool(self.reasoning)

    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_param(self):
        """Convert to an :class:`~chatwire.message.AssistantMessage`.

        Use this to append a response, streamed or not, to the
        conversation history of the next request.
        """
        from chatwire.message import AssistantMessage

        return AssistantMessage(
            content=self.content,
            refusal=self.refusal,
            tool_calls=list(self.tool_calls) if self.tool_calls else None,
        )


class Choice(BaseModel):
    index: int = 0
    message: ChatCompletionMessage = Field(default_factory=ChatCompletionMessage)
    finish_reason: FinishReasonValue = None
    logprobs: Any = None


class ChatCompletion(BaseModel):
    id: str = ""
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None
    system_fingerprint: str | None = None
    service_tier: str | None = None

    @property
    def message(self) -> ChatCompletionMessage | None:
        """Message of the first choice."""
        if not self.choices:
            return None
        return self.choices[0].message

    @property
    def content(self) -> str | None:
        message = self.message
        return message.content if message else None

    @property
    def reasoning(self) -> str | None:
        message = self.message
        return message.reasoning if message else None

    @property
    def tool_calls(self) -> list[ToolCall] | None:
        message = self.message
        return message.tool_calls if message else None


# ---------------------------------------------------------------------------
# Streaming chunks
# ---------------------------------------------------------------------------

class FunctionDelta(BaseModel):
    name: str | None = None
    arguments: str | None = None


class ToolCallDelta(BaseModel):
    """One fragment of a tool call.

    ``id``, ``type`` and ``function.name`` usually only arrive on the
    first fragment for an index; ``function.arguments`` is a piece of a
    JSON string that is concatenated across fragments.
    """

    index: int = 0
    id: str | None = None
    type: str | None = None
    function: FunctionDelta | None = None


class ChoiceDelta(BaseModel):
    """A partial message.  ``None`` means "nothing new in this chunk"."""

    role: str | None = None
    content: str | None = None
    reasoning: str | None = None
    refusal: str | None = None
    tool_calls: list[ToolCallDelta] | None = None

    @model_validator(mode="before")
    @classmethod
    def alias_reasoning(cls, data: Any) -> Any:
        return coalesce_reasoning(data)


class StreamChoice(BaseModel):
    index: int = 0
    delta: ChoiceDelta = Field(default_factory=ChoiceDelta)
    finish_reason: FinishReasonValue = None
    logprobs: Any = None


class ChatCompletionChunk(BaseModel):
    id: str = ""
    object: str = "chat.completion.chunk"
    created: int = 0
    model: str = ""
    choices: list[StreamChoice] = Field(default_factory=list)
    usage: Usage | None = None
    system_fingerprint: str | None = None
    service_tier: str | None = None

    @property
    def delta(self) -> ChoiceDelta | None:
        """Delta of the first choice."""
        if not self.choices:
            return None
        return self.choices[0].delta

    @property
    def content(self) -> str | None:
        delta = self.delta
        return delta.content if delta else None

    @property
    def reasoning(self) -> str | None:
        delta = self.delta
        return delta.reasoning if delta else None

    @property
    def tool_calls(self) -> list[ToolCallDelta] | None:
        delta = self.delta
        return delta.tool_calls if delta else None
