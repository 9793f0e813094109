"""Reassembly of streamed chat completions.

Streamed responses arrive as :class:`~chatwire.types.ChatCompletionChunk`
objects, each carrying one :class:`~chatwire.types.StreamChoice` per
choice index.  :func:`combine` folds one of those fragments into the
state accumulated so far for its index; :class:`ChoiceAccumulator`
applies it across a whole stream and :class:`ChunkAccumulator` also
keeps the response metadata needed to rebuild a
:class:`~chatwire.types.ChatCompletion`.

Merge rules, per choice index:

* ``role`` and ``finish_reason``: the first non-null value wins.
* ``content``, ``reasoning`` and ``refusal``: concatenated in arrival
  order.  A missing field adds nothing.
* ``tool_calls``: keyed by the tool call's own ``index``.  ``id``,
  ``type`` and ``function.name`` are set once; ``function.arguments``
  is concatenated.  Arguments are never parsed here, since they are
  only valid JSON once the stream has finished.

Fragments that arrive after ``finish_reason`` keep accumulating.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from functools import reduce

from chatwire.types import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionMessage,
    Choice,
    FinishReason,
    Function,
    StreamChoice,
    ToolCall,
    ToolCallDelta,
    Usage,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccumulatedToolCall:
    """A tool call assembled from one or more fragments."""

    index: int
    id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments: str = ""

    def to_tool_call(self) -> ToolCall:
        return ToolCall(
            id=self.id or "",
            type=self.type or "function",
            function=Function(name=self.name or "", arguments=self.arguments),
        )


@dataclass(frozen=True)
class AccumulatedChoice:
    """Everything received so far for one choice index."""

    index: int
    role: str | None = None
    content: str = ""
    reasoning: str = ""
    refusal: str = ""
    tool_calls: tuple[AccumulatedToolCall, ...] = ()
    finish_reason: FinishReason | str | None = None

    def to_message(self) -> ChatCompletionMessage:
        """Build the message a non-streaming response would have carried.

        Empty text fields become ``None`` and a missing role defaults to
        ``"assistant"``, matching the non-streaming endpoint.
        """
        return ChatCompletionMessage(
            role=self.role or "assistant",
            content=self.content or None,
            reasoning=self.reasoning or None,
            refusal=self.refusal or None,
            tool_calls=[tc.to_tool_call() for tc in self.tool_calls] or None,
        )

    def to_choice(self) -> Choice:
        return Choice(
            index=self.index,
            message=self.to_message(),
            finish_reason=self.finish_reason or FinishReason.STOP,
        )


def _first(current, incoming, field: str, where: str):
    """First-write-wins for a scalar field."""
    if incoming is None or incoming == "":
        return current
    if current is None or current == "":
        return incoming
    if incoming != current:
        logger.debug(
            f"Ignoring {field} change on {where}: "
            f"keeping {current!r}, got {incoming!r}"
        )
    return current


def _combine_tool_call(
    acc: AccumulatedToolCall | None,
    delta: ToolCallDelta,
    choice_index: int,
) -> AccumulatedToolCall:
    if acc is None:
        acc = AccumulatedToolCall(index=delta.index)
    where = f"choice {choice_index} tool call {delta.index}"
    name = delta.function.name if delta.function else None
    arguments = delta.function.arguments if delta.function else None
    return AccumulatedToolCall(
        index=acc.index,
        id=_first(acc.id, delta.id, "id", where),
        type=_first(acc.type, delta.type, "type", where),
        name=_first(acc.name, name, "function name", where),
        arguments=acc.arguments + arguments if arguments else acc.arguments,
    )


def _merge_tool_calls(
    existing: tuple[AccumulatedToolCall, ...],
    deltas: list[ToolCallDelta] | None,
    choice_index: int,
) -> tuple[AccumulatedToolCall, ...]:
    if not deltas:
        return existing
    by_index = {tc.index: tc for tc in existing}
    for delta in deltas:
        by_index[delta.index] = _combine_tool_call(
            by_index.get(delta.index), delta, choice_index,
        )
    return tuple(by_index[i] for i in sorted(by_index))


def combine(
    accumulated: AccumulatedChoice | None,
    choice: StreamChoice,
) -> AccumulatedChoice:
    """Fold one streamed fragment into the accumulated state.

    Pure: neither argument is modified.  Pass ``None`` as *accumulated*
    for the first fragment of an index.  Folding a list of fragments
    with this function gives the same result as
    :class:`ChoiceAccumulator`.

    Raises:
        ValueError: *choice* belongs to a different index than
            *accumulated*.
    """
    if accumulated is None:
        accumulated = AccumulatedChoice(index=choice.index)
    elif accumulated.index != choice.index:
        raise ValueError(
            f"Cannot merge choice {choice.index} into choice {accumulated.index}"
        )

    where = f"choice {choice.index}"
    delta = choice.delta
    if accumulated.finish_reason is not None and _has_payload(choice):
        logger.debug(f"Fragment for {where} arrived after finish_reason")

    return AccumulatedChoice(
        index=accumulated.index,
        role=_first(accumulated.role, delta.role, "role", where),
        content=accumulated.content + (delta.content or ""),
        reasoning=accumulated.reasoning + (delta.reasoning or ""),
        refusal=accumulated.refusal + (delta.refusal or ""),
        tool_calls=_merge_tool_calls(
            accumulated.tool_calls, delta.tool_calls, choice.index,
        ),
        finish_reason=_first(
            accumulated.finish_reason, choice.finish_reason, "finish_reason", where,
        ),
    )


def _has_payload(choice: StreamChoice) -> bool:
    delta = choice.delta
    return bool(delta.content or delta.reasoning or delta.refusal or delta.tool_calls)


def fold_choices(choices: Iterable[StreamChoice]) -> AccumulatedChoice | None:
    """Fold the fragments of a single choice index, in order."""
    return reduce(combine, choices, None)


class ChoiceAccumulator:
    """Assembles complete choices from streaming fragments.

    Each choice index is merged independently of the others.
    """

    def __init__(self) -> None:
        self._choices: dict[int, AccumulatedChoice] = {}

    def feed(self, choice: StreamChoice) -> AccumulatedChoice:
        merged = combine(self._choices.get(choice.index), choice)
        self._choices[choice.index] = merged
        return merged

    def feed_chunk(self, chunk: ChatCompletionChunk) -> None:
        for choice in chunk.choices:
            self.feed(choice)

    def get(self, index: int) -> AccumulatedChoice | None:
        return self._choices.get(index)

    def finalize(self) -> list[AccumulatedChoice]:
        """Return accumulated choices in index order."""
        return [self._choices[i] for i in sorted(self._choices)]


class ChunkAccumulator(ChoiceAccumulator):
    """A :class:`ChoiceAccumulator` that also tracks response metadata.

    ``id``, ``created`` and ``model`` come from the first chunk that
    sets them; ``usage``, ``system_fingerprint`` and ``service_tier``
    from the last one.  Providers send usage on a final chunk with an
    empty ``choices`` list when ``stream_options.include_usage`` is set.
    """

    def __init__(self) -> None:
        super().__init__()
        self.id = ""
        self.created = 0
        self.model = ""
        self.usage: Usage | None = None
        self.system_fingerprint: str | None = None
        self.service_tier: str | None = None

    def feed_chunk(self, chunk: ChatCompletionChunk) -> None:
        self.id = self.id or chunk.id
        self.created = self.created or chunk.created
        self.model = self.model or chunk.model
        if chunk.usage is not None:
            self.usage = chunk.usage
        if chunk.system_fingerprint is not None:
            self.system_fingerprint = chunk.system_fingerprint
        if chunk.service_tier is not None:
            self.service_tier = chunk.service_tier
        super().feed_chunk(chunk)

    def to_completion(self) -> ChatCompletion:
        return ChatCompletion(
            id=self.id,
            created=self.created,
            model=self.model,
            choices=[c.to_choice() for c in self.finalize()],
            usage=self.usage,
            system_fingerprint=self.system_fingerprint,
            service_tier=self.service_tier,
        )


def merge_chunks(chunks: Iterable[ChatCompletionChunk]) -> ChatCompletion:
    """Merge already-received chunks into a :class:`ChatCompletion`."""
    acc = ChunkAccumulator()
    for chunk in chunks:
        acc.feed_chunk(chunk)
    return acc.to_completion()
