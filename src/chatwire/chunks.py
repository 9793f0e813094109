"""Decoding of individual stream payloads into chunk models.

A payload that fails to decode does not end the stream: it becomes a
:class:`~chatwire.errors.ChunkDecodeError` *item* and the caller
decides whether to stop.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from chatwire.errors import APIStreamError, ChunkDecodeError
from chatwire.types import ChatCompletionChunk

logger = logging.getLogger(__name__)

ChunkT = TypeVar("ChunkT", bound=BaseModel)


def parse_chunk(
    payload: str,
    chunk_type: type[ChunkT] = ChatCompletionChunk,
) -> ChunkT:
    """Decode one ``data:`` payload.

    Raises:
        ChunkDecodeError: The payload is not JSON or does not match
            *chunk_type*.
        APIStreamError: The payload is a provider error object
            (``{"error": {...}}``).
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ChunkDecodeError(payload, str(e)) from e

    if not isinstance(data, dict):
        raise ChunkDecodeError(payload, f"expected a JSON object, got {type(data).__name__}")

    error = data.get("error")
    if error is not None and "choices" not in data:
        if isinstance(error, dict):
            code = error.get("code")
            raise APIStreamError(
                error.get("message") or "Unknown stream error",
                code=str(code) if code is not None else None,
                type=error.get("type"),
                payload=payload,
            )
        raise APIStreamError(str(error), payload=payload)

    try:
        return chunk_type.model_validate(data)
    except ValidationError as e:
        raise ChunkDecodeError(payload, str(e)) from e


async def parse_payloads(
    payloads: AsyncIterator[str],
    chunk_type: type[ChunkT] = ChatCompletionChunk,
) -> AsyncIterator[ChunkT | ChunkDecodeError | APIStreamError]:
    """Parse each payload, yielding item-level errors inline.

    Exactly one item is produced per payload pulled from *payloads*.
    """
    async for payload in payloads:
        try:
            item = parse_chunk(payload, chunk_type)
        except (ChunkDecodeError, APIStreamError) as e:
            logger.warning(f"Stream payload failed to decode: {e}")
            item = e
        yield item
