"""Embeddings (``POST /embeddings``)."""

from __future__ import annotations

import base64
import struct
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from chatwire.config import RequestOptions
from chatwire.errors import ResponseDecodeError
from chatwire.instrumentation import completion_span, record_error, record_usage
from chatwire.interceptors import InterceptorChain
from chatwire.transport import HttpTransport
from chatwire.types import Usage


class EncodingFormat(str, Enum):
    FLOAT = "float"
    BASE64 = "base64"


class EmbeddingParams(BaseModel):
    model: str
    input: str | list[str] | list[int] | list[list[int]]
    encoding_format: EncodingFormat | None = None
    dimensions: int | None = None
    user: str | None = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, mode="json")


class Embedding(BaseModel):
    """One embedding vector.

    ``embedding`` is a list of floats, or a base64 string of packed
    little-endian float32 values when ``encoding_format="base64"`` was
    requested.
    """

    index: int = 0
    object: str = "embedding"
    embedding: list[float] | str = Field(default_factory=list)

    def vector(self) -> list[float]:
        """Return the embedding as floats, decoding base64 if needed.

        Raises:
            ValueError: The base64 payload is malformed.
        """
        if isinstance(self.embedding, list):
            return self.embedding
        raw = base64.b64decode(self.embedding, validate=True)
        if len(raw) % 4:
            raise ValueError(
                f"Base64 embedding is {len(raw)} bytes, not a multiple of 4"
            )
        return list(struct.unpack(f"<{len(raw) // 4}f", raw))


class EmbeddingResponse(BaseModel):
    object: str = "list"
    data: list[Embedding] = Field(default_factory=list)
    model: str = ""
    usage: Usage | None = None

    def vectors(self) -> list[list[float]]:
        """Decoded vectors, in input order."""
        return [e.vector() for e in sorted(self.data, key=lambda e: e.index)]


class Embeddings:
    """The ``embeddings`` endpoint."""

    def __init__(self, transport: HttpTransport):
        self._transport = transport
        self.interceptors = InterceptorChain()

    async def create(
        self,
        params: EmbeddingParams,
        options: RequestOptions | None = None,
    ) -> EmbeddingResponse:
        async with completion_span(
            self._transport.system, params.model, operation="embeddings",
        ) as span:
            try:
                data = await self._transport.request_json(
                    "POST", "embeddings", body=params.to_body(), options=options,
                    interceptors=self.interceptors,
                )
                try:
                    response = EmbeddingResponse.model_validate(data)
                except ValidationError as e:
                    raise ResponseDecodeError(str(data), "EmbeddingResponse", str(e)) from e
            except Exception as e:
                record_error(span, e)
                raise
            record_usage(span, response.usage, response.model)
        return response
