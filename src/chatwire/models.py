"""Model listing (``GET /models``)."""

from __future__ import annotations

from urllib.parse import quote

from pydantic import BaseModel, Field, ValidationError

from chatwire.config import RequestOptions
from chatwire.errors import ResponseDecodeError
from chatwire.interceptors import InterceptorChain
from chatwire.transport import HttpTransport


class Model(BaseModel):
    id: str
    object: str = "model"
    created: int | None = None
    owned_by: str | None = None


class ModelList(BaseModel):
    object: str = "list"
    data: list[Model] = Field(default_factory=list)

    def ids(self) -> list[str]:
        return [m.id for m in self.data]


class Models:
    """The ``models`` endpoint."""

    def __init__(self, transport: HttpTransport):
        self._transport = transport
        self.interceptors = InterceptorChain()

    async def list(self, options: RequestOptions | None = None) -> ModelList:
        data = await self._transport.request_json(
            "GET", "models", options=options, interceptors=self.interceptors,
        )
        try:
            return ModelList.model_validate(data)
        except ValidationError as e:
            raise ResponseDecodeError(str(data), "ModelList", str(e)) from e

    async def retrieve(
        self, model_id: str, options: RequestOptions | None = None,
    ) -> Model:
        # Ids such as "org/model" keep their slash.
        data = await self._transport.request_json(
            "GET", f"models/{quote(model_id, safe='/')}", options=options,
            interceptors=self.interceptors,
        )
        try:
            return Model.model_validate(data)
        except ValidationError as e:
            raise ResponseDecodeError(str(data), "Model", str(e)) from e
