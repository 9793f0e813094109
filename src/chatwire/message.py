from enum import Enum
from typing import Any

from pydantic import BaseModel, field_serializer

from chatwire.types import ToolCall


class MessageRole(Enum):
    SYSTEM = "system"
    DEVELOPER = "developer"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


class Message(BaseModel):
    """A conversation message sent in a request.

    ``content`` is either plain text or a list of content parts
    (``{"type": "text", ...}``, ``{"type": "image_url", ...}``).
    Unset optional fields are left out of the request body.
    """

    role: MessageRole
    content: str | list[dict[str, Any]] | None = None
    name: str | None = None

    @field_serializer('role')
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    def model_dump(self, **kwargs):
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)


class SystemMessage(Message):
    role: MessageRole = MessageRole.SYSTEM
    content: str | list[dict[str, Any]]


class UserMessage(Message):
    role: MessageRole = MessageRole.USER
    content: str | list[dict[str, Any]]


class AssistantMessage(Message):
    role: MessageRole = MessageRole.ASSISTANT
    refusal: str | None = None
    tool_calls: list[ToolCall] | None = None

    @field_serializer("tool_calls")
    def serialize_tool_calls(self, tool_calls: list[ToolCall] | None) -> list[dict] | None:
        if tool_calls is None:
            return None
        return [
            {
                "id": t.id,
                "type": "function",
                "function": {
                    "arguments": t.function.arguments,
                    "name": t.function.name
                }
            }
            for t in tool_calls
        ]


class ToolMessage(Message):
    role: MessageRole = MessageRole.TOOL
    content: str | list[dict[str, Any]]
    tool_call_id: str


def system(content: str) -> SystemMessage:
    return SystemMessage(content=content)


def user(content: str | list[dict[str, Any]]) -> UserMessage:
    return UserMessage(content=content)


def assistant(content: str) -> AssistantMessage:
    return AssistantMessage(content=content)


def tool_result(tool_call_id: str, content: str) -> ToolMessage:
    return ToolMessage(tool_call_id=tool_call_id, content=content)


def dump_messages(messages: list) -> list[dict[str, Any]]:
    """Serialize a mixed list of :class:`Message` objects and dicts."""
    return [
        m.model_dump() if isinstance(m, Message) else dict(m)
        for m in messages
    ]
