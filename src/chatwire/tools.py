import inspect
import json
import types
import typing
from typing import Any, Callable

from pydantic import BaseModel, Field

from chatwire.types import ToolCall


class FunctionDefinition(BaseModel):
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    strict: bool | None = None


class ToolParam(BaseModel):
    """A tool offered to the model in a chat request."""

    type: str = "function"
    function: FunctionDefinition

    def model_dump(self, **kwargs):
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)

    @classmethod
    def function_tool(
        cls,
        name: str,
        description: str = "",
        parameters: dict[str, Any] | None = None,
        strict: bool | None = None,
    ) -> "ToolParam":
        definition = FunctionDefinition(name=name, description=description, strict=strict)
        if parameters is not None:
            definition.parameters = parameters
        return cls(function=definition)


_JSON_TYPES = {
    str: 'string',
    int: 'integer',
    float: 'number',
    bool: 'boolean',
    type(None): 'null',
    dict: 'object',
    list: 'array',
    tuple: 'array',
    set: 'array',
}


def json_schema_for(annotation: Any) -> dict[str, Any]:
    """Map a Python annotation onto a (small) JSON schema fragment."""
    if annotation is inspect.Parameter.empty:
        return {"type": "string"}
    if annotation is Any:
        return {}
    origin = typing.get_origin(annotation)
    if origin in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return json_schema_for(args[0])
        return {"anyOf": [json_schema_for(a) for a in args]}
    if origin is typing.Literal:
        return {"enum": list(typing.get_args(annotation))}
    if origin in (list, tuple, set):
        schema: dict[str, Any] = {"type": "array"}
        args = typing.get_args(annotation)
        if args and args[0] is not Ellipsis:
            schema["items"] = json_schema_for(args[0])
        return schema
    if origin is dict:
        return {"type": "object"}
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation.model_json_schema()
    json_type = _JSON_TYPES.get(annotation)
    return {"type": json_type} if json_type else {"type": "string"}


_ARGS_HEADERS = ("Args:", "Arguments:", "Parameters:")


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Read per-parameter descriptions from a Google-style docstring.

    Continuation lines are folded into the preceding parameter.
    """
    doc = inspect.getdoc(func)
    if not doc:
        return {}
    descriptions: dict[str, str] = {}
    in_args = False
    current = None
    indent = None
    for line in doc.splitlines():
        stripped = line.strip()
        if stripped in _ARGS_HEADERS:
            in_args = True
            continue
        if not in_args:
            continue
        if not stripped:
            current = None
            continue
        line_indent = len(line) - len(line.lstrip())
        if line_indent == 0:
            # next section
            break
        if indent is None:
            indent = line_indent
        if line_indent == indent and ":" in stripped:
            name, _, text = stripped.partition(":")
            # "name (type): text"
            name = name.split("(")[0].strip()
            descriptions[name] = text.strip()
            current = name
        elif current is not None:
            descriptions[current] = f"{descriptions[current]} {stripped}".strip()
    return descriptions


def _summary(func: Callable) -> str:
    """The docstring without its Args section."""
    doc = inspect.getdoc(func) or ""
    lines = []
    for line in doc.splitlines():
        if line.strip() in _ARGS_HEADERS:
            break
        lines.append(line)
    return "\n".join(lines).strip()


class Tool(BaseModel):
    """A Python function exposed to the model as a tool.

    The JSON schema of the parameters is derived from the function's
    signature and type hints.  The description is the docstring, and
    parameter descriptions come from its ``Args:`` section.
    """

    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    model_config = {"arbitrary_types_allowed": True}

    def __init__(self, func: Callable, name: str | None = None, description: str | None = None):
        super().__init__(
            func=func,
            name=name or func.__name__,
            description=description if description is not None else _summary(func),
        )

    def parameters(self) -> dict[str, Any]:
        signature = inspect.signature(self.func)
        hints = typing.get_type_hints(self.func)
        descriptions = _parse_param_descriptions(self.func)
        properties = {}
        required = []
        for param_name, param in signature.parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            schema = json_schema_for(hints.get(param_name, param.annotation))
            if param_name in descriptions:
                schema["description"] = descriptions[param_name]
            properties[param_name] = schema
            if param.default is inspect.Parameter.empty:
                required.append(param_name)
        return {
            "type": "object",
            "properties": properties,
            "required": required,
        }

    def to_param(self) -> ToolParam:
        return ToolParam.function_tool(
            self.name, self.description, self.parameters(),
        )

    def model_dump(self, **kwargs):
        """The wire definition, not the model's own fields."""
        return self.to_param().model_dump(**kwargs)

    def model_dump_json(self, **kwargs):
        return json.dumps(self.model_dump())

    async def call(self, tool_call: ToolCall) -> Any:
        """Run the function with the arguments of a model tool call.

        Raises:
            json.JSONDecodeError: The arguments are not valid JSON.
        """
        result = self.func(**tool_call.parse_arguments())
        if inspect.isawaitable(result):
            result = await result
        return result

    async def call_to_str(self, tool_call: ToolCall) -> str:
        result = await self.call(tool_call)
        return result if isinstance(result, str) else json.dumps(result)


def tool(func: Callable) -> Tool:
    """Decorator turning a function into a :class:`Tool`."""
    return Tool(func)
