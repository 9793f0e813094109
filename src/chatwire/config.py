"""Client and per-request configuration."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, Field, field_validator

from chatwire.errors import ConfigError

DEFAULT_BASE_URL = "https://api.openai.com/v1"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class ClientConfig(BaseModel):
    """Settings shared by every request a client makes.

    Args:
        api_key: Bearer token sent with every request.
        base_url: API root, e.g. ``https://api.openai.com/v1``.
        timeout: Total request timeout in seconds.
        connect_timeout: Connection timeout in seconds.
        max_retries: Attempts per request, including the first.
        user_agent: Overrides the default ``User-Agent`` header.
        default_headers: Extra headers sent with every request.
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 300.0
    connect_timeout: float = 10.0
    max_retries: int = 5
    user_agent: str | None = None
    default_headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientConfig":
        """Build a config from ``OPENAI_*`` environment variables.

        Reads ``OPENAI_API_KEY`` (required), ``OPENAI_BASE_URL``,
        ``OPENAI_TIMEOUT``, ``OPENAI_CONNECT_TIMEOUT``,
        ``OPENAI_RETRY_COUNT`` and ``OPENAI_USER_AGENT``.  Keyword
        arguments take precedence over the environment.

        Raises:
            ConfigError: The API key is missing or a numeric variable
                cannot be parsed.
        """
        values: dict[str, Any] = {}
        api_key = os.getenv("OPENAI_API_KEY")
        if api_key:
            values["api_key"] = api_key
        base_url = os.getenv("OPENAI_BASE_URL")
        if base_url:
            values["base_url"] = base_url
        for var, key, parse in (
            ("OPENAI_TIMEOUT", "timeout", float),
            ("OPENAI_CONNECT_TIMEOUT", "connect_timeout", float),
            ("OPENAI_RETRY_COUNT", "max_retries", int),
        ):
            raw = os.getenv(var)
            if raw:
                try:
                    values[key] = parse(raw)
                except ValueError as e:
                    raise ConfigError(f"Invalid value for {var}: {raw!r}") from e
        user_agent = os.getenv("OPENAI_USER_AGENT")
        if user_agent:
            values["user_agent"] = user_agent

        values.update({k: v for k, v in overrides.items() if v is not None})
        if not values.get("api_key"):
            raise ConfigError(
                "The OPENAI_API_KEY environment variable is not set."
            )
        return cls(**values)

    @classmethod
    def openrouter(cls, api_key: str | None = None, **kwargs: Any) -> "ClientConfig":
        """Config for OpenRouter; reads ``OPENROUTER_API_KEY``."""
        if not api_key:
            api_key = os.getenv("OPENROUTER_API_KEY")
        if not api_key:
            raise ConfigError(
                "The OPENROUTER_API_KEY environment variable is not set."
            )
        kwargs.setdefault("timeout", 180.0)
        return cls(api_key=api_key, base_url=OPENROUTER_BASE_URL, **kwargs)

    @classmethod
    def vllm(cls, url: str, port: int, **kwargs: Any) -> "ClientConfig":
        """Config for a local vLLM server, which ignores the API key."""
        return cls(api_key="DUMMY", base_url=f"http://{url}:{port}/v1", **kwargs)


class RequestOptions(BaseModel):
    """Per-call overrides, applied before the request is sent.

    Args:
        max_retries: Overrides :attr:`ClientConfig.max_retries`.
        timeout: Overrides :attr:`ClientConfig.timeout`, in seconds.
        user_agent: Overrides the ``User-Agent`` header.
        extra_headers: Merged over the client's headers.
        extra_query: Added to the URL query string.
        extra_body: Merged over the JSON request body.
    """

    max_retries: int | None = None
    timeout: float | None = None
    user_agent: str | None = None
    extra_headers: dict[str, str] = Field(default_factory=dict)
    extra_query: dict[str, Any] = Field(default_factory=dict)
    extra_body: dict[str, Any] = Field(default_factory=dict)
