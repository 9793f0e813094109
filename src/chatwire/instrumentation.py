"""Optional OpenTelemetry tracing for chatwire requests.

Call ``instrument()`` once at startup to emit a client span per API
call.  Requires ``opentelemetry-api``; without it, and until
``instrument()`` is called, requests carry no tracing overhead.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "chatwire") -> None:
    """Enable OpenTelemetry tracing for chatwire API calls.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install chatwire[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        from chatwire.instrumentation import instrument
        instrument()

    Spans follow the `GenAI Semantic Conventions
    <https://opentelemetry.io/docs/specs/semconv/gen-ai/>`_.

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install chatwire[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured, spans will be discarded. "
            "Set up a TracerProvider to export traces."
        )
    else:
        logger.info("chatwire instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


def is_instrumented() -> bool:
    return _tracer is not None


@asynccontextmanager
async def completion_span(
    system: str, model: str, operation: str = "chat", streaming: bool = False
):
    """Wrap one API call in a client span named ``{operation} {model}``.

    For streamed calls the span covers establishing the response, not
    reading its body.
    """
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"{operation} {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": operation,
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
            "gen_ai.request.streaming": streaming,
        },
    ) as span:
        yield span


def record_usage(span, usage, response_model: str | None = None):
    """Set token-usage and response-model attributes on a span."""
    if span is None:
        return
    if usage is not None:
        if getattr(usage, "prompt_tokens", None) is not None:
            span.set_attribute("gen_ai.usage.input_tokens", usage.prompt_tokens)
        if getattr(usage, "completion_tokens", None) is not None:
            span.set_attribute(
                "gen_ai.usage.output_tokens", usage.completion_tokens,
            )
    if response_model:
        span.set_attribute("gen_ai.response.model", response_model)


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    Sets ``error.type`` per GenAI semantic conventions, using the HTTP
    status code for API status errors.  No-op when *span* is ``None``.
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    status_code = getattr(exception, "status_code", None)
    span.set_attribute(
        "error.type",
        str(status_code) if status_code is not None else type(exception).__qualname__,
    )
