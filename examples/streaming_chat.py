"""Streaming chat example: an interactive terminal chat.

Demonstrates:
- Building a client from the environment or a provider preset
- Printing content as it streams in
- Merging the stream into a message for the conversation history
- Optional console tracing of every request

Usage:
    uv run --env-file=.env examples/streaming_chat.py --provider openai --model gpt-4o-mini
    uv run examples/streaming_chat.py --provider vllm --url localhost:8000 --model Qwen/Qwen3-8B --trace
"""

import argparse
import asyncio

from chatwire.chat import ChatParams
from chatwire.client import AsyncClient
from chatwire.errors import StreamError
from chatwire.message import system, user
from chatwire.streaming import ChunkAccumulator

PROVIDERS = {
    "openai": lambda url: AsyncClient(),
    "openrouter": lambda url: AsyncClient.openrouter(),
    "vllm": lambda url: AsyncClient.vllm(*url.split(":")),
}


def make_client(provider: str, url: str | None) -> AsyncClient:
    if provider == "vllm" and not url:
        raise SystemExit("--url host:port is required for vllm provider")
    return PROVIDERS[provider](url)


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from chatwire.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


async def main():
    parser = argparse.ArgumentParser(description="Streaming chat")
    parser.add_argument("--provider", choices=PROVIDERS, default="openai")
    parser.add_argument("--model", default="gpt-4o-mini")
    parser.add_argument("--url", default=None)
    parser.add_argument("--trace", action="store_true")
    args = parser.parse_args()

    if args.trace:
        setup_tracing("streaming-chat")

    history = [system("You are a concise, friendly assistant.")]

    async with make_client(args.provider, args.url) as client:
        print("Streaming chat (Ctrl-D to quit)\n")
        while True:
            try:
                user_input = input("You: ")
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye!")
                break

            history.append(user(user_input))
            params = ChatParams(model=args.model, messages=history)

            acc = ChunkAccumulator()
            print("Assistant: ", end="", flush=True)
            async with await client.chat.create_stream(params) as stream:
                async for item in stream:
                    if isinstance(item, StreamError):
                        print(f"\n[skipped: {item}]")
                        continue
                    acc.feed_chunk(item)
                    print(item.content or "", end="", flush=True)
            print()

            message = acc.to_completion().message
            if message is not None:
                history.append(message.to_param())


if __name__ == "__main__":
    asyncio.run(main())
