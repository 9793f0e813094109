"""Reasoning example: show a model's thinking separately from its answer.

Works with providers that stream ``reasoning`` (OpenRouter) as well as
``reasoning_content`` (DeepSeek, vLLM); both arrive on ``delta.reasoning``.

Usage:
    uv run --env-file=.env examples/reasoning_stream.py --model deepseek/deepseek-r1 "Is 1001 prime?"
"""

import argparse
import asyncio
import logging

from chatwire.chat import ChatParams
from chatwire.client import AsyncClient
from chatwire.errors import StreamError
from chatwire.message import user

DIM = "\033[2m"
RESET = "\033[0m"


async def main():
    parser = argparse.ArgumentParser(description="Reasoning stream")
    parser.add_argument("question")
    parser.add_argument("--model", default="deepseek/deepseek-r1")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    if args.debug:
        logging.basicConfig(level=logging.DEBUG)

    params = ChatParams(
        model=args.model,
        messages=[user(args.question)],
        stream_options={"include_usage": True},
    )

    async with AsyncClient.openrouter() as client:
        async with await client.chat.create_stream(params) as stream:
            async for item in stream:
                if isinstance(item, StreamError):
                    continue
                if item.reasoning:
                    print(f"{DIM}{item.reasoning}{RESET}", end="", flush=True)
                if item.content:
                    print(item.content, end="", flush=True)
                if item.usage:
                    print(f"\n\n[{item.usage.completion_tokens} completion tokens]")
    print()


if __name__ == "__main__":
    asyncio.run(main())
