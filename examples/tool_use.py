"""Tool use example: streamed tool calls executed in a loop.

Demonstrates:
- Defining tools with @tool
- Collecting a stream whose tool-call arguments arrive in pieces
- Running the requested tools and sending their results back

Usage:
    uv run --env-file=.env examples/tool_use.py --model gpt-4o-mini "What's the weather in Oslo and Lima?"
"""

import argparse
import asyncio
import random

from chatwire.chat import ChatParams
from chatwire.client import AsyncClient
from chatwire.message import system, tool_result, user
from chatwire.tools import tool


@tool
def get_weather(city: str, unit: str = "celsius"):
    """Get the current weather for a city.

    Args:
        city: City name, e.g. "Oslo".
        unit: "celsius" or "fahrenheit".
    """
    temp = random.randint(-5, 30)
    if unit == "fahrenheit":
        temp = temp * 9 // 5 + 32
    return {"city": city, "temperature": temp, "unit": unit}


TOOLS = {t.name: t for t in [get_weather]}


async def main():
    parser = argparse.ArgumentParser(description="Tool use")
    parser.add_argument("question")
    parser.add_argument("--model", default="gpt-4o-mini")
    parser.add_argument("--max-turns", type=int, default=5)
    args = parser.parse_args()

    messages = [
        system("Answer using the tools when they help."),
        user(args.question),
    ]

    async with AsyncClient() as client:
        for _ in range(args.max_turns):
            params = ChatParams(
                model=args.model,
                messages=messages,
                tools=list(TOOLS.values()),
                parallel_tool_calls=True,
            )
            result = await (await client.chat.create_stream(params)).collect()
            for error in result.errors:
                print(f"[skipped chunk: {error}]")

            message = result.message
            if message is None:
                break
            messages.append(message.to_param())
            if not message.has_tool_calls():
                print(message.content)
                break

            for call in message.tool_calls:
                print(f"-> {call.function.name}({call.function.arguments})")
                output = await TOOLS[call.function.name].call_to_str(call)
                messages.append(tool_result(call.id, output))


if __name__ == "__main__":
    asyncio.run(main())
