#!/usr/bin/env python3
"""Interactive session against the OpenAI API.

Every tool call asks for confirmation on the console. Type ``/undo`` or
``/redo`` to revert or re-apply the last tool action, ``/quit`` to exit.

Requirements:
- OPENAI_API_KEY environment variable set

Run:
    python examples/minimal_session.py
"""

import asyncio
import logging
import os
import sys

# Ensure the project root is in the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from autopilot import AutopilotConfig, Middleware, OpenAIProvider, SessionManager
from tools import registry


class Console(Middleware):
    def on_message(self, event):
        message = event.message
        if event.replayed or not message.content:
            return
        if message.role.value in ("assistant", "tool"):
            print(f"{message.role.value}> {message.content}")

    async def on_approval_request(self, event):
        call = event.tool_call.function
        answer = await asyncio.to_thread(input, f"Run {call.name}({call.argument_payload()})? [y/N] ")
        if answer.strip().lower() in ("y", "yes"):
            event.session.approve()
        else:
            event.session.discard()


async def chat() -> int:
    config = AutopilotConfig.from_env()
    session = SessionManager(registry, config=config)
    session.use(Console())

    try:
        provider = OpenAIProvider()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        return 1

    await session.setup(provider)
    if session.agent is None:
        print("❌ Could not connect to the backend. Check your API key and network.")
        return 1

    print(f"Session {session.current_session_id} ({session.current_session_file})")
    while True:
        prompt = await asyncio.to_thread(input, "you> ")
        if prompt.strip() == "/quit":
            return 0
        if prompt.strip() == "/undo":
            print((await session.undo()).message)
        elif prompt.strip() == "/redo":
            print((await session.redo()).message)
        else:
            await session.send_prompt_async(prompt)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    try:
        return asyncio.run(chat())
    except (KeyboardInterrupt, EOFError):
        return 0


if __name__ == "__main__":
    sys.exit(main())
