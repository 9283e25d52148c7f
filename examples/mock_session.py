#!/usr/bin/env python3
"""Session example with scripted model responses.

Runs without an API key. Shows:
- the approval gate (the first call is discarded, the rest approved)
- undo of a tool action
- a reload-required reply surviving a simulated restart

Run:
    python examples/mock_session.py
"""

import asyncio
import json
import logging
import os
import sys
import tempfile
from typing import Optional

# Ensure the project root is in the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from autopilot import (
    AgentResponse,
    AutopilotConfig,
    ChatCompletionProvider,
    Choice,
    Function,
    Message,
    Middleware,
    Role,
    SessionManager,
    ToolCall,
)
from tools import registry, scene


def tool_call(call_id: str, name: str, index: int = 0, **arguments) -> ToolCall:
    return ToolCall(id=call_id, index=index, function=Function(name=name, arguments=json.dumps(arguments)))


def assistant(content: str = "", calls: Optional[list[ToolCall]] = None) -> AgentResponse:
    return AgentResponse(
        model="mock",
        choices=[
            Choice(
                message=Message(role=Role.ASSISTANT, content=content, tool_calls=calls),
                finish_reason="tool_calls" if calls else "stop",
            )
        ],
    )


class MockProvider(ChatCompletionProvider):
    """Plays back predefined responses in order."""

    model_name = "mock"

    def __init__(self, responses: list[AgentResponse]):
        self.responses = list(responses)

    async def chat_completion(self, messages, tools, **kwargs):
        if not self.responses:
            return assistant("(Mock provider ran out of predefined responses)")
        return self.responses.pop(0)

    async def get_models(self):
        return ["mock"]


class ConsoleUI(Middleware):
    """Prints the transcript and answers approval prompts from a script."""

    def __init__(self, decisions: list[bool]):
        self.decisions = list(decisions)

    def on_message(self, event):
        message = event.message
        if message.tool_calls:
            for call in message.tool_calls:
                print(f"  🔧 {call.function.name}({call.function.argument_payload()})")
        elif message.content:
            print(f"  {message.role.value.upper()}: {message.content}")

    async def on_approval_request(self, event):
        allow = self.decisions.pop(0) if self.decisions else True
        print(f"  ❓ Run {event.tool_call.function.name}? {'yes' if allow else 'no'}")
        if allow:
            event.session.approve()
        else:
            event.session.discard()


async def run(home: str) -> int:
    config = AutopilotConfig(home=home)

    print("\n=== Turn 1: approval gate ===")
    session = SessionManager(registry, config=config)
    session.use(ConsoleUI(decisions=[False, True]))
    await session.setup(
        MockProvider(
            [
                assistant(
                    "I'll add a floor and a cube.",
                    [
                        tool_call("call-1", "create_object", 0, name="Floor", position={"x": 0, "y": 0, "z": 0}),
                        tool_call("call-2", "create_object", 1, name="Cube", position={"x": 0, "y": 1, "z": 0}),
                    ],
                ),
                assistant("The floor was not allowed, so I only created the cube."),
                assistant(
                    "I will add a rotation script.",
                    [tool_call("call-3", "write_script", file_name="Rotate.cs", source="// rotate 90 deg/s")],
                ),
            ]
        )
    )
    await session.send_prompt_async("Add a floor and a cube above it.")
    print(f"  Scene: {[obj['path'] for obj in scene.objects.values()]}")

    print("\n=== Undo ===")
    print(f"  {(await session.undo()).message}")
    print(f"  Scene: {[obj['path'] for obj in scene.objects.values()]}")

    print("\n=== Turn 2: reload-required tool ===")
    session.set_auto_approve(True)
    await session.send_prompt_async("Write a script that rotates the cube.")
    print(f"  Status: {session.state.status.value}, pending: {len(session.pending_responses)}")

    print("\n=== Restart: pending reply is delivered ===")
    restarted = SessionManager(registry, config=config)
    restarted.use(ConsoleUI(decisions=[]))
    await restarted.setup(MockProvider([assistant("The script compiled. The cube now rotates.")]))
    print(f"  Status: {restarted.state.status.value}, pending: {len(restarted.pending_responses)}")
    return 0


def main() -> int:
    logging.basicConfig(level=logging.WARNING)
    with tempfile.TemporaryDirectory() as home:
        return asyncio.run(run(home))


if __name__ == "__main__":
    sys.exit(main())
