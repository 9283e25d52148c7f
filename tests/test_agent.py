"""Tests for Agent history handling and single turns."""

import pytest

from autopilot.agent import Agent
from autopilot.exceptions import BackendError
from autopilot.messages import (
    AgentResponse,
    Choice,
    Function,
    History,
    Message,
    Role,
    ToolCall,
)
from autopilot.model import ChatCompletionProvider


# --- Test fixtures ---


def tool_call(call_id: str, name: str = "echo") -> ToolCall:
    return ToolCall(id=call_id, function=Function(name=name, arguments="{}"))


def reply(message: Message, finish_reason: str = "stop") -> AgentResponse:
    return AgentResponse(
        id="resp",
        model="fake",
        choices=[Choice(index=0, message=message, finish_reason=finish_reason)],
    )


class FakeProvider(ChatCompletionProvider):
    """Provider that returns a canned response and records requests."""

    model_name = "fake"

    def __init__(self, response=None):
        self.response = response or reply(Message(role=Role.ASSISTANT, content="Hello!"))
        self.requests = []

    async def chat_completion(self, messages, tools, **kwargs):
        self.requests.append((messages, tools))
        return self.response

    async def get_models(self):
        return ["fake"]


class FailingProvider(ChatCompletionProvider):
    async def chat_completion(self, messages, tools, **kwargs):
        raise BackendError("OpenAI API error: Rate limit exceeded")


# --- Tests ---


class TestAddMessage:
    def test_appends_to_both_views(self):
        agent = Agent(FakeProvider())
        agent.add_message(Message(role=Role.USER, content="hi"))
        assert len(agent.chat_history) == 1
        assert len(agent.cache_history) == 1

    def test_text_with_tool_calls_is_split(self):
        agent = Agent(FakeProvider())
        seen = []
        agent.subscribe(seen.append)

        agent.add_message(
            Message(role=Role.ASSISTANT, content="I will create it", tool_calls=[tool_call("c1")])
        )

        assert len(agent.cache_history) == 2
        text, calls = agent.cache_history
        assert text.content == "I will create it"
        assert text.tool_calls is None
        assert calls.content == ""
        assert calls.tool_calls[0].id == "c1"
        assert seen == [text, calls]

    def test_tool_calls_without_text_not_split(self):
        agent = Agent(FakeProvider())
        agent.add_message(Message(role=Role.ASSISTANT, tool_calls=[tool_call("c1")]))
        assert len(agent.cache_history) == 1

    def test_unsubscribe(self):
        agent = Agent(FakeProvider())
        seen = []
        agent.subscribe(seen.append)
        agent.unsubscribe(seen.append)
        agent.add_message(Message(role=Role.USER, content="hi"))
        assert seen == []


class TestTrimming:
    def test_bounded_view_respects_limit(self):
        agent = Agent(FakeProvider(), history_limit=5)
        for i in range(12):
            agent.add_message(Message(role=Role.USER, content=str(i)))

        assert len(agent.chat_history) == 5
        assert agent.chat_history[0].content == "7"
        assert len(agent.cache_history) == 12

    def test_user_assistant_pairs(self):
        agent = Agent(FakeProvider(), history_limit=20)
        agent.add_message(Message(role=Role.SYSTEM, content="prompt"))
        for i in range(25):
            agent.add_message(Message(role=Role.USER, content=f"question {i}"))
            agent.add_message(Message(role=Role.ASSISTANT, content=f"answer {i}"))

        assert len(agent.chat_history) <= 20
        assert agent.chat_history[0].role != Role.TOOL
        assert agent.chat_history[-1].content == "answer 24"
        assert len(agent.cache_history) == 51

    def test_tool_call_pairs(self):
        agent = Agent(FakeProvider(), history_limit=20)
        agent.add_message(Message(role=Role.SYSTEM, content="prompt"))
        for i in range(25):
            call = tool_call(f"c{i}")
            agent.add_message(Message(role=Role.ASSISTANT, content="", tool_calls=[call]))
            agent.add_message(Message.tool_reply(call, "ok"))

            assert len(agent.chat_history) <= 20
            assert agent.chat_history[0].role != Role.TOOL

        assert len(agent.cache_history) == 51

    def test_leading_tool_replies_dropped(self):
        agent = Agent(FakeProvider(), history_limit=3)
        call = tool_call("c1")
        agent.add_message(Message(role=Role.USER, content="go"))
        agent.add_message(Message(role=Role.ASSISTANT, content="", tool_calls=[call]))
        agent.add_message(Message.tool_reply(call, "one"))
        agent.add_message(Message.tool_reply(call, "two"))
        agent.add_message(Message(role=Role.ASSISTANT, content="done"))

        assert [m.role for m in agent.chat_history] == [Role.ASSISTANT]

    def test_history_constructor_trims(self):
        messages = [Message(role=Role.USER, content=str(i)) for i in range(30)]
        agent = Agent(FakeProvider(), History(messages=messages, tools=[tool_call("t")]), history_limit=10)
        assert len(agent.chat_history) == 10
        assert len(agent.cache_history) == 30
        assert len(agent.tool_list) == 1

    def test_load_messages_replaces_and_trims(self):
        agent = Agent(FakeProvider(), history_limit=4)
        agent.add_message(Message(role=Role.USER, content="old"))
        messages = [Message(role=Role.USER, content=str(i)) for i in range(6)]

        agent.load_messages(messages, [tool_call("t")])

        assert [m.content for m in agent.chat_history] == ["2", "3", "4", "5"]
        assert len(agent.cache_history) == 6
        assert agent.tool_list[0].id == "t"


class TestGetResponse:
    @pytest.mark.asyncio
    async def test_success_appends_reply(self):
        provider = FakeProvider()
        agent = Agent(provider, tools=[tool_call("t")])
        agent.add_message(Message(role=Role.USER, content="hi"))

        response = await agent.get_response()

        assert response.first_choice.message.content == "Hello!"
        assert agent.cache_history[-1].content == "Hello!"
        sent_messages, sent_tools = provider.requests[0]
        assert len(sent_messages) == 1
        assert len(sent_tools) == 1

    @pytest.mark.asyncio
    async def test_backend_failure_returns_none(self):
        agent = Agent(FailingProvider())
        agent.add_message(Message(role=Role.USER, content="hi"))

        assert await agent.get_response() is None
        assert len(agent.cache_history) == 1
        assert len(agent.chat_history) == 1

    @pytest.mark.asyncio
    async def test_empty_choices_returns_none(self):
        agent = Agent(FakeProvider(AgentResponse()))
        agent.add_message(Message(role=Role.USER, content="hi"))

        assert await agent.get_response() is None
        assert len(agent.cache_history) == 1

    @pytest.mark.asyncio
    async def test_get_models(self):
        assert await Agent(FakeProvider()).get_models() == ["fake"]
