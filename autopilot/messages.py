import json
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class Role(str, Enum):
    SYSTEM = "system"
    DEVELOPER = "developer"
    ASSISTANT = "assistant"
    USER = "user"
    FUNCTION = "function"  # Deprecated, kept so old sessions still load
    TOOL = "tool"


class FinishReason(str, Enum):
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"


class Function(BaseModel):
    type: Optional[str] = None
    name: str
    description: Optional[str] = None
    parameters: Optional[dict[str, Any]] = None  # Model-facing schema (catalog)
    arguments: Optional[Union[str, dict[str, Any]]] = None  # Bound values (call)
    strict: bool = False

    def argument_payload(self) -> str:
        """Return the bound arguments as a raw JSON string."""
        if self.arguments is None:
            return "{}"
        if isinstance(self.arguments, str):
            return self.arguments
        return json.dumps(self.arguments)


class ToolCall(BaseModel):
    id: Optional[str] = None
    index: int = 0
    type: str = "function"
    function: Function


class Message(BaseModel):
    role: Role
    content: Optional[str] = None
    name: Optional[str] = None
    refusal: Optional[str] = None
    tool_calls: Optional[list[ToolCall]] = None
    tool_call_id: Optional[str] = None

    @classmethod
    def tool_reply(cls, tool_call: ToolCall, content: str) -> "Message":
        """Build the tool-role message answering ``tool_call``."""
        return cls(
            role=Role.TOOL,
            content=content,
            name=tool_call.function.name,
            tool_call_id=tool_call.id,
        )


class Choice(BaseModel):
    index: int = 0
    message: Message
    finish_reason: Optional[str] = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class AgentResponse(BaseModel):
    id: Optional[str] = None
    object_type: Optional[str] = None
    created: int = 0
    model: Optional[str] = None
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)

    @property
    def first_choice(self) -> Optional[Choice]:
        if self.choices:
            return self.choices[0]
        return None


class History(BaseModel):
    messages: list[Message] = Field(default_factory=list)
    tools: list[ToolCall] = Field(default_factory=list)
    model: Optional[str] = None


class SessionData(BaseModel):
    session_id: str
    history: History = Field(default_factory=History)


def unanswered_tool_calls(messages: list[Message]) -> list[ToolCall]:
    """Return the tail tool calls that have no reply yet.

    Only the trailing assistant tool-call message counts, i.e. one followed by
    nothing but tool-role replies. Calls are returned in request order.
    """
    position = len(messages) - 1
    while position >= 0 and messages[position].role == Role.TOOL:
        position -= 1
    if position < 0:
        return []

    message = messages[position]
    if message.role != Role.ASSISTANT or not message.tool_calls:
        return []

    answered = {reply.tool_call_id for reply in messages[position + 1 :]}
    return [call for call in message.tool_calls if call.id not in answered]
