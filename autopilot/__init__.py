from autopilot.adaptors.openai import OpenAIProvider
from autopilot.agent import Agent
from autopilot.config import DEFAULT_SYSTEM_PROMPT, AutopilotConfig
from autopilot.dispatcher import ToolManager
from autopilot.exceptions import (
    AutopilotError,
    BackendError,
    SessionLoadError,
    ToolRegistrationError,
    ToolValidationError,
)
from autopilot.hooks import (
    AfterToolCallEventData,
    ApprovalRequestEventData,
    BeforeToolCallEventData,
    ChatResetEventData,
    HookEvent,
    HookRegistry,
    MessageEventData,
    Middleware,
    TurnEndEventData,
)
from autopilot.messages import (
    AgentResponse,
    Choice,
    FinishReason,
    Function,
    History,
    Message,
    Role,
    SessionData,
    ToolCall,
    Usage,
    unanswered_tool_calls,
)
from autopilot.model import ChatCompletionProvider
from autopilot.registry import ToolMetadata, ToolRegistry
from autopilot.schema import (
    ParamType,
    ToolParam,
    Vector3,
    derive_schema,
    enum_values,
    params_from_model,
)
from autopilot.session import SessionManager, SessionState, SessionStatus
from autopilot.storage import (
    JsonPreferenceStore,
    MemoryPreferenceStore,
    PreferenceStore,
    SessionStore,
)
from autopilot.tools import Command, ObjectRef, PendingResponse, Response, ToolInput

__all__ = [
    # Core
    "Agent",
    "AutopilotConfig",
    "ChatCompletionProvider",
    "DEFAULT_SYSTEM_PROMPT",
    "OpenAIProvider",
    "SessionManager",
    "SessionState",
    "SessionStatus",
    "ToolManager",
    "ToolMetadata",
    "ToolRegistry",
    # Messages
    "AgentResponse",
    "Choice",
    "FinishReason",
    "Function",
    "History",
    "Message",
    "Role",
    "SessionData",
    "ToolCall",
    "Usage",
    "unanswered_tool_calls",
    # Tools
    "Command",
    "ObjectRef",
    "PendingResponse",
    "Response",
    "ToolInput",
    "ParamType",
    "ToolParam",
    "Vector3",
    "derive_schema",
    "enum_values",
    "params_from_model",
    # Storage
    "JsonPreferenceStore",
    "MemoryPreferenceStore",
    "PreferenceStore",
    "SessionStore",
    # Hooks
    "HookRegistry",
    "HookEvent",
    "Middleware",
    # Hook Event Data
    "MessageEventData",
    "ChatResetEventData",
    "ApprovalRequestEventData",
    "BeforeToolCallEventData",
    "AfterToolCallEventData",
    "TurnEndEventData",
    # Exceptions
    "AutopilotError",
    "BackendError",
    "SessionLoadError",
    "ToolRegistrationError",
    "ToolValidationError",
]
