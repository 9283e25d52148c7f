"""Hook system for autopilot.

Lets the presentation layer (chat window, approval prompt, logs) follow a
session without the core knowing about it.

Architecture:
- HookRegistry is the CORE implementation
- Decorator (@hooks.on) and Middleware are convenience wrappers
- Everything goes through HookRegistry

Two delivery modes:
- ``notify``: synchronous, for ``on_message`` and ``on_chat_reset``. These
  fire from inside ``Agent.add_message`` so handlers must be plain functions.
- ``trigger``: awaited, for the remaining events. Handlers may be plain
  functions or coroutines.
"""

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class HookEvent(str, Enum):
    """Available hook points in a session."""

    ON_MESSAGE = "on_message"
    ON_CHAT_RESET = "on_chat_reset"

    ON_APPROVAL_REQUEST = "on_approval_request"
    BEFORE_TOOL_CALL = "before_tool_call"
    AFTER_TOOL_CALL = "after_tool_call"

    ON_TURN_END = "on_turn_end"


SYNC_EVENTS = {HookEvent.ON_MESSAGE.value, HookEvent.ON_CHAT_RESET.value}


# ============================================================================
# Hook Event Data Classes
# ============================================================================


@dataclass
class MessageEventData:
    """A message was appended to the conversation (or replayed on load)."""

    message: Any  # Message instance
    replayed: bool = False


@dataclass
class ChatResetEventData:
    """A session was created or loaded; the UI should clear its transcript."""

    session_id: Optional[str]
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ApprovalRequestEventData:
    """A tool call is waiting for the user to approve or discard it."""

    session: Any  # SessionManager instance
    tool_call: Any  # ToolCall object
    command: Any  # Command instance


@dataclass
class BeforeToolCallEventData:
    """Called right before a command executes."""

    tool_call: Any
    command: Any


@dataclass
class AfterToolCallEventData:
    """Called after a tool call produced its Response."""

    tool_call: Any
    response: Any  # Response object
    execution_time_ms: float


@dataclass
class TurnEndEventData:
    """Called after each backend turn has been handled."""

    response: Any  # AgentResponse object
    finish_reason: Optional[str]


# ============================================================================
# Hook Registry
# ============================================================================


class HookRegistry:
    """Central registry for all hooks.

    Supports both decorator-style and direct registration.

    Usage:
        hooks = HookRegistry()

        @hooks.on('on_message')
        def show(event):
            print(f"{event.message.role}: {event.message.content}")

        # Or direct registration
        async def ask_user(event):
            ...
        hooks.register_handler('on_approval_request', ask_user)
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {
            event.value: [] for event in HookEvent
        }

    def on(self, hook_name: str):
        """Decorator for registering hook handlers.

        Args:
            hook_name: Name of the hook (e.g., 'after_tool_call')

        Returns:
            Decorator function
        """

        def decorator(func: Callable) -> Callable:
            self.register_handler(hook_name, func)
            return func

        return decorator

    def register_handler(self, hook_name: str, handler: Callable) -> None:
        """Register a hook handler.

        Args:
            hook_name: Name of the hook
            handler: Function to call

        Raises:
            ValueError: If hook_name is not valid, or a coroutine function is
                registered for a synchronous hook
        """
        if hook_name not in self._handlers:
            valid_hooks = [e.value for e in HookEvent]
            raise ValueError(
                f"Invalid hook name '{hook_name}'. Valid hooks: {valid_hooks}"
            )
        if hook_name in SYNC_EVENTS and inspect.iscoroutinefunction(handler):
            raise ValueError(f"Hook '{hook_name}' is synchronous; handler must not be async")
        self._handlers[hook_name].append(handler)

    def notify(self, hook_name: str, event_data: Any) -> None:
        """Call all handlers of a synchronous hook."""
        for handler in list(self._handlers.get(hook_name, [])):
            try:
                handler(event_data)
            except Exception as e:
                # Log but don't fail execution
                logger.warning(f"Hook '{hook_name}' raised exception: {e}")

    async def trigger(self, hook_name: str, event_data: Any) -> None:
        """Execute all handlers for a hook, awaiting coroutine handlers.

        Args:
            hook_name: Name of the hook
            event_data: Event data to pass to handlers
        """
        for handler in list(self._handlers.get(hook_name, [])):
            try:
                result = handler(event_data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # Log but don't fail execution
                logger.warning(f"Hook '{hook_name}' raised exception: {e}")

    def has_handlers(self, hook_name: str) -> bool:
        """Check if hook has any registered handlers."""
        return len(self._handlers.get(hook_name, [])) > 0

    def clear(self) -> None:
        """Clear all handlers (useful for testing)."""
        for hook_name in self._handlers:
            self._handlers[hook_name] = []


# ============================================================================
# Middleware Base Class (Optional, for stateful handlers)
# ============================================================================


class Middleware:
    """Base class for middleware (stateful hook handlers).

    Override methods for hooks you want to handle. Only overridden methods
    are registered.

    Usage:
        class ChatPanel(Middleware):
            def on_message(self, event):
                self.lines.append(event.message.content)

        session.use(ChatPanel())
    """

    def on_message(self, event: MessageEventData) -> None:
        pass

    def on_chat_reset(self, event: ChatResetEventData) -> None:
        pass

    async def on_approval_request(self, event: ApprovalRequestEventData) -> None:
        pass

    async def before_tool_call(self, event: BeforeToolCallEventData) -> None:
        pass

    async def after_tool_call(self, event: AfterToolCallEventData) -> None:
        pass

    async def on_turn_end(self, event: TurnEndEventData) -> None:
        pass

    def register(self, hooks: HookRegistry) -> None:
        """Register every overridden handler on ``hooks``."""
        for event in HookEvent:
            handler = getattr(self, event.value)
            if getattr(type(self), event.value) is not getattr(Middleware, event.value):
                hooks.register_handler(event.value, handler)
