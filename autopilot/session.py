"""Session lifecycle and the multi-turn tool loop.

A SessionManager owns one active session: its Agent, its history file, the
approval gate in front of tool execution, and the queue of tool responses
that must wait for the host environment to reload.

Interruption protocol:
1. A tool returns a Response with ``reload_required``. Its reply is not
   appended; the (call, response) pair is queued in the preference store.
2. The host environment is refreshed and the process may be torn down.
3. On the next ``setup`` the queued replies are appended to the restored
   history, the queue is cleared, and the turn loop resumes without user
   input.
"""

import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from pydantic import TypeAdapter, ValidationError

from autopilot.agent import Agent
from autopilot.config import AutopilotConfig
from autopilot.dispatcher import ToolManager
from autopilot.exceptions import SessionLoadError
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
    FinishReason,
    History,
    Message,
    Role,
    SessionData,
    ToolCall,
    unanswered_tool_calls,
)
from autopilot.model import ChatCompletionProvider
from autopilot.registry import ToolRegistry
from autopilot.storage import JsonPreferenceStore, PreferenceStore, SessionStore
from autopilot.tools import Command, PendingResponse, Response

logger = logging.getLogger(__name__)

PREF_RECENT_SESSION = "recent_session_id"
PREF_QUEUED_RESPONSES = "queued_responses"

NOT_ALLOWED_MESSAGE = "User did not allow this function to run."

_pending_adapter = TypeAdapter(list[PendingResponse])


class SessionStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    CREATING_AGENT = "creating_agent"
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    AWAITING_TOOL_APPROVAL = "awaiting_tool_approval"
    EXECUTING_TOOLS = "executing_tools"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass
class SessionState:
    status: SessionStatus = SessionStatus.UNINITIALIZED

    # User controlled
    allow_all_tools: bool = False

    # Approval gate, reset after every tool call
    is_tool_exec_waiting: bool = False
    exec_waiting_command: bool = False
    discard_waiting_command: bool = False

    is_session_running: bool = False
    is_main_agent_creation_failed: bool = False
    is_network_reachable: bool = False

    def reset_gate(self) -> None:
        self.is_tool_exec_waiting = False
        self.exec_waiting_command = False
        self.discard_waiting_command = False


class SessionManager:
    """Drives one conversation with tool calls, approval and recovery.

    Args:
        registry: Tools available to the model.
        config: Settings; defaults to ``AutopilotConfig()``.
        preferences: Key/value store for the current session id and the
            pending response queue. Defaults to a JSON file from ``config``.
        sessions: Session file directory. Defaults to ``config.session_dir``.
        tool_manager: Dispatcher keeping undo/redo history.
        hooks: Hook registry the presentation layer subscribes to.
        refresh_environment: Host callback (sync or async) that applies
            pending environment changes; it may restart the process.
        network_check: Returns False when the network is known to be down.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: Optional[AutopilotConfig] = None,
        preferences: Optional[PreferenceStore] = None,
        sessions: Optional[SessionStore] = None,
        tool_manager: Optional[ToolManager] = None,
        hooks: Optional[HookRegistry] = None,
        refresh_environment: Optional[Callable[[], Any]] = None,
        network_check: Optional[Callable[[], bool]] = None,
    ):
        self.registry = registry
        self.config = config or AutopilotConfig()
        self.preferences = preferences or JsonPreferenceStore(self.config.preferences_path)
        self.sessions = sessions or SessionStore(self.config.session_dir)
        self.tool_manager = tool_manager or ToolManager()
        self.hooks = hooks or HookRegistry()
        self.refresh_environment = refresh_environment
        self.network_check = network_check or (lambda: True)

        self.state = SessionState(allow_all_tools=self.config.auto_approve)
        self.provider: Optional[ChatCompletionProvider] = None
        self.agent: Optional[Agent] = None
        self.session_data: Optional[SessionData] = None
        self._gate_signal: Optional[asyncio.Event] = None
        self._interface_closed = False

    # ------------------------------------------------------------------
    # Persistent slots
    # ------------------------------------------------------------------

    @property
    def current_session_id(self) -> str:
        return self.preferences.get_string(PREF_RECENT_SESSION)

    def _set_current_session_id(self, session_id: str) -> None:
        self.preferences.set_string(PREF_RECENT_SESSION, session_id)

    @property
    def current_session_file(self) -> Optional[Path]:
        if not self.current_session_id:
            return None
        return self.sessions.path_for(self.current_session_id)

    @property
    def pending_responses(self) -> list[PendingResponse]:
        raw = self.preferences.get_string(PREF_QUEUED_RESPONSES)
        if not raw:
            return []
        try:
            return _pending_adapter.validate_json(raw)
        except ValidationError as e:
            logger.error("Discarding unreadable pending responses: %s", e)
            return []

    @pending_responses.setter
    def pending_responses(self, value: Optional[list[PendingResponse]]) -> None:
        if not value:
            self.preferences.set_string(PREF_QUEUED_RESPONSES, "")
            return
        self.preferences.set_string(
            PREF_QUEUED_RESPONSES,
            _pending_adapter.dump_json(value, exclude_none=True).decode(),
        )

    def use(self, middleware: Middleware) -> None:
        middleware.register(self.hooks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def setup(self, provider: Optional[ChatCompletionProvider]) -> None:
        """Start (or restart) the session with ``provider``.

        Loads the most recent session, or creates one, then delivers any tool
        responses queued before the last environment reload and resumes the
        turn loop. Can be called again to switch provider or retry after a
        connection failure.
        """
        if provider is None:
            self.state.is_main_agent_creation_failed = True
            self.state.is_network_reachable = True
            self.state.status = SessionStatus.FAILED
            logger.error("No chat completion provider configured")
            return

        self.provider = provider
        self._interface_closed = False

        if not self.current_session_id:
            await self.create_new_session()
        else:
            await self.load_session(self.current_session_id)

        await self.resume_pending()

    async def resume_pending(self) -> None:
        """Deliver queued tool responses and continue the conversation."""
        pending = self.pending_responses
        if self.agent is None or not pending:
            return

        expected = {call.id for call in unanswered_tool_calls(self.agent.cache_history)}
        replies = [entry for entry in pending if entry.tool_call.id in expected]
        if len(replies) < len(pending):
            logger.warning(
                "Dropping %d pending response(s) with no matching tool call in session %s",
                len(pending) - len(replies),
                self.current_session_id,
            )

        for entry in replies:
            self.agent.add_message(Message.tool_reply(entry.tool_call, entry.response.to_content()))

        # Replies are on disk now; the queue is consumed exactly once
        self.pending_responses = None

        if replies:
            logger.info("Resuming session after %d pending tool response(s)", len(replies))
            await self._recover_interrupted_turn()

    async def create_main_agent(self, history: History) -> bool:
        """Build the Agent and probe the backend.

        Returns:
            True if the backend answered the model listing.
        """
        self.state.status = SessionStatus.CREATING_AGENT

        if not self.network_check():
            self.state.is_network_reachable = False
            self.state.is_main_agent_creation_failed = True
            self.state.status = SessionStatus.FAILED
            self.agent = None
            logger.error("Autopilot connection failed: network is not reachable")
            return False

        self.state.is_network_reachable = True

        try:
            agent = Agent(self.provider, history, self.config.history_limit)
            models = await agent.get_models()
        except Exception as e:
            logger.error("Autopilot connection failed: %s", e)
            self.state.is_main_agent_creation_failed = True
            self.state.status = SessionStatus.FAILED
            self.agent = None
            return False

        logger.info("Autopilot connected (%d models available)", len(models))
        self.agent = agent
        self.state.is_main_agent_creation_failed = False
        self.state.reset_gate()
        self.state.status = SessionStatus.IDLE
        return True

    async def create_new_session(self) -> None:
        session_id = str(uuid.uuid4())
        self._set_current_session_id(session_id)
        self.sessions.create(session_id)

        self.session_data = SessionData(
            session_id=session_id,
            history=History(
                messages=[Message(role=Role.SYSTEM, content=self.config.system_prompt)],
                tools=self.registry.get_registered_tools(),
                model=self.provider.model_name if self.provider else None,
            ),
        )

        if not await self.create_main_agent(self.session_data.history):
            logger.error("Failed to create main agent. Check the provider credentials.")
            return

        self.agent.subscribe(self._register_message)
        self.save_session()
        self.state.is_session_running = True
        self.hooks.notify(HookEvent.ON_CHAT_RESET.value, ChatResetEventData(session_id))
        logger.info("New session created with ID: %s", session_id)

    async def load_session(self, session_id: str) -> None:
        await self._load_session_on_path(self.sessions.path_for(session_id))

    async def load_session_from_file(self, path: Union[str, Path]) -> None:
        await self._load_session_on_path(Path(path))

    async def _load_session_on_path(self, path: Path) -> None:
        if not path.exists() or path.stat().st_size == 0:
            logger.error("Session file not found at path: %s", path)
            await self.create_new_session()
            return

        try:
            session_data = self.sessions.load(path)
        except SessionLoadError as e:
            logger.error("Failed to load session: %s", e)
            return

        self.session_data = session_data
        self._set_current_session_id(session_data.session_id)

        if not await self.create_main_agent(session_data.history):
            return

        self.hooks.notify(HookEvent.ON_CHAT_RESET.value, ChatResetEventData(session_data.session_id))
        self.agent.subscribe(self._register_message)
        self.agent.load_messages(session_data.history.messages, session_data.history.tools)

        for message in session_data.history.messages:
            self.hooks.notify(HookEvent.ON_MESSAGE.value, MessageEventData(message, replayed=True))

        self.state.is_session_running = True
        logger.info("Session loaded with ID: %s", session_data.session_id)

        # Pending responses are delivered by resume_pending instead
        if not self.pending_responses:
            await self._recover_interrupted_turn()

    async def _recover_interrupted_turn(self) -> None:
        """Finish a turn the previous process did not complete."""
        messages = self.agent.cache_history
        if not messages:
            return

        unanswered = unanswered_tool_calls(messages)
        if unanswered:
            logger.info("Running %d unanswered tool call(s) from the previous run", len(unanswered))
            if await self._handle_tool_calls(unanswered):
                await self.send_prompt_async("", is_tool_reply=True)
        elif messages[-1].role == Role.TOOL:
            # The environment reloaded after the reply was written
            await self.send_prompt_async("", is_tool_reply=True)

    def save_session(self) -> None:
        """Write the whole conversation to the current session file."""
        if self.agent is None or self.session_data is None or not self.agent.cache_history:
            logger.warning("No messages to save for the current session.")
            return

        self.session_data.history.messages = list(self.agent.cache_history)
        try:
            self.sessions.save(self.session_data)
        except OSError as e:
            logger.error("Failed to save session: %s", e)

    def _register_message(self, message: Message) -> None:
        # Write-through: the process may die before the next append
        self.save_session()
        self.hooks.notify(HookEvent.ON_MESSAGE.value, MessageEventData(message))

    def clear_session(self) -> None:
        """Forget the active session and reset every flag."""
        self.hooks.clear()
        self.agent = None
        self.session_data = None
        self._gate_signal = None
        self._interface_closed = False
        self.state = SessionState()

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    async def send_prompt_async(
        self, user_prompt: str, is_tool_reply: bool = False
    ) -> Optional[AgentResponse]:
        """Send a user prompt (or tool replies) and run the loop to completion.

        Returns:
            The last backend response, or None if nothing was sent or the
            backend failed.
        """
        if self.agent is None:
            logger.error("Main agent is not initialized.")
            return None

        if not is_tool_reply:
            user_prompt = (user_prompt or "").strip()
            if not user_prompt:
                return None
            self.agent.add_message(Message(role=Role.USER, content=user_prompt))

        last_response = None
        while True:
            self.state.status = SessionStatus.AWAITING_MODEL
            response = await self.agent.get_response()

            if response is None:
                logger.error("Failed to get response from the main agent.")
                self.state.status = SessionStatus.IDLE
                return None

            last_response = response
            finish_reason = response.first_choice.finish_reason
            tool_calls = response.first_choice.message.tool_calls or []
            requires_action = False

            if finish_reason == FinishReason.LENGTH:
                logger.info("Incomplete model output: token limit reached.")
            elif finish_reason == FinishReason.CONTENT_FILTER:
                logger.info("Model output omitted by a content filter.")
            elif finish_reason not in (FinishReason.STOP, FinishReason.TOOL_CALLS):
                logger.info("Unknown finish reason: %s", finish_reason)

            # Every appended tool call gets a reply, whatever the finish reason
            if tool_calls:
                if finish_reason != FinishReason.TOOL_CALLS:
                    logger.info(
                        "Running %d tool call(s) from a turn that finished with '%s'",
                        len(tool_calls),
                        finish_reason,
                    )
                requires_action = await self._handle_tool_calls(tool_calls)

            await self.hooks.trigger(
                HookEvent.ON_TURN_END.value, TurnEndEventData(response, finish_reason)
            )

            if not requires_action:
                break

        if self.state.status != SessionStatus.INTERRUPTED:
            self.state.status = SessionStatus.IDLE
        return last_response

    async def _handle_tool_calls(self, tool_calls: list[ToolCall]) -> bool:
        """Run a batch of tool calls in order and record their results.

        Returns:
            True if replies were appended and the backend should be asked
            again; False if nothing was appended or a reload is pending.
        """
        pending: list[PendingResponse] = []
        requires_action = False

        for tool_call in sorted(tool_calls, key=lambda call: call.index):
            result = await self.execute_tool_call(tool_call)

            if result.reload_required:
                pending.append(PendingResponse(tool_call=tool_call, response=result))
                self.pending_responses = pending
            else:
                self.agent.add_message(Message.tool_reply(tool_call, result.to_content()))
                requires_action = True

        if pending:
            self.state.status = SessionStatus.INTERRUPTED
            logger.info("%d tool response(s) queued until the environment reloads", len(pending))
            await self._refresh()
            return False

        return requires_action

    async def _refresh(self) -> None:
        if self.refresh_environment is None:
            logger.warning("No environment refresh callback; pending responses wait for the next setup")
            return
        result = self.refresh_environment()
        if inspect.isawaitable(result):
            await result

    # ------------------------------------------------------------------
    # Tool execution and approval
    # ------------------------------------------------------------------

    async def execute_tool_calls(self, tool_calls: list[ToolCall]) -> list[Response]:
        """Execute calls in order, one Response per call."""
        results = []
        for tool_call in tool_calls:
            results.append(await self.execute_tool_call(tool_call))
        return results

    async def execute_tool_call(self, tool_call: ToolCall) -> Response:
        name = tool_call.function.name
        command = self.registry.get_command(name, tool_call.function.argument_payload())
        start = time.time()

        try:
            if command is None:
                logger.warning("Model requested unknown tool '%s'", name)
                result = Response.error(f"Unknown tool '{name}'.")
            elif await self._wait_for_approval(tool_call, command):
                result = await self._run_command(tool_call, command)
            else:
                result = Response.error(NOT_ALLOWED_MESSAGE)
        finally:
            self.state.reset_gate()
            self._gate_signal = None

        try:
            result.to_content()
        except ValueError as e:
            logger.error("Tool '%s' returned data that cannot be serialized: %s", name, e)
            result = Response.error(f"Tool '{name}' returned unserializable data: {e}")

        result.tool_call_id = tool_call.id

        await self.hooks.trigger(
            HookEvent.AFTER_TOOL_CALL.value,
            AfterToolCallEventData(
                tool_call=tool_call,
                response=result,
                execution_time_ms=(time.time() - start) * 1000,
            ),
        )
        return result

    async def _run_command(self, tool_call: ToolCall, command: Command) -> Response:
        self.state.status = SessionStatus.EXECUTING_TOOLS
        await self.hooks.trigger(
            HookEvent.BEFORE_TOOL_CALL.value,
            BeforeToolCallEventData(tool_call=tool_call, command=command),
        )
        try:
            return await self.tool_manager.execute_command(command)
        except Exception as e:
            logger.exception("Tool '%s' failed", tool_call.function.name)
            return Response.error(f"Tool '{tool_call.function.name}' failed: {e}")

    async def _wait_for_approval(self, tool_call: ToolCall, command: Command) -> bool:
        """Suspend until the user approves or discards the call."""
        if self.state.allow_all_tools:
            return True
        if self._interface_closed:
            return False

        self._gate_signal = asyncio.Event()
        self.state.is_tool_exec_waiting = True
        self.state.status = SessionStatus.AWAITING_TOOL_APPROVAL

        await self.hooks.trigger(
            HookEvent.ON_APPROVAL_REQUEST.value,
            ApprovalRequestEventData(session=self, tool_call=tool_call, command=command),
        )

        while not (self.state.exec_waiting_command or self.state.discard_waiting_command):
            try:
                await asyncio.wait_for(
                    self._gate_signal.wait(), timeout=self.config.approval_timeout
                )
            except asyncio.TimeoutError:
                logger.info(
                    "No decision for tool '%s' after %ss, discarding",
                    tool_call.function.name,
                    self.config.approval_timeout,
                )
                self.state.discard_waiting_command = True
            self._gate_signal.clear()

        return self.state.exec_waiting_command

    def approve(self) -> bool:
        """Let the waiting tool call run. False if nothing is waiting."""
        if not self.state.is_tool_exec_waiting:
            return False
        self.state.exec_waiting_command = True
        if self._gate_signal is not None:
            self._gate_signal.set()
        return True

    def discard(self) -> bool:
        """Refuse the waiting tool call. False if nothing is waiting."""
        if not self.state.is_tool_exec_waiting:
            return False
        self.state.discard_waiting_command = True
        if self._gate_signal is not None:
            self._gate_signal.set()
        return True

    def close_interface(self) -> None:
        """The approval UI went away.

        The waiting call and every later call are discarded until the next
        ``setup``.
        """
        self._interface_closed = True
        self.discard()

    def set_auto_approve(self, enabled: bool) -> None:
        """Toggle auto-approval; enabling it also releases a waiting call."""
        self.state.allow_all_tools = enabled
        if enabled:
            self.approve()

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    async def undo(self) -> Response:
        return await self.tool_manager.undo()

    async def redo(self) -> Response:
        return await self.tool_manager.redo()
