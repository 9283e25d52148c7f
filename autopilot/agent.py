import logging
from typing import Callable, Optional

from autopilot.messages import AgentResponse, History, Message, Role, ToolCall
from autopilot.model import ChatCompletionProvider

logger = logging.getLogger(__name__)

MessageListener = Callable[[Message], None]


class Agent:
    """Conversation state plus a single request/response turn.

    Keeps two views of the same conversation:

    - ``chat_history``: bounded to ``history_limit`` entries, sent to the model.
    - ``cache_history``: never trimmed, used for persistence and UI replay.

    Both are appended together; only the bounded view evicts.
    """

    def __init__(
        self,
        provider: ChatCompletionProvider,
        history: Optional[History] = None,
        history_limit: int = 20,
        tools: Optional[list[ToolCall]] = None,
    ):
        self.provider = provider
        self.history_limit = history_limit
        self._listeners: list[MessageListener] = []

        if history is None:
            self.chat_history: list[Message] = []
            self.cache_history: list[Message] = []
            self.tool_list: list[ToolCall] = list(tools or [])
        else:
            self.chat_history = list(history.messages)
            self.cache_history = list(history.messages)
            self.tool_list = list(history.tools)
            self._trim_chat_history()

    def subscribe(self, listener: MessageListener) -> None:
        """Call ``listener(message)`` for every entry appended from now on."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: MessageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add_message(self, message: Message) -> None:
        """Append a message to both views.

        A message with tool calls and text is stored as two entries: the text
        first, then the tool calls with empty text. Most backends reject a
        tool-call message that also carries content.
        """
        if message.tool_calls and message.content:
            self._append(Message(role=message.role, content=message.content))
            message = message.model_copy(update={"content": ""})

        self._append(message)

    def _append(self, message: Message) -> None:
        self.chat_history.append(message)
        self.cache_history.append(message)
        self._trim_chat_history()

        for listener in list(self._listeners):
            listener(message)

    def load_messages(self, messages: list[Message], tools: list[ToolCall]) -> None:
        """Replace both views and the tool catalog."""
        self.chat_history = list(messages)
        self.cache_history = list(messages)
        self.tool_list = list(tools)
        self._trim_chat_history()

    def _trim_chat_history(self) -> None:
        if len(self.chat_history) <= self.history_limit:
            return

        self.chat_history = self.chat_history[len(self.chat_history) - self.history_limit :]

        # A tool reply cannot open the request: its tool-call message was evicted
        while self.chat_history and self.chat_history[0].role == Role.TOOL:
            self.chat_history.pop(0)

    async def get_response(self) -> Optional[AgentResponse]:
        """Run one turn against the backend.

        On success the reply is appended and the full response returned. Any
        backend failure, including a response without choices, returns None
        and leaves history untouched.
        """
        try:
            response = await self.provider.chat_completion(
                list(self.chat_history), list(self.tool_list)
            )
        except Exception as e:
            logger.error("Chat completion failed: %s", e)
            return None

        if response is None or response.first_choice is None:
            logger.error("Chat completion returned no choices")
            return None

        self.add_message(response.first_choice.message)
        return response

    async def get_models(self) -> list[str]:
        return await self.provider.get_models()
