from autopilot.messages import AgentResponse, Message, ToolCall


class ChatCompletionProvider:
    """Backend the Agent talks to.

    ``model_name`` is pinned into new sessions' history.
    """

    model_name: str = ""

    async def chat_completion(
        self,
        messages: list[Message],
        tools: list[ToolCall],
        **kwargs,
    ) -> AgentResponse:
        """Run one completion over the messages with the tool catalog."""
        raise NotImplementedError

    async def get_models(self) -> list[str]:
        """List available model ids. Used as a connectivity probe."""
        raise NotImplementedError
