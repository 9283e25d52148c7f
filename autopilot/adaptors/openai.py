"""OpenAI chat completion provider for autopilot."""

import os
from typing import Optional

import httpx

from autopilot.exceptions import BackendError
from autopilot.messages import (
    AgentResponse,
    Choice,
    Function,
    Message,
    Role,
    ToolCall,
    Usage,
)
from autopilot.model import ChatCompletionProvider


class OpenAIProvider(ChatCompletionProvider):
    """OpenAI-compatible chat completion provider.

    Supports the OpenAI API and compatible endpoints (local models, proxies, etc.).

    Args:
        api_key: OpenAI API key. Falls back to OPENAI_API_KEY environment variable.
        model: Model name (default: gpt-5-mini).
        base_url: Base URL for the API (default: https://api.openai.com/v1).
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-5-mini",
        base_url: Optional[str] = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError(
                "OpenAI API key not provided. "
                "Pass api_key argument or set OPENAI_API_KEY environment variable."
            )

        self.model_name = model
        self.base_url = base_url or "https://api.openai.com/v1"
        self.timeout = timeout

    @property
    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def get_models(self) -> list[str]:
        """List model ids available to this key.

        Raises:
            BackendError: If the API answers with an error.
            httpx.HTTPError: If the request fails.
        """
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.base_url}/models",
                headers=self._headers,
                timeout=self.timeout,
            )

        if response.status_code != 200:
            raise BackendError(f"OpenAI API error: {self._error_message(response)}")

        return [model["id"] for model in response.json().get("data", [])]

    async def chat_completion(
        self,
        messages: list[Message],
        tools: list[ToolCall],
        **kwargs,
    ) -> AgentResponse:
        """Call the chat completions endpoint.

        Args:
            messages: Conversation to send, oldest first.
            tools: Tool catalog advertised to the model.
            **kwargs: Extra payload fields (temperature, tool_choice, ...).

        Returns:
            AgentResponse; its choice list is empty if the API returned none.

        Raises:
            BackendError: If the API answers with an error.
            httpx.HTTPError: If the request fails.
        """
        timeout = kwargs.pop("timeout", self.timeout)

        payload = {
            "model": self.model_name,
            "messages": self._convert_messages(messages),
        }

        if tools:
            payload["tools"] = [self._convert_tool(tool) for tool in tools]
            payload["tool_choice"] = kwargs.pop("tool_choice", "auto")

        payload.update(kwargs)

        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=self._headers,
                timeout=timeout,
            )

        if response.status_code != 200:
            raise BackendError(f"OpenAI API error: {self._error_message(response)}")

        return self._parse_response(response.json())

    def _error_message(self, response) -> str:
        try:
            error_data = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        return error_data.get("error", {}).get("message", "Unknown error")

    def _convert_messages(self, messages: list[Message]) -> list[dict]:
        """Convert autopilot Messages to the OpenAI wire format."""
        openai_messages = []
        for msg in messages:
            openai_msg = {"role": msg.role.value, "content": msg.content}

            if msg.name and msg.role != Role.TOOL:
                openai_msg["name"] = msg.name

            # Tool replies link back to the call that produced them
            if msg.tool_call_id:
                openai_msg["tool_call_id"] = msg.tool_call_id

            if msg.role == Role.ASSISTANT and msg.tool_calls:
                openai_msg["tool_calls"] = self._format_tool_calls(msg.tool_calls)

            openai_messages.append(openai_msg)
        return openai_messages

    def _format_tool_calls(self, tool_calls: list[ToolCall]) -> list[dict]:
        return [
            {
                "id": tool_call.id,
                "type": "function",
                "function": {
                    "name": tool_call.function.name,
                    "arguments": tool_call.function.argument_payload(),
                },
            }
            for tool_call in tool_calls
        ]

    def _convert_tool(self, tool: ToolCall) -> dict:
        """Convert a catalog entry to an OpenAI tool definition."""
        return {
            "type": "function",
            "function": {
                "name": tool.function.name,
                "description": tool.function.description or "",
                "parameters": tool.function.parameters or {"type": "object", "properties": {}},
                "strict": tool.function.strict,
            },
        }

    def _parse_response(self, data: dict) -> AgentResponse:
        """Parse a raw chat completion into an AgentResponse."""
        choices = []
        for position, choice in enumerate(data.get("choices") or []):
            message = choice.get("message", {})
            tool_calls = None
            if message.get("tool_calls"):
                tool_calls = [
                    ToolCall(
                        id=call["id"],
                        index=call.get("index", index),
                        type=call.get("type", "function"),
                        function=Function(
                            name=call["function"]["name"],
                            arguments=call["function"].get("arguments"),
                        ),
                    )
                    for index, call in enumerate(message["tool_calls"])
                ]

            choices.append(
                Choice(
                    index=choice.get("index", position),
                    message=Message(
                        role=Role(message.get("role", "assistant")),
                        content=message.get("content"),
                        name=message.get("name"),
                        refusal=message.get("refusal"),
                        tool_calls=tool_calls,
                    ),
                    finish_reason=choice.get("finish_reason"),
                )
            )

        usage = data.get("usage") or {}
        return AgentResponse(
            id=data.get("id"),
            object_type=data.get("object"),
            created=data.get("created", 0),
            model=data.get("model"),
            choices=choices,
            usage=Usage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
        )
