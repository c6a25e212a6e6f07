"""Concrete implementations for LLM providers."""

import asyncio
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import ASSISTANT_ROLE, TOOL_ROLE, USER_ROLE, ToolCall, ToolResult


class LLM(ABC):
    """Abstract Base Class for all LLM providers.

    The engine only talks to a provider through these methods, so a provider
    may return whatever native response object its SDK produces.
    """

    @abstractmethod
    async def generate_response(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> Any:
        """Generates a response from the LLM provider.

        This method should return the provider's native, rich response object
        directly from their SDK.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            A list of message dictionaries in the OpenAI chat format.
        model : str, optional
            The specific model to use for the generation. Falls back to the
            provider's default model.
        tools : List[Dict[str, Any]], optional
            OpenAI function-tool descriptors the model may call. ``None`` or
            an empty list means tool use is not offered.
        **kwargs : Any
            Provider-specific parameters (e.g., temperature) to be passed
            directly to the SDK.

        Returns
        -------
        Any
            The provider's native, rich response object.
        """
        pass

    @abstractmethod
    def extract_content(self, response: Any) -> Optional[str]:
        """Extracts the text content of the first choice, if any."""
        pass

    @abstractmethod
    def count_choices(self, response: Any) -> int:
        pass

    def parse_tool_calls(self, response: Any) -> Optional[List[ToolCall]]:
        """Returns the tool calls requested by the first choice.

        Providers without tool support keep this default and never trigger a
        tool round.
        """
        return None

    def create_assistant_message(self, response: Any) -> Dict[str, Any]:
        """Builds the transcript entry that echoes the model's turn back."""
        return {"role": ASSISTANT_ROLE, "content": self.extract_content(response)}

    def create_tool_result_messages(
        self, results: List[ToolResult]
    ) -> List[Dict[str, Any]]:
        return [
            {
                "role": TOOL_ROLE,
                "tool_call_id": result.tool_call_id,
                "content": result.content,
            }
            for result in results
        ]


class _OpenAICompatible(LLM):
    """Shared response handling for chat-completions style SDK responses."""

    client: Any
    model: str

    async def generate_response(self, messages, model=None, tools=None, **kwargs):
        if tools:
            kwargs["tools"] = tools
        return await self.client.chat.completions.create(
            messages=messages, model=model or self.model, **kwargs
        )

    def count_choices(self, response: Any) -> int:
        return len(response.choices or [])

    def extract_content(self, response: Any) -> Optional[str]:
        if not response.choices:
            return None
        return response.choices[0].message.content

    def parse_tool_calls(self, response: Any) -> Optional[List[ToolCall]]:
        if not response.choices:
            return None
        tool_calls = response.choices[0].message.tool_calls
        if not tool_calls:
            return None
        return [
            ToolCall(
                id=tool_call.id,
                function_name=tool_call.function.name,
                function_args=tool_call.function.arguments or "{}",
            )
            for tool_call in tool_calls
        ]

    def create_assistant_message(self, response: Any) -> Dict[str, Any]:
        message = {"role": ASSISTANT_ROLE, "content": self.extract_content(response)}
        tool_calls = self.parse_tool_calls(response)
        if tool_calls:
            message["tool_calls"] = [
                {
                    "id": tool_call.id,
                    "type": "function",
                    "function": {
                        "name": tool_call.function_name,
                        "arguments": tool_call.function_args,
                    },
                }
                for tool_call in tool_calls
            ]
        return message


class OpenAI(_OpenAICompatible):
    def __init__(self, default_model: str = "gpt-4.1", **client_kwargs: Any):
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(**client_kwargs)
        self.model = default_model


class OpenRouter(_OpenAICompatible):
    def __init__(self, default_model: str = "openai/gpt-4.1"):
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=os.environ["OPENROUTER_API_KEY"],
        )
        self.model = default_model

    async def generate_response(self, messages, model=None, tools=None, **kwargs):
        kwargs.setdefault(
            "extra_headers", {"HTTP-Referer": "concierge", "X-Title": "Concierge"}
        )
        return await super().generate_response(messages, model, tools, **kwargs)


class DeepSeek(_OpenAICompatible):
    def __init__(self, default_model: str = "deepseek/deepseek-chat"):
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=os.environ["OPENROUTER_API_KEY"],
        )
        self.model = default_model


class Echo(LLM):
    """Offline provider that repeats the latest user message.

    It never requests tools, so a reply always finishes in one round.
    """

    def __init__(self, default_model: str = "echo-v1", delay: float = 0.0):
        self.model = default_model
        self.delay = delay

    async def generate_response(self, messages, model=None, tools=None, **kwargs):
        if self.delay:
            await asyncio.sleep(self.delay)
        user_prompt = next(
            (m["content"] for m in reversed(messages) if m.get("role") == USER_ROLE),
            "No message provided",
        )
        return {
            "content": f"Echo: {user_prompt}",
            "model": model or self.model,
        }

    def count_choices(self, response: Any) -> int:
        return 1 if isinstance(response, dict) and "content" in response else 0

    def extract_content(self, response: Any) -> Optional[str]:
        if isinstance(response, dict) and "content" in response:
            return response["content"]
        return str(response)
