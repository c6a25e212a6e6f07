"""
Core pytest configuration and fixtures for Concierge testing.

This module provides shared test fixtures, a scripted completion client and
HTTP transport fakes that support the pillar-based testing architecture.
"""

import copy
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from concierge import Assistant
from concierge.config import Settings
from concierge.llm import LLM
from concierge.models import ASSISTANT_ROLE, USER_ROLE, ChatMessage, Conversation, ToolCall

# ===== TEST DATA FIXTURES =====


@pytest.fixture
def sample_messages() -> List[ChatMessage]:
    """Sample chat messages for testing."""
    return [
        ChatMessage(role=USER_ROLE, content="What is the weather like in Barcelona?"),
        ChatMessage(role=ASSISTANT_ROLE, content="It's sunny, 25°C."),
        ChatMessage(role=USER_ROLE, content="And tomorrow?"),
        ChatMessage(role=ASSISTANT_ROLE, content="Cloudy with a chance of rain."),
    ]


@pytest.fixture
def sample_conversation(sample_messages) -> Conversation:
    """Sample conversation for testing."""
    return Conversation(id="001", messages=sample_messages)


@pytest.fixture
def empty_conversation() -> Conversation:
    """Empty conversation for testing edge cases."""
    return Conversation(id="empty", messages=[])


@pytest.fixture
def settings() -> Settings:
    """Settings with every provider credential configured."""
    return Settings(
        weather_api_key="weather-key",
        weather_base_url="https://weather.test",
        holiday_calendar_link="https://calendar.test/holidays.ics",
        amadeus_api_key="amadeus-key",
        amadeus_api_secret="amadeus-secret",
        amadeus_base_url="https://amadeus.test",
    )


# ===== DIRECTORY FIXTURES =====


@pytest.fixture
def temp_dir():
    """Temporary directory for file-based tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ===== COMPLETION SERVICE FAKE =====


class FakeLLM(LLM):
    """Completion client that replays scripted responses.

    Each scripted item is a response dict built with :meth:`text`,
    :meth:`tool_round` or :meth:`no_choices`, or an exception to raise.
    When ``repeat`` is set, it is returned once the script runs out.
    """

    def __init__(self, script: Optional[List[Any]] = None, repeat: Any = None):
        self.script = list(script or [])
        self.repeat = repeat
        self.calls: List[Dict[str, Any]] = []

    @staticmethod
    def text(content: Optional[str]) -> Dict[str, Any]:
        return {"choices": 1, "content": content, "tool_calls": []}

    @staticmethod
    def tool_round(*calls: Tuple[str, str, str]) -> Dict[str, Any]:
        return {
            "choices": 1,
            "content": None,
            "tool_calls": [
                ToolCall(id=call_id, function_name=name, function_args=args)
                for call_id, name, args in calls
            ],
        }

    @staticmethod
    def no_choices() -> Dict[str, Any]:
        return {"choices": 0, "content": None, "tool_calls": []}

    async def generate_response(self, messages, model=None, tools=None, **kwargs):
        self.calls.append(
            {"messages": copy.deepcopy(messages), "model": model, "tools": tools}
        )
        if self.script:
            item = self.script.pop(0)
        elif self.repeat is not None:
            item = self.repeat
        else:
            raise AssertionError("unexpected completion call")
        if isinstance(item, BaseException):
            raise item
        return item

    def count_choices(self, response):
        return response["choices"]

    def extract_content(self, response):
        return response["content"] if response["choices"] else None

    def parse_tool_calls(self, response):
        return response["tool_calls"] or None

    def create_assistant_message(self, response):
        message = super().create_assistant_message(response)
        if response["tool_calls"]:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.function_name,
                        "arguments": call.function_args,
                    },
                }
                for call in response["tool_calls"]
            ]
        return message


@pytest.fixture
def fake_llm_cls():
    """The scripted completion client class (build with a script per test)."""
    return FakeLLM


# ===== HTTP FAKES =====


def build_http_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Tuple[httpx.AsyncClient, List[httpx.Request]]:
    """Returns an AsyncClient served by ``handler`` and the list of requests it saw."""
    requests: List[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
    return client, requests


@pytest.fixture
def http_client_factory():
    """Helper function to create recording HTTP clients in tests."""
    return build_http_client


@pytest.fixture
def offline_http():
    """An HTTP client that fails the test if any request is made."""

    def handler(request):
        raise AssertionError(f"unexpected request: {request.method} {request.url}")

    return build_http_client(handler)


# ===== APP FIXTURES =====


@pytest.fixture
def assistant_factory(settings, offline_http):
    """
    Builds an Assistant with a scripted LLM and predictable pillars.

    Tools get the offline HTTP client unless another one is passed in.
    """

    def make(llm: LLM, **kwargs: Any) -> Assistant:
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("http_client", offline_http[0])
        return Assistant(llm=llm, **kwargs)

    return make
