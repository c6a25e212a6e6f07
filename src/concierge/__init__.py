"""
The main entrypoint for the Concierge package.

This module contains the :class:`Assistant`, which orchestrates the pillars
(completion client, reply engine, tool registry) to produce conversation
titles and replies. Storage and transport live outside of it; see
:mod:`concierge.service` for the chat flow that persists results.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from . import engine, llm, observers
from .config import Settings
from .errors import CompletionError, EmptyConversationError, EmptyResponseError
from .models import PERSISTED_ROLES, SYSTEM_ROLE, USER_ROLE, Conversation
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

EMPTY_CONVERSATION_TITLE = "An empty conversation"
TITLE_MAX_LENGTH = 80
TITLE_PADDING = "-\"'"

TITLE_SYSTEM_PROMPT = (
    "Return ONLY a concise 2–6 word title summarizing the user's question. "
    "Do not answer the question. No punctuation or emojis. Max 80 chars."
)
REPLY_SYSTEM_PROMPT = (
    "You are a helpful, concise AI assistant. Provide accurate, safe, and clear "
    "responses. For time-sensitive queries (flights, weather forecasts, holidays, "
    "etc.), always use the get_today_date tool first to ensure you have the "
    "correct current date before making other API calls."
)

RegistryFactory = Callable[[Conversation], ToolRegistry]


def clean_title(raw: Optional[str]) -> str:
    """Normalizes model output into a single-line title of at most 80 chars.

    Raises
    ------
    EmptyResponseError
        If nothing is left once padding has been stripped.
    """
    title = _trim(" ".join((raw or "").splitlines()))
    if not title:
        raise EmptyResponseError("empty title returned")
    return _trim(title[:TITLE_MAX_LENGTH])


def _trim(title: str) -> str:
    # Whitespace and padding can alternate, e.g. ' "Title" '.
    previous = None
    while title != previous:
        previous = title
        title = title.strip().strip(TITLE_PADDING)
    return title


class Assistant:
    """
    Generates titles and tool-assisted replies for conversations.

    The assistant reads conversations but never persists them. The only
    state shared between concurrent calls is the completion client and the
    HTTP connection pool; every reply gets its own tool registry.
    """

    def __init__(
        self,
        llm: Optional[llm.LLM] = None,
        engine: Optional[engine.Engine] = None,
        registry_factory: Optional[RegistryFactory] = None,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        observer: Optional[observers.Observer] = None,
    ) -> None:
        """
        Initialize the assistant with configurable pillars.

        Parameters
        ----------
        llm : llm.LLM, optional
            Completion client used for both titles and replies.
            Defaults to llm.OpenAI() using the configured reply model.
        engine : engine.Engine, optional
            Reply loop. Defaults to engine.Agentic() with the configured
            round cap. The engine is bound to this assistant.
        registry_factory : callable, optional
            Builds the tool registry for one reply from the conversation.
            Defaults to :meth:`build_registry`.
        settings : Settings, optional
            Fixed configuration. When omitted, settings are read from the
            environment at construction and again for every reply's tools.
        http_client : httpx.AsyncClient, optional
            Connection pool shared by all tools. One is created (and closed
            by :meth:`aclose`) when omitted.
        observer : observers.Observer, optional
            Receives tool and completion timings. Defaults to a no-op.

        Examples
        --------
        >>> async with Assistant() as assistant:
        ...     reply = await assistant.reply(conversation)
        """
        self._fixed_settings = settings
        self.settings = settings if settings is not None else Settings.from_env()

        llm_module = globals()["llm"]
        engine_module = globals()["engine"]

        self.llm = (
            llm
            if llm is not None
            else llm_module.OpenAI(default_model=self.settings.reply_model)
        )
        self.observer = observer if observer is not None else observers.Observer()

        self._owns_http_client = http_client is None
        self.http_client = http_client if http_client is not None else httpx.AsyncClient()

        self.engine = (
            engine
            if engine is not None
            else engine_module.Agentic(max_turns=self.settings.max_turns)
        )
        self.engine.app = self
        self.registry_factory = registry_factory or self.build_registry

    # --- Lifecycle ---
    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> "Assistant":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # --- Tools ---
    def current_settings(self) -> Settings:
        if self._fixed_settings is not None:
            return self._fixed_settings
        return Settings.from_env()

    def build_registry(self, conversation: Conversation) -> ToolRegistry:
        """Default registry: weather, forecast, date, holidays and flights."""
        from .tools.calendar import GetHolidaysTool, GetTodayDateTool
        from .tools.flights import GetFlightPricesTool
        from .tools.weather import GetWeatherForecastTool, GetWeatherTool

        settings = self.current_settings()
        registry = ToolRegistry(observer=self.observer)
        registry.register(GetWeatherTool(conversation, self.http_client, settings))
        registry.register(
            GetWeatherForecastTool(conversation, self.http_client, settings)
        )
        registry.register(GetTodayDateTool())
        registry.register(GetHolidaysTool(conversation, self.http_client, settings))
        registry.register(GetFlightPricesTool(conversation, self.http_client, settings))
        return registry

    # --- Title ---
    async def title(self, conversation: Conversation) -> str:
        """Summarizes the conversation's first user message as a short title."""
        if not conversation.messages:
            return EMPTY_CONVERSATION_TITLE

        first = conversation.first_user_message() or conversation.messages[0]
        messages = [
            {"role": SYSTEM_ROLE, "content": TITLE_SYSTEM_PROMPT},
            {"role": USER_ROLE, "content": first.content},
        ]
        logger.info("Generating title", extra={"conversation_id": conversation.id})

        started = time.perf_counter()
        try:
            response = await self.llm.generate_response(
                messages, model=self.settings.title_model
            )
        except Exception as exc:
            self.observer.completion_finished(
                "title", 0, time.perf_counter() - started, exc
            )
            raise CompletionError(f"title completion failed: {exc}") from exc
        self.observer.completion_finished("title", 0, time.perf_counter() - started)

        if self.llm.count_choices(response) == 0:
            raise EmptyResponseError("empty response from OpenAI for title generation")
        return clean_title(self.llm.extract_content(response))

    # --- Reply ---
    def build_transcript(self, conversation: Conversation) -> List[Dict[str, Any]]:
        transcript = [{"role": SYSTEM_ROLE, "content": REPLY_SYSTEM_PROMPT}]
        transcript.extend(
            {"role": message.role, "content": message.content}
            for message in conversation.messages
            if message.role in PERSISTED_ROLES
        )
        return transcript

    async def reply(self, conversation: Conversation) -> str:
        """Generates the assistant's next message, calling tools as needed.

        Raises
        ------
        EmptyConversationError
            If the conversation has no messages. No completion call is made.
        CompletionError
            If a completion call fails or returns no choices.
        TooManyToolCallsError
            If the model is still requesting tools when the round cap is hit.
        """
        if not conversation.messages:
            raise EmptyConversationError()

        registry = self.registry_factory(conversation)
        transcript = self.build_transcript(conversation)
        logger.info(
            "Generating reply",
            extra={"conversation_id": conversation.id, "tool_count": len(registry)},
        )
        return await self.engine.run(transcript, registry)


__all__ = [
    "Assistant",
    "EMPTY_CONVERSATION_TITLE",
    "REPLY_SYSTEM_PROMPT",
    "TITLE_MAX_LENGTH",
    "TITLE_SYSTEM_PROMPT",
    "clean_title",
]
