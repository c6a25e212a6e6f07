"""The reply-generation loop.

An engine drives repeated completion calls for one reply, dispatching any
tool calls the model requests through the per-reply registry and feeding the
results back, until the model answers in plain text or the round cap is hit.
"""

import asyncio
import enum
import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .errors import (
    CompletionError,
    EmptyResponseError,
    ToolError,
    TooManyToolCallsError,
)
from .models import ToolCall, ToolResult
from .observers import Observer
from .tools import ToolRegistry

if TYPE_CHECKING:
    from . import Assistant

logger = logging.getLogger(__name__)


class EngineState(enum.Enum):
    AWAITING_COMPLETION = "awaiting_completion"
    HAS_TOOL_CALLS = "has_tool_calls"
    FINAL = "final"
    EXHAUSTED = "exhausted"


class Engine(ABC):
    """Abstract Base Class for reply engines."""

    def __init__(self, app: Optional["Assistant"] = None) -> None:
        self.app = app

    @abstractmethod
    async def run(
        self, transcript: List[Dict[str, Any]], registry: ToolRegistry
    ) -> str:
        """Produces the final reply for a seeded transcript.

        ``transcript`` is owned by the engine for the duration of the call
        and is extended in place with every tool round.
        """
        pass


class Agentic(Engine):
    """Bounded tool-calling loop.

    Each round makes one completion call. Tool calls in a round are
    dispatched concurrently and their results appended in request order.
    Tool failures become tool-result text; completion failures and an
    exhausted round budget are raised to the caller.
    """

    MAX_AGENTIC_TURNS = 15

    def __init__(
        self, app: Optional["Assistant"] = None, max_turns: Optional[int] = None
    ) -> None:
        super().__init__(app)
        self.max_turns = (
            max_turns if max_turns is not None and max_turns > 0 else self.MAX_AGENTIC_TURNS
        )

    @property
    def observer(self) -> Observer:
        if self.app is None:
            return Observer()
        return self.app.observer

    async def run(self, transcript, registry):
        if self.app is None:
            raise RuntimeError("Engine is not bound to an Assistant")
        llm = self.app.llm
        tools = registry.definitions()

        for round_index in range(self.max_turns):
            state = EngineState.AWAITING_COMPLETION
            self._before_llm_call(transcript)
            response = await self._complete(transcript, tools, round_index)
            self._after_llm_call(response)

            tool_calls = llm.parse_tool_calls(response)
            if not tool_calls:
                state = EngineState.FINAL
                logger.debug("Engine state: %s", state.value, extra={"round": round_index})
                return llm.extract_content(response) or ""

            state = EngineState.HAS_TOOL_CALLS
            logger.debug("Engine state: %s", state.value, extra={"round": round_index})
            transcript.append(llm.create_assistant_message(response))
            results = await self._execute_tools(tool_calls, registry)
            transcript.extend(llm.create_tool_result_messages(results))

        state = EngineState.EXHAUSTED
        logger.warning(
            "Reply abandoned after %d tool rounds (%s)",
            self.max_turns,
            state.value,
            extra={"rounds": self.max_turns},
        )
        raise TooManyToolCallsError(self.max_turns)

    # --- Hooks ---
    def _before_llm_call(self, transcript: List[Dict[str, Any]]) -> None:
        pass

    def _after_llm_call(self, response: Any) -> None:
        pass

    # --- Internals ---
    async def _complete(
        self, transcript: List[Dict[str, Any]], tools: List[Dict[str, Any]], round_index: int
    ) -> Any:
        llm = self.app.llm
        started = time.perf_counter()
        try:
            response = await llm.generate_response(
                transcript, model=self.app.settings.reply_model, tools=tools
            )
        except Exception as exc:
            self.observer.completion_finished(
                "reply", round_index, time.perf_counter() - started, exc
            )
            raise CompletionError(f"completion failed: {exc}") from exc

        if llm.count_choices(response) == 0:
            error = EmptyResponseError("no choices returned")
            self.observer.completion_finished(
                "reply", round_index, time.perf_counter() - started, error
            )
            raise error
        self.observer.completion_finished(
            "reply", round_index, time.perf_counter() - started
        )
        return response

    async def _execute_tools(
        self, tool_calls: List[ToolCall], registry: ToolRegistry
    ) -> List[ToolResult]:
        return list(
            await asyncio.gather(
                *(self._execute_tool(tool_call, registry) for tool_call in tool_calls)
            )
        )

    async def _execute_tool(
        self, tool_call: ToolCall, registry: ToolRegistry
    ) -> ToolResult:
        logger.info(
            "Tool call: %s",
            tool_call.function_name,
            extra={"tool_name": tool_call.function_name, "tool_call_id": tool_call.id},
        )
        try:
            content = await registry.execute(
                tool_call.function_name, tool_call.function_args
            )
        except ToolError as exc:
            logger.warning(
                "Tool %s failed: %s",
                tool_call.function_name,
                exc,
                extra={"tool_name": tool_call.function_name},
            )
            return self._error_result(tool_call, str(exc))
        except Exception as exc:
            logger.exception(
                "Tool %s raised unexpectedly",
                tool_call.function_name,
                extra={"tool_name": tool_call.function_name},
            )
            return self._error_result(tool_call, str(exc) or type(exc).__name__)
        return ToolResult(
            tool_call_id=tool_call.id,
            function_name=tool_call.function_name,
            content=content,
        )

    def _error_result(self, tool_call: ToolCall, message: str) -> ToolResult:
        return ToolResult(
            tool_call_id=tool_call.id,
            function_name=tool_call.function_name,
            content=message,
            is_error=True,
        )
