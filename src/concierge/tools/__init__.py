"""The tool capability interface and the registry that dispatches to it."""

import copy
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import ToolArgumentError, UnknownToolError
from ..observers import EXECUTION_FAILED, NOT_FOUND, Observer

logger = logging.getLogger(__name__)

ArgsT = TypeVar("ArgsT", bound=BaseModel)


def describe_validation_error(exc: ValidationError) -> str:
    """Collapse a pydantic error into one line the model can act on."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


class Tool(ABC):
    """Interface for a capability the model can invoke by name.

    Subclasses set ``name``, ``description`` and ``parameters`` (a JSON schema
    object) and implement :meth:`execute`. Failures are raised as
    :class:`~concierge.errors.ToolError` so the engine can hand the message
    back to the model.
    """

    name: str = ""
    description: str = ""
    parameters: Dict[str, Any] = {"type": "object", "properties": {}}

    def definition(self) -> Dict[str, Any]:
        """Returns the OpenAI function-tool descriptor for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": copy.deepcopy(self.parameters),
            },
        }

    @abstractmethod
    async def execute(self, raw_args: str) -> str:
        """Runs the tool with the raw JSON arguments sent by the model."""

    def parse_args(self, raw_args: Optional[str], model: Type[ArgsT]) -> ArgsT:
        try:
            return model.model_validate_json(raw_args or "{}")
        except ValidationError as exc:
            raise ToolArgumentError(
                f"failed to parse tool call arguments: {describe_validation_error(exc)}"
            ) from exc


class ToolRegistry:
    """A name-keyed collection of tools with dispatch.

    Registration replaces any tool with the same name. Lookups, definitions
    and dispatch are safe to use from concurrent tasks and threads.
    """

    def __init__(self, observer: Optional[Observer] = None):
        self._tools: Dict[str, Tool] = {}
        self._lock = threading.Lock()
        self.observer = observer if observer is not None else Observer()

    def register(self, tool: Tool) -> None:
        with self._lock:
            self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> Optional[Tool]:
        with self._lock:
            return self._tools.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return list(self._tools)

    def definitions(self) -> List[Dict[str, Any]]:
        with self._lock:
            tools = list(self._tools.values())
        return [tool.definition() for tool in tools]

    async def execute(self, name: str, raw_args: Optional[str]) -> str:
        """Dispatches to the named tool and returns its result text.

        Raises
        ------
        UnknownToolError
            If no tool is registered under ``name``.
        ToolError
            Whatever the tool itself raised, unchanged.
        """
        started = time.perf_counter()
        tool = self.get(name)
        if tool is None:
            self.observer.tool_executed(name, time.perf_counter() - started, NOT_FOUND)
            raise UnknownToolError(name)

        try:
            result = await tool.execute(raw_args or "{}")
        except Exception:
            self.observer.tool_executed(
                name, time.perf_counter() - started, EXECUTION_FAILED
            )
            raise
        self.observer.tool_executed(name, time.perf_counter() - started)
        return result

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)
