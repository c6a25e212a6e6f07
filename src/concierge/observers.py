"""Observer hooks for tool dispatch and completion rounds.

Observers are injected into the :class:`concierge.Assistant` instead of being
process-wide counters, so the orchestration core stays testable.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
EXECUTION_FAILED = "execution_failed"


class Observer:
    """Default observer. Every hook is a no-op."""

    def tool_executed(
        self, name: str, duration: float, error_kind: Optional[str] = None
    ) -> None:
        pass

    def completion_finished(
        self,
        operation: str,
        round_index: int,
        duration: float,
        error: Optional[BaseException] = None,
    ) -> None:
        pass


class LoggingObserver(Observer):
    """Reports tool and completion timings through the standard logger."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def tool_executed(self, name, duration, error_kind=None):
        logger.log(
            self.level,
            "Tool %s finished in %.1f ms",
            name,
            duration * 1000,
            extra={"tool_name": name, "error_kind": error_kind},
        )

    def completion_finished(self, operation, round_index, duration, error=None):
        logger.log(
            self.level,
            "Completion %s round %d finished in %.1f ms",
            operation,
            round_index,
            duration * 1000,
            extra={"operation": operation, "failed": error is not None},
        )
