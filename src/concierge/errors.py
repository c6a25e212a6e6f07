"""Exception hierarchy shared by every concierge pillar.

Tool errors (:class:`ToolError` and its subclasses) are recovered by the engine
and fed back to the model as tool-result text. Everything else propagates to
the caller of :meth:`concierge.Assistant.title` or
:meth:`concierge.Assistant.reply`.
"""

from typing import Optional


class ConciergeError(Exception):
    """Base class for all concierge errors."""


# --- Input validation ---
class InvalidInputError(ConciergeError):
    """The caller supplied something the assistant cannot work with."""


class EmptyConversationError(InvalidInputError):
    def __init__(self, message: str = "conversation has no messages"):
        super().__init__(message)


class InvalidMessageError(InvalidInputError):
    def __init__(self, message: str = "message is required"):
        super().__init__(message)


class ConversationNotFoundError(ConciergeError):
    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"conversation not found: {conversation_id}")


# --- Tools ---
class ToolError(ConciergeError):
    """A tool could not produce a result. The text is shown to the model."""


class ToolArgumentError(ToolError):
    """Malformed or missing tool arguments."""


class LocationRequiredError(ToolArgumentError):
    """No location could be resolved for a weather lookup."""


class UnknownToolError(ToolError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown tool: {name}")


class MissingCredentialsError(ToolError):
    """Provider credentials are not configured. Raised before any request."""


class ProviderError(ToolError):
    """An upstream provider failed or returned something unusable."""

    def __init__(
        self,
        operation: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation} failed: {message}")


# --- Completion service ---
class CompletionError(ConciergeError):
    """The completion service call itself failed."""


class EmptyResponseError(CompletionError):
    """The completion service answered with no usable choice."""


class TooManyToolCallsError(ConciergeError):
    def __init__(self, rounds: int):
        self.rounds = rounds
        super().__init__("too many tool calls, unable to generate reply")
