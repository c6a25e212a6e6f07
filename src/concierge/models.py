"""
Defines the core Pydantic data models for the assistant.

These models are the validated data contract between the orchestrator, the
tools, the stores, and the chat service. Message and tool-call shapes follow
the conventions of the OpenAI SDK.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
TOOL_ROLE = "tool"
Role = Literal["user", "assistant", "system", "tool"]

PERSISTED_ROLES = (USER_ROLE, ASSISTANT_ROLE)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# --- Models ---
class ChatMessage(BaseModel):
    """Represents a single message within a conversation."""

    role: Role
    content: str = ""
    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Conversation(BaseModel):
    """Represents a complete chat conversation session."""

    id: str = Field(default_factory=_new_id)
    title: str = ""
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def add_message(self, role: Role, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self.messages.append(message)
        self.updated_at = message.created_at
        return message

    def first_user_message(self) -> Optional[ChatMessage]:
        return next((m for m in self.messages if m.role == USER_ROLE), None)

    def user_messages(self) -> List[ChatMessage]:
        return [m for m in self.messages if m.role == USER_ROLE]


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    function_name: str
    function_args: str = "{}"


class ToolResult(BaseModel):
    """The outcome of one tool call, keyed back to the originating request."""

    tool_call_id: str
    function_name: str
    content: str
    is_error: bool = False
