"""Concrete implementations for conversation stores."""

import logging
import re
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from .errors import ConversationNotFoundError
from .models import PERSISTED_ROLES, Conversation

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def persistable(conversation: Conversation) -> Conversation:
    """Returns a deep copy holding only user and assistant messages."""
    copy = conversation.model_copy(deep=True)
    copy.messages = [m for m in copy.messages if m.role in PERSISTED_ROLES]
    return copy


class Store(ABC):
    """Interface for saving and loading conversations by id."""

    @abstractmethod
    def create_conversation(self, conversation: Conversation) -> None:
        """Persists a new conversation."""
        pass

    @abstractmethod
    def load_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Loads a conversation, or returns None if it does not exist."""
        pass

    @abstractmethod
    def update_conversation(self, conversation: Conversation) -> None:
        """Replaces a stored conversation.

        Raises ConversationNotFoundError if it was never created.
        """
        pass

    @abstractmethod
    def list_conversations(self) -> List[Conversation]:
        """Lists stored conversations, newest first."""
        pass

    @abstractmethod
    def delete_conversation(self, conversation_id: str) -> bool:
        """Deletes a conversation. Returns False if there was nothing to delete."""
        pass


class InMemory(Store):
    """Keeps conversations in a process-local dictionary."""

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._lock = threading.Lock()

    def create_conversation(self, conversation):
        with self._lock:
            self._conversations[conversation.id] = persistable(conversation)

    def load_conversation(self, conversation_id):
        with self._lock:
            stored = self._conversations.get(conversation_id)
        return stored.model_copy(deep=True) if stored is not None else None

    def update_conversation(self, conversation):
        with self._lock:
            if conversation.id not in self._conversations:
                raise ConversationNotFoundError(conversation.id)
            self._conversations[conversation.id] = persistable(conversation)

    def list_conversations(self):
        with self._lock:
            stored = list(self._conversations.values())
        stored.sort(key=lambda c: c.created_at, reverse=True)
        return [c.model_copy(deep=True) for c in stored]

    def delete_conversation(self, conversation_id):
        with self._lock:
            return self._conversations.pop(conversation_id, None) is not None


class File(Store):
    """Saves conversations as ``<id>.json`` files under a base directory."""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, conversation_id: str) -> Optional[Path]:
        if not _SAFE_ID.match(conversation_id or ""):
            return None
        return self.base_dir / f"{conversation_id}.json"

    def _write(self, conversation: Conversation) -> None:
        path = self._path(conversation.id)
        if path is None:
            raise ValueError(f"invalid conversation id: {conversation.id!r}")
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(
            persistable(conversation).model_dump_json(indent=2), encoding="utf-8"
        )
        tmp_path.replace(path)

    def _read(self, path: Path) -> Optional[Conversation]:
        try:
            return Conversation.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except ValidationError:
            logger.warning("Skipping unreadable conversation file %s", path)
            return None

    def create_conversation(self, conversation):
        with self._lock:
            self._write(conversation)

    def load_conversation(self, conversation_id):
        path = self._path(conversation_id)
        if path is None:
            return None
        return self._read(path)

    def update_conversation(self, conversation):
        with self._lock:
            path = self._path(conversation.id)
            if path is None or not path.exists():
                raise ConversationNotFoundError(conversation.id)
            self._write(conversation)

    def list_conversations(self):
        conversations = []
        for path in self.base_dir.glob("*.json"):
            conversation = self._read(path)
            if conversation is not None:
                conversations.append(conversation)
        conversations.sort(key=lambda c: c.created_at, reverse=True)
        return conversations

    def delete_conversation(self, conversation_id):
        path = self._path(conversation_id)
        if path is None:
            return False
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
        return True
