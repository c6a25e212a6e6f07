"""Transport-free chat flow: validate, generate, then persist.

Nothing is written to the store until a reply has been generated, so a
failed generation never leaves a half-finished conversation behind.
"""

import asyncio
import logging
from typing import Awaitable, List, Optional, TypeVar

from . import Assistant
from .errors import ConciergeError, ConversationNotFoundError, InvalidMessageError
from .models import ASSISTANT_ROLE, USER_ROLE, Conversation
from .store import Store

logger = logging.getLogger(__name__)

UNTITLED = "Untitled conversation"

T = TypeVar("T")


def _discard(task: "asyncio.Future") -> None:
    """Cancels a task whose outcome no longer matters."""
    task.cancel()
    task.add_done_callback(lambda t: t.cancelled() or t.exception())


class ChatService:
    def __init__(
        self, assistant: Assistant, store: Store, timeout: Optional[float] = None
    ):
        self.assistant = assistant
        self.store = store
        self.timeout = timeout

    async def _bounded(self, awaitable: Awaitable[T], timeout: Optional[float]) -> T:
        timeout = timeout if timeout is not None else self.timeout
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)

    async def start_conversation(
        self, message: str, timeout: Optional[float] = None
    ) -> Conversation:
        """Creates a conversation from the user's first message.

        The title and the reply are generated concurrently. A failed title
        falls back to "Untitled conversation"; a failed reply is raised and
        nothing is stored.
        """
        if not message or not message.strip():
            raise InvalidMessageError()

        conversation = Conversation()
        conversation.add_message(USER_ROLE, message)
        await self._bounded(self._generate(conversation), timeout)
        self.store.create_conversation(conversation)
        logger.info(
            "Started conversation",
            extra={"conversation_id": conversation.id, "title": conversation.title},
        )
        return conversation

    async def _generate(self, conversation: Conversation) -> None:
        title_task = asyncio.ensure_future(self.assistant.title(conversation))
        try:
            reply = await self.assistant.reply(conversation)
        except BaseException:
            _discard(title_task)
            raise

        try:
            title = await title_task
        except ConciergeError as exc:
            logger.warning(
                "Failed to generate conversation title: %s",
                exc,
                extra={"conversation_id": conversation.id},
            )
            title = UNTITLED

        conversation.title = title
        conversation.add_message(ASSISTANT_ROLE, reply)

    async def continue_conversation(
        self, conversation_id: str, message: str, timeout: Optional[float] = None
    ) -> str:
        """Appends a user message to a stored conversation and replies to it."""
        if not message or not message.strip():
            raise InvalidMessageError()

        conversation = self.describe_conversation(conversation_id)
        conversation.add_message(USER_ROLE, message)
        reply = await self._bounded(self.assistant.reply(conversation), timeout)
        conversation.add_message(ASSISTANT_ROLE, reply)
        self.store.update_conversation(conversation)
        return reply

    def describe_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.store.load_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def list_conversations(self) -> List[Conversation]:
        return self.store.list_conversations()
