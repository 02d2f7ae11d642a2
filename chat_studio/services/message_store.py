"""Thread and message persistence."""

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from cuid2 import cuid_wrapper

from chat_studio.errors import MessageNotFound, ThreadNotFound, Unauthorized
from chat_studio.models.chat import (
    AnonymousThread,
    Message,
    MessagePart,
    MessageSummary,
    Thread,
    utc_now,
)
from chat_studio.models.llm import Role
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()


class MessageSink(Protocol):
    """Write side of message persistence used while a response streams."""

    async def update_content(self, message_id: str, content: str, parts: Sequence[MessagePart] | None = None) -> None:
        ...

    async def finalize_content(
        self, message_id: str, content: str, parts: Sequence[MessagePart] | None = None
    ) -> None:
        ...


class InMemoryMessageStore:
    """In-memory thread and message store.

    Threads with an owner are visible only to that owner; anonymous threads are
    visible to every caller. Finalized messages ignore further content updates.
    """

    def __init__(self) -> None:
        self.threads: dict[str, Thread] = {}
        self.messages: dict[str, Message] = {}
        self.summaries: dict[str, MessageSummary] = {}

    # Threads

    async def create_thread(self, user_id: str | None = None, title: str | None = None) -> Thread:
        """Create a thread.

        Args:
            user_id: Owner, or None for an anonymous thread
            title: Initial title; defaults to "New Chat"

        Returns:
            The new thread
        """
        thread = Thread(id=self._generate_id(), title=title or "New Chat", user_id=user_id)
        self.threads[thread.id] = thread
        logger.debug(f"Created thread {thread.id} for {user_id or 'anonymous'}")
        return thread

    async def get_thread(self, thread_id: str, user_id: str | None = None) -> Thread:
        """Get a thread the caller may access.

        Raises:
            ThreadNotFound: If the thread does not exist
            Unauthorized: If the thread belongs to a different user
        """
        thread = self.threads.get(thread_id)
        if thread is None:
            raise ThreadNotFound(thread_id)
        if thread.user_id is not None and thread.user_id != user_id:
            logger.warning(f"User {user_id} denied access to thread {thread_id}")
            raise Unauthorized()
        return thread

    async def list_threads(self, user_id: str | None) -> list[Thread]:
        """List a user's threads, most recently active first. Anonymous callers own none."""
        if user_id is None:
            return []
        threads = [thread for thread in self.threads.values() if thread.user_id == user_id]
        return sorted(threads, key=lambda thread: thread.last_message_at, reverse=True)

    async def update_thread_title(self, thread_id: str, title: str) -> Thread:
        """Set a thread's title.

        Raises:
            ThreadNotFound: If the thread does not exist
        """
        thread = self.threads.get(thread_id)
        if thread is None:
            raise ThreadNotFound(thread_id)
        thread.title = title
        thread.updated_at = utc_now()
        return thread

    # Messages

    async def create_message(
        self,
        thread_id: str,
        role: Role,
        content: str = "",
        *,
        parts: Sequence[MessagePart] | None = None,
        is_complete: bool = True,
        user_id: str | None = None,
        created_at: datetime | None = None,
    ) -> Message:
        """Append a message to a thread.

        Raises:
            ThreadNotFound: If the thread does not exist
        """
        thread = self.threads.get(thread_id)
        if thread is None:
            raise ThreadNotFound(thread_id)

        message = Message(
            id=self._generate_id(),
            thread_id=thread_id,
            role=role,
            content=content,
            parts=list(parts or []),
            is_complete=is_complete,
            user_id=user_id,
            created_at=created_at or utc_now(),
        )
        self.messages[message.id] = message
        thread.last_message_at = message.created_at
        thread.updated_at = utc_now()
        return message

    async def get_message(self, message_id: str) -> Message:
        """Get a message by id.

        Raises:
            MessageNotFound: If the message does not exist
        """
        message = self.messages.get(message_id)
        if message is None:
            raise MessageNotFound(message_id)
        return message

    async def list_messages(self, thread_id: str) -> list[Message]:
        """List a thread's messages, oldest first."""
        messages = [message for message in self.messages.values() if message.thread_id == thread_id]
        return sorted(messages, key=lambda message: message.created_at)

    async def update_content(
        self, message_id: str, content: str, parts: Sequence[MessagePart] | None = None
    ) -> None:
        """Replace the content of an in-flight message.

        Raises:
            MessageNotFound: If the message does not exist
        """
        message = await self.get_message(message_id)
        if message.is_complete:
            logger.debug(f"Ignoring update to finalized message {message_id}")
            return
        message.content = content
        if parts is not None:
            message.parts = list(parts)

    async def finalize_content(
        self, message_id: str, content: str, parts: Sequence[MessagePart] | None = None
    ) -> None:
        """Set a message's final content and mark it complete. The last call wins.

        Raises:
            MessageNotFound: If the message does not exist
        """
        message = await self.get_message(message_id)
        message.content = content
        if parts is not None:
            message.parts = list(parts)
        message.is_complete = True

    async def delete_trailing_messages(self, thread_id: str, from_created_at: datetime, inclusive: bool = True) -> int:
        """Delete every message in a thread created at or after a point in time.

        Returns:
            Number of messages deleted
        """
        doomed = [
            message.id
            for message in self.messages.values()
            if message.thread_id == thread_id
            and (message.created_at >= from_created_at if inclusive else message.created_at > from_created_at)
        ]
        for message_id in doomed:
            del self.messages[message_id]
            self.summaries.pop(message_id, None)
        return len(doomed)

    # Summaries

    async def create_summary(self, thread_id: str, message_id: str, content: str) -> MessageSummary:
        """Store the summary of a message, replacing any earlier one."""
        summary = MessageSummary(id=self._generate_id(), thread_id=thread_id, message_id=message_id, content=content)
        self.summaries[message_id] = summary
        return summary

    async def list_summaries(self, thread_id: str) -> list[MessageSummary]:
        summaries = [summary for summary in self.summaries.values() if summary.thread_id == thread_id]
        return sorted(summaries, key=lambda summary: summary.created_at)

    # Migration

    async def migrate_anonymous_threads(self, threads: Sequence[AnonymousThread], user_id: str) -> list[str]:
        """Import locally kept anonymous threads under an authenticated user.

        Message order and timestamps are preserved.

        Returns:
            Ids of the created threads, in input order
        """
        thread_ids: list[str] = []
        for anonymous in threads:
            thread = await self.create_thread(user_id=user_id, title=anonymous.title)
            thread.created_at = anonymous.created_at
            for anonymous_message in sorted(anonymous.messages, key=lambda message: message.created_at):
                await self.create_message(
                    thread.id,
                    anonymous_message.role,
                    anonymous_message.content,
                    parts=anonymous_message.parts,
                    user_id=user_id,
                    created_at=anonymous_message.created_at,
                )
            thread_ids.append(thread.id)

        logger.info(f"Migrated {len(thread_ids)} anonymous thread(s) for user {user_id}")
        return thread_ids

    def _generate_id(self) -> str:
        """Generate a new CUID-based id."""
        return cuid()
