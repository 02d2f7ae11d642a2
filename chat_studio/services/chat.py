"""Chat submission service for persisted threads."""

import asyncio
from collections.abc import Coroutine, Mapping
from dataclasses import dataclass
from typing import Any

from chat_studio.models.ai_models import get_model_config
from chat_studio.models.chat import Message, TextPart
from chat_studio.orchestration.controller import ChatStreamController, ControllerState
from chat_studio.orchestration.pipeline import ChatPipeline
from chat_studio.services.message_store import InMemoryMessageStore
from chat_studio.services.titles import TitleGenerator
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ActiveStream:
    """Bookkeeping for one in-flight assistant message."""

    thread_id: str
    controller: ChatStreamController
    abort_event: asyncio.Event
    task: asyncio.Task[None]


class ChatService:
    """Accepts user messages and runs one stream controller per assistant placeholder.

    A thread has at most one reply in flight: submitting a new message aborts the
    previous reply and waits for it to finalize first.
    """

    def __init__(
        self,
        store: InMemoryMessageStore,
        pipeline: ChatPipeline,
        title_generator: TitleGenerator | None = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.title_generator = title_generator
        self._active: dict[str, ActiveStream] = {}
        self._background: set[asyncio.Task[object]] = set()

    async def send_message(
        self,
        thread_id: str,
        content: str,
        model_name: str,
        *,
        user_api_key: str | None = None,
        user_keys: Mapping[str, str | None] | None = None,
        web_search_enabled: bool = False,
        user_id: str | None = None,
    ) -> tuple[Message, Message]:
        """Store a user message and start generating the reply.

        Args:
            thread_id: Target thread
            content: User message text
            model_name: Display name from the model catalog
            user_api_key: Caller key for the selected model's provider
            user_keys: Caller keys by provider
            web_search_enabled: Offer the web search tool to the model
            user_id: Caller identity, None when anonymous

        Returns:
            The stored user message and the in-flight assistant placeholder

        Raises:
            UnknownModel: If the model name is not configured; nothing is stored
            ThreadNotFound: If the thread does not exist
            Unauthorized: If the caller does not own the thread
        """
        get_model_config(model_name)
        await self.store.get_thread(thread_id, user_id)
        await self._abort_thread(thread_id)

        previous = await self.store.list_messages(thread_id)
        is_first = not any(message.role == "user" for message in previous)

        user_message = await self.store.create_message(
            thread_id, "user", content, parts=[TextPart(text=content)], user_id=user_id
        )
        history = [message.as_chat_message() for message in [*previous, user_message] if message.content]
        assistant_message = await self.store.create_message(thread_id, "assistant", is_complete=False, user_id=user_id)

        controller = ChatStreamController(self.pipeline, self.store)
        abort_event = asyncio.Event()
        task = asyncio.create_task(
            controller.run(
                thread_id,
                assistant_message.id,
                history,
                model_name,
                user_api_key,
                user_keys=user_keys,
                web_search_enabled=web_search_enabled,
                abort_event=abort_event,
            ),
            name=f"chat-stream-{assistant_message.id}",
        )
        self._active[assistant_message.id] = ActiveStream(thread_id, controller, abort_event, task)
        task.add_done_callback(lambda _: self._active.pop(assistant_message.id, None))

        if self.title_generator is not None:
            self._spawn(
                self.title_generator.generate_for_message(
                    self.store,
                    content,
                    thread_id=thread_id,
                    message_id=user_message.id,
                    is_title=is_first,
                    user_google_key=(user_keys or {}).get("google"),
                )
            )

        return user_message, assistant_message

    def is_active(self, message_id: str) -> bool:
        return message_id in self._active

    def cancel(self, message_id: str) -> bool:
        """Stop generating a reply; whatever was generated so far is kept.

        Returns:
            True if the reply was in flight
        """
        active = self._active.get(message_id)
        if active is None:
            return False

        logger.info(f"Cancelling reply {message_id}")
        active.abort_event.set()
        # A controller that has not started yet sees the event and finalizes without a provider call
        if active.controller.state == ControllerState.STREAMING:
            active.task.cancel()
        return True

    async def wait(self, message_id: str) -> None:
        """Wait until a reply is finalized."""
        active = self._active.get(message_id)
        if active is not None:
            await asyncio.wait([active.task])

    async def _abort_thread(self, thread_id: str) -> None:
        message_ids = [message_id for message_id, active in self._active.items() if active.thread_id == thread_id]
        tasks = [self._active[message_id].task for message_id in message_ids]
        for message_id in message_ids:
            self.cancel(message_id)
        if tasks:
            await asyncio.wait(tasks)

    def _spawn(self, coro: Coroutine[Any, Any, object]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def shutdown(self) -> None:
        """Cancel every in-flight reply and wait for background work to settle."""
        tasks = [active.task for active in self._active.values()]
        for message_id in list(self._active):
            self.cancel(message_id)
        tasks.extend(self._background)
        if tasks:
            await asyncio.wait(tasks)
        logger.info(f"Chat service stopped ({len(tasks)} task(s) drained)")
