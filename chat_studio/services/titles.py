"""Thread title and message summary generation."""

import re
from dataclasses import dataclass

from chat_studio.clients.base import ProviderAdapter
from chat_studio.clients.factory import get_adapter
from chat_studio.config import Settings, get_settings
from chat_studio.errors import ChatStudioError
from chat_studio.models.llm import ChatMessage
from chat_studio.prompts import TITLE_SYSTEM_PROMPT
from chat_studio.services.keys import KeyResolver
from chat_studio.services.message_store import InMemoryMessageStore
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 80

_FORBIDDEN = re.compile(r"[\"'“”‘’`:]")


def clean_title(raw: str) -> str:
    """Strip quotes and colons, collapse whitespace and cap the length."""
    title = " ".join(_FORBIDDEN.sub("", raw).split())
    if len(title) > MAX_TITLE_LENGTH:
        title = title[:MAX_TITLE_LENGTH].rstrip()
    return title


@dataclass
class TitleOutcome:
    success: bool
    title: str | None = None


class TitleGenerator:
    """One-shot Gemini completion that summarizes a message into a short title.

    Uses the Google adapter's non-streaming call with no tools. The key comes from
    the caller or the host configuration.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        key_resolver: KeyResolver | None = None,
        adapter: ProviderAdapter | None = None,
    ):
        self.settings = settings or get_settings()
        self.key_resolver = key_resolver or KeyResolver(self.settings)
        self.adapter = adapter or get_adapter("google", settings=self.settings)

    async def generate(self, prompt: str, user_google_key: str | None = None) -> str:
        """Generate a title for a message.

        Args:
            prompt: The message to summarize
            user_google_key: Caller's Google key, if any

        Returns:
            Title of at most 80 characters without quotes or colons

        Raises:
            MissingCredential: If no Google key is available
            ProviderError: On transport or API failure
        """
        key = self.key_resolver.resolve("google", user_google_key)
        raw = await self.adapter.complete(
            key.api_key,
            self.settings.title_model_id,
            [ChatMessage(role="user", content=prompt)],
            system=TITLE_SYSTEM_PROMPT,
        )
        return clean_title(raw)

    async def generate_for_message(
        self,
        store: InMemoryMessageStore,
        prompt: str,
        *,
        thread_id: str,
        message_id: str,
        is_title: bool = False,
        user_google_key: str | None = None,
    ) -> TitleOutcome:
        """Generate and store a message summary, and the thread title when ``is_title`` is set.

        Any failure, including a missing key, is logged and reported as
        ``success=False`` instead of raised.
        """
        try:
            title = await self.generate(prompt, user_google_key)
            if is_title:
                await store.update_thread_title(thread_id, title)
            await store.create_summary(thread_id, message_id, title)
        except ChatStudioError as e:
            logger.error(f"Failed to generate title: {e}")
            return TitleOutcome(success=False)
        except Exception as e:
            logger.error(f"Failed to generate title unexpectedly: {e}", exc_info=True)
            return TitleOutcome(success=False)

        logger.info(f"Generated {'title' if is_title else 'summary'} for message {message_id}")
        return TitleOutcome(success=True, title=title)
