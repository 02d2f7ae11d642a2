"""Token estimation and context-window truncation."""

from collections.abc import Sequence

import tiktoken

from chat_studio.models.llm import ChatMessage
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

# Rough per-message overhead for role markers and separators
MESSAGE_OVERHEAD_TOKENS = 3


class TokenBudget:
    """Estimates token counts with an OpenAI tokenizer and trims history to fit a model.

    The same tokenizer is used for every provider. Counts are approximations.
    """

    def __init__(self, encoding_name: str | None = "cl100k_base", response_headroom: int = 4096):
        """Initialize token budget.

        Args:
            encoding_name: tiktoken encoding; None skips the tokenizer and uses the
                4-characters-per-token heuristic
            response_headroom: Tokens reserved for the model's reply
        """
        self.encoding_name = encoding_name
        self.response_headroom = response_headroom
        self._tokenizer: tiktoken.Encoding | None = None
        self._tokenizer_loaded = encoding_name is None

    @property
    def tokenizer(self) -> tiktoken.Encoding | None:
        if not self._tokenizer_loaded:
            self._tokenizer_loaded = True
            try:
                self._tokenizer = tiktoken.get_encoding(self.encoding_name)
            except Exception as e:
                logger.warning(f"Tokenizer {self.encoding_name} unavailable, estimating by length: {e}")
                self._tokenizer = None
        return self._tokenizer

    def count_text(self, text: str) -> int:
        """Estimate token count for a piece of text."""
        if not text:
            return 0
        tokenizer = self.tokenizer
        if tokenizer is None:
            return -(-len(text) // 4)
        return len(tokenizer.encode(text, disallowed_special=()))

    def count_messages(self, messages: Sequence[ChatMessage]) -> int:
        """Estimate token count for a message list, including per-message overhead."""
        return sum(
            self.count_text(message.content) + self.count_text(message.role) + MESSAGE_OVERHEAD_TOKENS
            for message in messages
        )

    def truncate(
        self,
        messages: Sequence[ChatMessage],
        context_window: int,
        system_prompt: str | None = None,
    ) -> list[ChatMessage]:
        """Drop the oldest messages until the conversation fits the context window.

        The newest message is always kept, even if it alone exceeds the budget;
        the provider then reports the overflow.

        Args:
            messages: Conversation messages, oldest first
            context_window: Model context window in tokens
            system_prompt: System prompt that will accompany the messages

        Returns:
            Truncated message list, oldest first
        """
        if not messages:
            return []

        available_tokens = context_window - self.response_headroom - self.count_text(system_prompt or "")

        kept: list[ChatMessage] = []
        used = 0
        for message in reversed(messages):
            cost = self.count_messages([message])
            if kept and used + cost > available_tokens:
                break
            kept.append(message)
            used += cost

        kept.reverse()
        if len(kept) < len(messages):
            logger.warning(
                f"Truncated conversation from {len(messages)} to {len(kept)} messages "
                f"to fit within {available_tokens} token limit"
            )
        return kept


_token_budget: TokenBudget | None = None


def get_token_budget() -> TokenBudget:
    """Get or create the shared token budget."""
    global _token_budget
    if _token_budget is None:
        _token_budget = TokenBudget()
    return _token_budget
