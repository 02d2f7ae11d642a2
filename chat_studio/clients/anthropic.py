"""Anthropic Messages API adapter."""

from collections.abc import AsyncIterator
from typing import Any

import anthropic
import httpx
from anthropic import AsyncAnthropic

from chat_studio.clients.base import ProviderAdapter
from chat_studio.models.llm import ChatMessage


class AnthropicAdapter(ProviderAdapter):
    """Adapter for Claude models.

    Anthropic takes the system prompt as a top-level field and requires
    ``max_tokens`` on every request.
    """

    provider = "anthropic"
    sdk_errors = (anthropic.APIError, httpx.HTTPError)

    def create_client(self, api_key: str) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=api_key)

    def format_messages(self, turns: list[ChatMessage]) -> list[dict[str, Any]]:
        return [{"role": message.role, "content": message.content} for message in turns]

    def request_params(
        self,
        model_id: str,
        messages: list[dict[str, Any]],
        system: str | None,
        temperature: float | None,
        **extra: Any,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": model_id,
            "max_tokens": self.settings.max_output_tokens,
            "messages": messages,
            **extra,
        }
        if system:
            params["system"] = system
        if temperature is not None:
            params["temperature"] = temperature
        return params

    async def _stream(
        self,
        client: AsyncAnthropic,
        model_id: str,
        turns: list[ChatMessage],
        system: str | None,
        temperature: float | None,
    ) -> AsyncIterator[str]:
        params = self.request_params(model_id, self.format_messages(turns), system, temperature, stream=True)
        stream = await client.messages.create(**params)
        try:
            async for event in stream:
                # message_start, content_block_start/stop, message_delta carry no text
                if event.type == "content_block_delta" and event.delta.type == "text_delta" and event.delta.text:
                    yield event.delta.text
        finally:
            await stream.close()

    async def _complete(
        self,
        client: AsyncAnthropic,
        model_id: str,
        turns: list[ChatMessage],
        system: str | None,
        temperature: float | None,
    ) -> str:
        params = self.request_params(model_id, self.format_messages(turns), system, temperature)
        response = await client.messages.create(**params)
        return text_of(response.content)


def text_of(content: list[Any]) -> str:
    """Join the text blocks of an Anthropic response."""
    return "".join(block.text for block in content if block.type == "text")
