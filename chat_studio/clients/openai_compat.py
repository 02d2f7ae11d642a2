"""OpenAI-compatible chat completion adapters (OpenAI and OpenRouter)."""

from collections.abc import AsyncIterator
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from chat_studio.clients.base import ProviderAdapter
from chat_studio.models.llm import ChatMessage


class OpenAICompatibleAdapter(ProviderAdapter):
    """Shared shape for providers that speak the OpenAI chat completions protocol."""

    provider = "openai"
    sdk_errors = (openai.APIError, httpx.HTTPError)

    @property
    def base_url(self) -> str | None:
        return None

    def create_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self.base_url)

    def format_messages(self, turns: list[ChatMessage], system: str | None) -> list[dict[str, Any]]:
        """Convert turns to chat completion messages, system prompt first."""
        formatted: list[dict[str, Any]] = []
        if system:
            formatted.append({"role": "system", "content": system})
        formatted.extend({"role": message.role, "content": message.content} for message in turns)
        return formatted

    def request_params(
        self,
        model_id: str,
        messages: list[dict[str, Any]],
        temperature: float | None,
        **extra: Any,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"model": model_id, "messages": messages, **extra}
        if temperature is not None:
            params["temperature"] = temperature
        return params

    async def _stream(
        self,
        client: AsyncOpenAI,
        model_id: str,
        turns: list[ChatMessage],
        system: str | None,
        temperature: float | None,
    ) -> AsyncIterator[str]:
        params = self.request_params(model_id, self.format_messages(turns, system), temperature, stream=True)
        stream = await client.chat.completions.create(**params)
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        finally:
            await stream.close()

    async def _complete(
        self,
        client: AsyncOpenAI,
        model_id: str,
        turns: list[ChatMessage],
        system: str | None,
        temperature: float | None,
    ) -> str:
        params = self.request_params(model_id, self.format_messages(turns, system), temperature)
        response = await client.chat.completions.create(**params)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class OpenAIAdapter(OpenAICompatibleAdapter):
    """OpenAI's own endpoint."""

    provider = "openai"


class OpenRouterAdapter(OpenAICompatibleAdapter):
    """OpenRouter, reached through the OpenAI SDK with a different base URL."""

    provider = "openrouter"

    @property
    def base_url(self) -> str | None:
        return self.settings.openrouter_base_url
