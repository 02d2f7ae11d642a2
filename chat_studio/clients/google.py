"""Google Gemini adapter built on the google-genai SDK."""

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from chat_studio.clients.base import ProviderAdapter
from chat_studio.models.llm import ChatMessage


class GoogleAdapter(ProviderAdapter):
    """Adapter for Gemini models.

    Gemini calls the assistant role ``model`` and takes the system prompt as a
    generation config field.
    """

    provider = "google"
    sdk_errors = (genai_errors.APIError, httpx.HTTPError)

    def create_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    def format_messages(self, turns: list[ChatMessage]) -> list[types.Content]:
        return [
            types.Content(
                role="model" if message.role == "assistant" else "user",
                parts=[types.Part.from_text(text=message.content)],
            )
            for message in turns
        ]

    def build_config(
        self,
        system: str | None,
        temperature: float | None,
        **extra: Any,
    ) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(system_instruction=system, temperature=temperature, **extra)

    async def _stream(
        self,
        client: genai.Client,
        model_id: str,
        turns: list[ChatMessage],
        system: str | None,
        temperature: float | None,
    ) -> AsyncIterator[str]:
        stream = await client.aio.models.generate_content_stream(
            model=model_id,
            contents=self.format_messages(turns),
            config=self.build_config(system, temperature),
        )
        async with aclosing(stream):
            async for chunk in stream:
                text = text_of(chunk)
                if text:
                    yield text

    async def _complete(
        self,
        client: genai.Client,
        model_id: str,
        turns: list[ChatMessage],
        system: str | None,
        temperature: float | None,
    ) -> str:
        response = await client.aio.models.generate_content(
            model=model_id,
            contents=self.format_messages(turns),
            config=self.build_config(system, temperature),
        )
        return text_of(response)


def text_of(response: Any) -> str:
    """Join the text parts of a response's first candidate, skipping thoughts and function calls."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].content is None:
        return ""
    parts = candidates[0].content.parts or []
    return "".join(part.text for part in parts if part.text and not getattr(part, "thought", False))
