"""OpenAI-compatible backend (Ollama /v1, llama.cpp, LM Studio) via the OpenAI client."""

from __future__ import annotations

import logging
from typing import AsyncIterator

from openai import AsyncOpenAI

from ollama_chat.models.streaming import ChatMessages

logger = logging.getLogger(__name__)


def _openai_base_url(host: str) -> str:
    u = (host or "http://localhost:11434").rstrip("/")
    if not u.endswith("/v1"):
        u += "/v1"
    return u


class OpenAICompatSource:
    """Streams delta.content from chat.completions."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.2",
        api_key: str = "ollama",
        timeout: float = 120.0,
    ) -> None:
        self._client = AsyncOpenAI(
            base_url=_openai_base_url(host), api_key=api_key or "ollama", timeout=timeout
        )
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def stream_chat(self, messages: ChatMessages) -> AsyncIterator[str]:
        """Async generator of content deltas."""

        async def _stream() -> AsyncIterator[str]:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                stream=True,
            )
            async for chunk in stream:
                delta = chunk.choices[0].delta if chunk.choices else None
                yield (getattr(delta, "content", None) or "") if delta else ""

        return _stream()
