"""Model Gateway: picks the streaming backend from config.

Streaming contract: see ollama_chat.models.streaming. No retries or fallback here;
a failing backend surfaces as an exception from the fragment iterator."""

from __future__ import annotations

import logging

from ollama_chat.config.loader import OllamaSettings
from ollama_chat.models.local import OpenAICompatSource
from ollama_chat.models.ollama import OllamaChatSource
from ollama_chat.models.streaming import StreamingSource

logger = logging.getLogger(__name__)

API_NATIVE = "native"
API_OPENAI = "openai"


def create_source(settings: OllamaSettings) -> StreamingSource:
    api = (settings.api or API_NATIVE).strip().lower()
    if api == API_NATIVE:
        source: StreamingSource = OllamaChatSource(
            host=settings.host, model=settings.model, timeout=settings.request_timeout
        )
    elif api == API_OPENAI:
        source = OpenAICompatSource(
            host=settings.host,
            model=settings.model,
            api_key=settings.api_key,
            timeout=settings.request_timeout,
        )
    else:
        raise ValueError(f"unknown ollama.api {settings.api!r}; expected native or openai")
    logger.info("model source ready", extra={"api": api, "host": settings.host, "model": settings.model})
    return source
