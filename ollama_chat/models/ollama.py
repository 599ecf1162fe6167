"""Ollama native API: POST /api/chat with stream=true. See https://github.com/ollama/ollama/blob/main/docs/api.md."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx

from ollama_chat.core.errors import ModelStreamError
from ollama_chat.models.streaming import ChatMessages

logger = logging.getLogger(__name__)


def _native_base_url(host: str) -> str:
    """Normalize OLLAMA_HOST: add scheme, drop trailing /v1 of an OpenAI-compat base."""
    u = (host or "").strip().rstrip("/")
    if u.endswith("/v1"):
        u = u[:-3]
    u = u.rstrip("/")
    if not u:
        return "http://localhost:11434"
    if "://" not in u:
        u = f"http://{u}"
    return u


def _parse_line(line: str) -> dict[str, Any] | None:
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise ModelStreamError(f"malformed stream line: {line[:80]!r}") from e
    if not isinstance(data, dict):
        raise ModelStreamError(f"unexpected stream line: {line[:80]!r}")
    if data.get("error"):
        raise ModelStreamError(str(data["error"]))
    return data


class OllamaChatSource:
    """Streams message.content fragments from Ollama's native chat endpoint."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.2",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._root = _native_base_url(host)
        self._model = model
        self._timeout = timeout
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    def stream_chat(self, messages: ChatMessages) -> AsyncIterator[str]:
        """Yield content fragments; empty ones are passed through unchanged."""

        async def _stream() -> AsyncIterator[str]:
            url = f"{self._root}/api/chat"
            body = {"model": self._model, "messages": messages, "stream": True}
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream("POST", url, json=body) as resp:
                    if resp.status_code >= 400:
                        detail = (await resp.aread()).decode("utf-8", errors="replace")
                        raise ModelStreamError(
                            f"Ollama returned {resp.status_code}: {detail[:200]}"
                        )
                    async for line in resp.aiter_lines():
                        data = _parse_line(line)
                        if data is None:
                            continue
                        yield (data.get("message") or {}).get("content") or ""
                        if data.get("done"):
                            logger.debug(
                                "ollama stream done",
                                extra={"model": self._model, "done_reason": data.get("done_reason")},
                            )
                            return

        return _stream()
