"""Streaming contract for model responses.

Every backend produces a lazy, ordered, finite sequence of text fragments for
one request. Fragments concatenate in emission order into the full reply and
may be empty. The sequence may raise at any point; nothing follows the error.

- Ollama native /api/chat: one NDJSON object per line, message.content per line.
- OpenAI-compatible stream: delta.content per chunk.

Consumers must iterate incrementally; the whole point is to publish progress
before the reply is complete.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol, runtime_checkable

ChatMessages = list[dict[str, str]]


@runtime_checkable
class StreamingSource(Protocol):
    """Anything that can stream a chat reply as text fragments."""

    def stream_chat(self, messages: ChatMessages) -> AsyncIterator[str]:
        ...


def build_messages(system_prompt: str | None, user_text: str) -> ChatMessages:
    messages: ChatMessages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_text})
    return messages
