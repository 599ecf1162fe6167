"""Pytest fixtures and config."""

from typing import AsyncIterator

import pytest

from ollama_chat.streams.conversation import InMemoryConversationStore


@pytest.fixture(autouse=True)
def env_cleanup(monkeypatch):
    """Avoid picking up the developer's Ollama/Redis settings."""
    for name in (
        "OLLAMA_HOST",
        "OLLAMA_MODEL",
        "OLLAMA_API",
        "OLLAMA_API_KEY",
        "OLLAMA_CHAT_ENV",
        "STREAM_MIN_WRITE_INTERVAL",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/1")
    yield


@pytest.fixture
def store():
    return InMemoryConversationStore()


class FakeSource:
    """StreamingSource yielding fixed fragments, optionally raising afterwards."""

    def __init__(self, fragments, error: Exception | None = None) -> None:
        self.fragments = list(fragments)
        self.error = error
        self.calls: list = []

    def stream_chat(self, messages) -> AsyncIterator[str]:
        self.calls.append(messages)

        async def _stream():
            for f in self.fragments:
                yield f
            if self.error is not None:
                raise self.error

        return _stream()


@pytest.fixture
def fake_source():
    return FakeSource
