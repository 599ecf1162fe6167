"""Tests for worker wiring in main.run_worker (bus, store and model mocked)."""

from __future__ import annotations

import asyncio
import signal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ollama_chat.config.loader import Config
from ollama_chat.main import run_worker


@pytest.mark.asyncio
async def test_run_worker_wires_and_cleans_up():
    config = Config.load()
    bus = MagicMock()
    bus.connect = AsyncMock()
    bus.disconnect = AsyncMock()
    bus.run_listener = AsyncMock()
    store = MagicMock()
    store.connect = AsyncMock()
    store.close = AsyncMock()
    with patch("ollama_chat.core.bus.EventBus", return_value=bus) as bus_cls, patch(
        "ollama_chat.streams.conversation.RedisConversationStore", return_value=store
    ) as store_cls, patch("ollama_chat.models.gateway.create_source") as create_source:
        await run_worker(config)
    bus_cls.assert_called_once_with(config.redis.url)
    store_cls.assert_called_once_with(config.redis.url, ttl_seconds=config.stream.ttl_seconds)
    create_source.assert_called_once_with(config.ollama)
    bus.subscribe_chat_message.assert_called_once()
    bus.run_listener.assert_awaited_once()
    bus.stop.assert_called_once()
    bus.disconnect.assert_awaited_once()
    store.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_sigterm_stops_listener_and_cleans_up():
    config = Config.load()
    listening = asyncio.Event()

    async def run_listener():
        listening.set()
        await asyncio.Event().wait()

    bus = MagicMock()
    bus.connect = AsyncMock()
    bus.disconnect = AsyncMock()
    bus.run_listener = run_listener
    store = MagicMock()
    store.connect = AsyncMock()
    store.close = AsyncMock()
    handlers = {}

    def add_signal_handler(sig, callback, *args):
        handlers[sig] = (callback, args)

    loop = asyncio.get_running_loop()
    with patch("ollama_chat.core.bus.EventBus", return_value=bus), patch(
        "ollama_chat.streams.conversation.RedisConversationStore", return_value=store
    ), patch("ollama_chat.models.gateway.create_source"), patch.object(
        loop, "add_signal_handler", side_effect=add_signal_handler
    ), patch.object(loop, "remove_signal_handler") as remove_signal_handler:
        worker = asyncio.create_task(run_worker(config))
        await asyncio.wait_for(listening.wait(), timeout=1)
        assert signal.SIGTERM in handlers
        callback, args = handlers[signal.SIGTERM]
        callback(*args)
        await asyncio.wait_for(worker, timeout=1)
    remove_signal_handler.assert_any_call(signal.SIGTERM)
    bus.stop.assert_called_once()
    bus.disconnect.assert_awaited_once()
    store.close.assert_awaited_once()
