"""Entry point for ollama-chat: subscribe AiResponse to the Event Bus and run."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import TYPE_CHECKING

from ollama_chat.config import get_config
from ollama_chat.core.logging_config import setup_logging

if TYPE_CHECKING:
    from ollama_chat.config.loader import Config

logger = logging.getLogger(__name__)


def main() -> None:
    config = get_config()
    setup_logging(level=config.logging.level, use_json=config.logging.use_json)
    if not config.redis.url:
        logger.error("REDIS_URL is required")
        sys.exit(1)
    try:
        asyncio.run(run_worker(config))
    except KeyboardInterrupt:
        logger.info("stopped")


def _request_stop(sig: signal.Signals, listener: asyncio.Task) -> None:
    logger.info("stop requested", extra={"signal": sig.name})
    listener.cancel()


async def run_worker(config: Config) -> None:
    from ollama_chat.core.bus import EventBus
    from ollama_chat.core.sessions import SessionRunner
    from ollama_chat.models.gateway import create_source
    from ollama_chat.steps.ai_response import AiResponseStep
    from ollama_chat.streams.conversation import RedisConversationStore

    bus = EventBus(config.redis.url)
    store = RedisConversationStore(config.redis.url, ttl_seconds=config.stream.ttl_seconds)
    await store.connect()
    step = AiResponseStep(
        store,
        create_source(config.ollama),
        system_prompt=config.ollama.system_prompt,
        min_write_interval=config.stream.min_write_interval,
    )
    sessions = SessionRunner(step.handle)
    bus.subscribe_chat_message(sessions.on_chat_message)
    await bus.connect()
    logger.info("AiResponse worker started", extra={"model": config.ollama.model})
    listener = asyncio.create_task(bus.run_listener())
    loop = asyncio.get_running_loop()
    handled = []
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _request_stop, sig, listener)
            handled.append(sig)
        except (NotImplementedError, RuntimeError):
            # no signal support outside the main thread or on some platforms
            pass
    try:
        await asyncio.wait({listener})
        if not listener.cancelled():
            listener.result()
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)
        if not listener.done():
            listener.cancel()
        bus.stop()
        await sessions.shutdown()
        await bus.disconnect()
        await store.close()


if __name__ == "__main__":
    main()
