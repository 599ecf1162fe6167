"""Session runner: one asyncio task per chat-message, tracked until it finishes."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from ollama_chat.core.events import ChatMessage

logger = logging.getLogger(__name__)


class SessionRunner:
    """Runs handlers in background tasks so the bus listener never waits on a model.

    An address that already has a running session is not started twice; a
    second writer on the same entry would interleave with the first.
    """

    def __init__(self, handler: Callable[[ChatMessage], Awaitable[object]]) -> None:
        self._handler = handler
        self._tasks: dict[tuple[str, str], asyncio.Task] = {}

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def on_chat_message(self, event: ChatMessage) -> None:
        """Bus callback. Returns as soon as the session task is scheduled."""
        self.spawn(event)

    def spawn(self, event: ChatMessage) -> asyncio.Task | None:
        address = (event.conversation_id, event.assistant_message_id)
        if address in self._tasks:
            logger.warning(
                "session already running for address, ignoring event",
                extra={"conversation_id": address[0], "assistant_message_id": address[1]},
            )
            return None
        task = asyncio.create_task(self._handler(event), name=f"session:{address[0]}:{address[1]}")
        self._tasks[address] = task
        task.add_done_callback(lambda t: self._on_done(address, t))
        return task

    def _on_done(self, address: tuple[str, str], task: asyncio.Task) -> None:
        self._tasks.pop(address, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "session failed",
                exc_info=exc,
                extra={"conversation_id": address[0], "assistant_message_id": address[1]},
            )

    async def shutdown(self, timeout: float = 5.0) -> int:
        """Cancel running sessions; each gets a chance to write its completed entry.

        Returns how many sessions were still running when the timeout expired.
        """
        tasks = list(self._tasks.values())
        if not tasks:
            return 0
        logger.info("cancelling sessions", extra={"count": len(tasks)})
        for task in tasks:
            task.cancel()
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning(
                "sessions did not finish in time",
                extra={"count": len(pending), "sessions": sorted(t.get_name() for t in pending)},
            )
        return len(pending)
