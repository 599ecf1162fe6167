"""AiResponse step: stream a model reply into the conversation store.

Subscribes to chat-message and emits nothing. Each event is one session that
writes to a single address (conversationId, assistantMessageId):

    ("", streaming) -> (cumulative text, streaming)* -> (final text, completed)

The first write lands before the model is asked for anything, so watchers see
the reply as in progress right away. Exactly one completed write ends the
session. When the model stream fails, that write carries APOLOGY_TEXT instead
of the partial reply and the failure is not raised to the bus. Writes are
awaited one at a time so a watcher never sees a shorter text after a longer one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable

from ollama_chat.config.loader import DEFAULT_SYSTEM_PROMPT
from ollama_chat.core.errors import AggregatorStateError
from ollama_chat.core.events import ChatMessage, ConversationMessage, MessageStatus
from ollama_chat.models.streaming import StreamingSource, build_messages
from ollama_chat.streams.conversation import ConversationStateStore

logger = logging.getLogger(__name__)

APOLOGY_TEXT = "Sorry, I encountered an error. Please try again."


async def _next_fragment(it: AsyncIterator[str]) -> str:
    return await it.__anext__()


class AggregatorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    STREAMING = "streaming"
    COMPLETED = "completed"


class SessionOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class SessionResult:
    conversation_id: str
    assistant_message_id: str
    outcome: SessionOutcome
    text: str
    writes: int
    error: str | None = None


class ResponseAggregator:
    """Owns the writes to one address for one session.

    min_write_interval > 0 coalesces fragments: a streaming write is skipped
    when the previous write is more recent than the interval. Skipped text is
    written once the interval has passed, even if the model is still silent,
    and always before the completed write.

    result holds the SessionResult of run(), including a cancelled session.
    """

    def __init__(
        self,
        store: ConversationStateStore,
        conversation_id: str,
        assistant_message_id: str,
        *,
        min_write_interval: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._conversation_id = conversation_id
        self._message_id = assistant_message_id
        self._min_write_interval = max(0.0, min_write_interval)
        self._clock = clock
        self._state = AggregatorState.UNINITIALIZED
        self._text = ""
        self._published = ""
        self._last_write: float | None = None
        self.writes = 0
        self.result: SessionResult | None = None

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def text(self) -> str:
        return self._text

    def _require(self, state: AggregatorState) -> None:
        if self._state != state:
            raise AggregatorStateError(
                f"{self._conversation_id}/{self._message_id} is {self._state.value}, expected {state.value}"
            )

    async def _write(self, text: str, status: MessageStatus) -> bool:
        entry = ConversationMessage.assistant(text, status)
        try:
            await self._store.set(self._conversation_id, self._message_id, entry)
        except Exception as e:
            logger.warning(
                "conversation write failed",
                extra={
                    "conversation_id": self._conversation_id,
                    "assistant_message_id": self._message_id,
                    "status": status.value,
                    "error": str(e),
                },
            )
            return False
        self.writes += 1
        self._last_write = self._clock()
        if status == MessageStatus.STREAMING:
            self._published = text
        return True

    def _should_coalesce(self) -> bool:
        if self._min_write_interval <= 0 or self._last_write is None:
            return False
        return self._clock() - self._last_write < self._min_write_interval

    async def initialize(self) -> None:
        self._require(AggregatorState.UNINITIALIZED)
        self._state = AggregatorState.STREAMING
        await self._write("", MessageStatus.STREAMING)

    async def accumulate(self, fragment: str) -> bool:
        """Append a fragment. Returns True when it produced a write."""
        self._require(AggregatorState.STREAMING)
        if not fragment:
            return False
        self._text += fragment
        if self._should_coalesce():
            return False
        return await self._write(self._text, MessageStatus.STREAMING)

    async def finalize(self, failed: bool = False) -> str:
        """The one completed write. Returns the text it carried."""
        self._require(AggregatorState.STREAMING)
        if failed:
            final = APOLOGY_TEXT
        else:
            if self._published != self._text:
                await self._write(self._text, MessageStatus.STREAMING)
            final = self._text
        self._state = AggregatorState.COMPLETED
        if not await self._write(final, MessageStatus.COMPLETED):
            logger.error(
                "completed write lost; entry may stay streaming",
                extra={"conversation_id": self._conversation_id, "assistant_message_id": self._message_id},
            )
        return final

    def _flush_delay(self) -> float | None:
        """Seconds until unwritten text is due, or None when nothing is pending."""
        if self._min_write_interval <= 0 or self._published == self._text:
            return None
        if self._last_write is None:
            return 0.0
        return max(0.0, self._min_write_interval - (self._clock() - self._last_write))

    async def _consume_coalesced(self, fragments: AsyncIterator[str]) -> None:
        """Like async for + accumulate, but flushes skipped text when the source stalls."""
        it = fragments.__aiter__()
        pending: asyncio.Task | None = None
        # after a failed flush, wait for the next fragment instead of retrying at once
        flush_due = True
        try:
            while True:
                if pending is None:
                    pending = asyncio.create_task(_next_fragment(it))
                timeout = self._flush_delay() if flush_due else None
                # asyncio.wait leaves the fragment read running on timeout
                done, _ = await asyncio.wait({pending}, timeout=timeout)
                if not done:
                    flush_due = await self._write(self._text, MessageStatus.STREAMING)
                    continue
                task, pending = pending, None
                flush_due = True
                try:
                    fragment = task.result()
                except StopAsyncIteration:
                    return
                await self.accumulate(fragment)
        finally:
            if pending is not None:
                pending.cancel()

    async def run(self, open_stream: Callable[[], AsyncIterator[str]]) -> SessionResult:
        """initialize, consume the stream opened after it, finalize."""
        self._require(AggregatorState.UNINITIALIZED)
        try:
            await self.initialize()
            fragments = open_stream()
            if self._min_write_interval > 0:
                await self._consume_coalesced(fragments)
            else:
                async for fragment in fragments:
                    await self.accumulate(fragment)
        except asyncio.CancelledError:
            logger.warning(
                "AI response cancelled",
                extra={"conversation_id": self._conversation_id, "response_length": len(self._text)},
            )
            final = self._text
            if self._state == AggregatorState.STREAMING:
                final = await self.finalize()
            self._result(SessionOutcome.CANCELLED, final)
            raise
        except Exception as e:
            logger.exception(
                "Error generating AI response",
                extra={"conversation_id": self._conversation_id, "error": str(e)},
            )
            final = await self.finalize(failed=True)
            return self._result(SessionOutcome.FAILED, final, error=str(e))
        final = await self.finalize()
        return self._result(SessionOutcome.COMPLETED, final)

    def _result(self, outcome: SessionOutcome, text: str, error: str | None = None) -> SessionResult:
        self.result = SessionResult(
            conversation_id=self._conversation_id,
            assistant_message_id=self._message_id,
            outcome=outcome,
            text=text,
            writes=self.writes,
            error=error,
        )
        return self.result


class AiResponseStep:
    """Handler for chat-message events."""

    name = "AiResponse"
    subscribes = ("chat-message",)

    def __init__(
        self,
        store: ConversationStateStore,
        source: StreamingSource,
        *,
        system_prompt: str | None = DEFAULT_SYSTEM_PROMPT,
        min_write_interval: float = 0.0,
    ) -> None:
        self._store = store
        self._source = source
        self._system_prompt = system_prompt
        self._min_write_interval = min_write_interval

    async def handle(self, event: ChatMessage) -> SessionResult:
        logger.info("Generating AI response", extra={"conversation_id": event.conversation_id})
        aggregator = ResponseAggregator(
            self._store,
            event.conversation_id,
            event.assistant_message_id,
            min_write_interval=self._min_write_interval,
        )
        messages = build_messages(self._system_prompt, event.message)
        result = await aggregator.run(lambda: self._source.stream_chat(messages))
        if result.outcome == SessionOutcome.COMPLETED:
            logger.info(
                "AI response completed",
                extra={"conversation_id": event.conversation_id, "response_length": len(result.text)},
            )
        return result
