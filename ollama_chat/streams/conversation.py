"""Conversation state store: entries addressed by (conversationId, messageId).

Every set replaces the entry and notifies watchers of that conversation in the
order the writes were issued. Two implementations: Redis (hash per conversation
plus a pub/sub channel of the same name) and in-process (tests, single worker).
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, Protocol, runtime_checkable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ollama_chat.core.errors import StoreWriteError
from ollama_chat.core.events import ConversationMessage

logger = logging.getLogger(__name__)

KEY_PREFIX = "ollama_chat:conversation:"
TTL = 86400  # 24h


@runtime_checkable
class ConversationStateStore(Protocol):
    async def set(self, partition_key: str, item_key: str, value: ConversationMessage) -> None:
        ...


class RedisConversationStore:
    """Hash ``<prefix><conversationId>`` holds one JSON entry per message id."""

    def __init__(self, redis_url: str, ttl_seconds: int = TTL) -> None:
        self._redis_url = redis_url
        self._ttl = ttl_seconds
        self._client: aioredis.Redis | None = None

    async def connect(self) -> None:
        if self._client is None:
            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
            await self._client.ping()

    async def close(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None

    def _key(self, partition_key: str) -> str:
        return f"{KEY_PREFIX}{partition_key}"

    async def set(self, partition_key: str, item_key: str, value: ConversationMessage) -> None:
        """Store and publish in one MULTI so watchers never see a write the hash lacks."""
        try:
            await self.connect()
            key = self._key(partition_key)
            raw = value.to_json()
            event = json.dumps({"event": "set", "id": item_key, "data": json.loads(raw)})
            pipe = self._client.pipeline(transaction=True)
            pipe.hset(key, item_key, raw)
            pipe.expire(key, self._ttl)
            pipe.publish(key, event)
            await pipe.execute()
        except RedisError as e:
            raise StoreWriteError(partition_key, item_key, str(e)) from e

    async def get(self, partition_key: str, item_key: str) -> ConversationMessage | None:
        await self.connect()
        raw = await self._client.hget(self._key(partition_key), item_key)
        if raw is None:
            return None
        return ConversationMessage.model_validate_json(raw)

    async def get_group(self, partition_key: str) -> dict[str, ConversationMessage]:
        await self.connect()
        raw = await self._client.hgetall(self._key(partition_key))
        out = {}
        for item_key, value in raw.items():
            try:
                out[item_key] = ConversationMessage.model_validate_json(value)
            except ValueError:
                logger.warning("skipping unreadable entry", extra={"item_key": item_key})
        return out

    async def watch(
        self, partition_key: str, ready: asyncio.Event | None = None
    ) -> AsyncIterator[tuple[str, ConversationMessage]]:
        """Yield (messageId, entry) for every write to the conversation. Runs until cancelled.

        ready is set once the subscription is live; writes before that are not seen.
        """
        await self.connect()
        pubsub = self._client.pubsub()
        await pubsub.subscribe(self._key(partition_key))
        if ready is not None:
            ready.set()
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    event = json.loads(message["data"])
                    entry = ConversationMessage.model_validate(event["data"])
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning("bad conversation event", extra={"error": str(e)})
                    continue
                yield event["id"], entry
        finally:
            await pubsub.unsubscribe()
            await pubsub.close()


class InMemoryConversationStore:
    """Process-local store. Keeps the full write history for inspection."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, ConversationMessage]] = {}
        self._watchers: dict[str, list[asyncio.Queue]] = {}
        self.history: list[tuple[str, str, ConversationMessage]] = []

    async def set(self, partition_key: str, item_key: str, value: ConversationMessage) -> None:
        self._entries.setdefault(partition_key, {})[item_key] = value
        self.history.append((partition_key, item_key, value))
        for queue in self._watchers.get(partition_key, []):
            queue.put_nowait((item_key, value))

    async def get(self, partition_key: str, item_key: str) -> ConversationMessage | None:
        return self._entries.get(partition_key, {}).get(item_key)

    async def get_group(self, partition_key: str) -> dict[str, ConversationMessage]:
        return dict(self._entries.get(partition_key, {}))

    def writes_for(self, partition_key: str, item_key: str) -> list[ConversationMessage]:
        return [v for p, i, v in self.history if p == partition_key and i == item_key]

    async def watch(
        self, partition_key: str, ready: asyncio.Event | None = None
    ) -> AsyncIterator[tuple[str, ConversationMessage]]:
        queue: asyncio.Queue = asyncio.Queue()
        self._watchers.setdefault(partition_key, []).append(queue)
        if ready is not None:
            ready.set()
        try:
            while True:
                yield await queue.get()
        finally:
            self._watchers[partition_key].remove(queue)
