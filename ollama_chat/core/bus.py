"""Event Bus: Redis pub/sub for events. Publish and subscribe with typed payloads."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import redis.asyncio as aioredis
from pydantic import BaseModel

from ollama_chat.core.events import ChatMessage

logger = logging.getLogger(__name__)

# Channel names
CH_CHAT_MESSAGE = "ollama_chat:chat-message"


def _serialize(payload: BaseModel) -> str:
    return payload.model_dump_json(by_alias=True)


def _deserialize(raw: bytes, model: type[BaseModel]) -> BaseModel:
    return model.model_validate_json(raw.decode("utf-8"))


class EventBus:
    """Redis-backed event bus. Publish events and subscribe with async handlers."""

    def __init__(self, redis_url: str) -> None:
        self._redis_url = redis_url
        self._client: aioredis.Redis | None = None
        self._pubsub: aioredis.client.PubSub | None = None
        self._handlers: dict[str, list[Callable[..., Awaitable[None]]]] = {}
        self._running = False

    async def connect(self) -> None:
        if self._client is None:
            self._client = aioredis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=False,
            )
            await self._client.ping()
        logger.info("EventBus connected to Redis")

    async def disconnect(self) -> None:
        if self._pubsub:
            await self._pubsub.close()
            self._pubsub = None
        if self._client:
            await self._client.close()
            self._client = None
        self._running = False

    async def publish_chat_message(self, payload: ChatMessage) -> None:
        await self._ensure_connected()
        await self._client.publish(CH_CHAT_MESSAGE, _serialize(payload))
        logger.debug(
            "published chat-message",
            extra={
                "conversation_id": payload.conversation_id,
                "assistant_message_id": payload.assistant_message_id,
            },
        )

    async def _ensure_connected(self) -> None:
        if self._client is None:
            await self.connect()

    def subscribe_chat_message(self, handler: Callable[[ChatMessage], Awaitable[None]]) -> None:
        self._handlers.setdefault(CH_CHAT_MESSAGE, []).append(handler)

    _channel_models: dict[str, type[BaseModel]] = {
        CH_CHAT_MESSAGE: ChatMessage,
    }

    async def _dispatch(self, channel: str, data: bytes) -> None:
        model_cls = self._channel_models.get(channel)
        if model_cls is None or not data:
            return
        try:
            payload = _deserialize(data, model_cls)
        except ValueError as e:
            logger.warning("failed to deserialize event", extra={"channel": channel, "error": str(e)})
            return
        for handler in self._handlers.get(channel, []):
            try:
                await handler(payload)
            except Exception as e:
                logger.exception("handler failed for %s: %s", channel, e)

    async def run_listener(self) -> None:
        """Run the pub/sub listener and dispatch to handlers. Blocks until stop."""
        await self._ensure_connected()
        self._pubsub = self._client.pubsub()
        channels = list(self._channel_models)
        await self._pubsub.subscribe(*channels)
        self._running = True
        logger.info("EventBus listener started", extra={"channels": channels})
        try:
            async for message in self._pubsub.listen():
                if not self._running:
                    break
                if message["type"] != "message":
                    continue
                channel = message["channel"]
                if isinstance(channel, bytes):
                    channel = channel.decode("utf-8")
                await self._dispatch(channel, message.get("data"))
        finally:
            await self._pubsub.unsubscribe()
            self._running = False

    def stop(self) -> None:
        self._running = False
