"""Chat intake: record the user's message and hand it to AiResponse via chat-message."""

from __future__ import annotations

import logging
import uuid

from ollama_chat.core.bus import EventBus
from ollama_chat.core.events import ChatMessage, ConversationMessage, MessageFrom, MessageStatus
from ollama_chat.streams.conversation import ConversationStateStore

logger = logging.getLogger(__name__)


def new_message_id() -> str:
    return str(uuid.uuid4())


async def submit_chat_message(
    bus: EventBus,
    store: ConversationStateStore,
    text: str,
    conversation_id: str | None = None,
    assistant_message_id: str | None = None,
) -> ChatMessage:
    """Write the user entry, then publish chat-message for the reply.

    Returns the published event; its assistant_message_id is where the reply
    will stream.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("message must not be empty")
    conversation_id = conversation_id or new_message_id()
    user_message_id = new_message_id()
    await store.set(
        conversation_id,
        user_message_id,
        ConversationMessage(message=text, from_=MessageFrom.USER, status=MessageStatus.COMPLETED),
    )
    event = ChatMessage(
        message=text,
        conversation_id=conversation_id,
        assistant_message_id=assistant_message_id or new_message_id(),
    )
    await bus.publish_chat_message(event)
    logger.info(
        "chat message submitted",
        extra={"conversation_id": conversation_id, "assistant_message_id": event.assistant_message_id},
    )
    return event
