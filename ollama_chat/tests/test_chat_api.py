"""Tests for chat intake."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ollama_chat.core.events import MessageFrom, MessageStatus
from ollama_chat.steps.chat_api import new_message_id, submit_chat_message


def test_new_message_id_unique():
    assert new_message_id() != new_message_id()
    assert len(new_message_id()) == 36


@pytest.mark.asyncio
async def test_submit_writes_user_entry_then_publishes(store):
    bus = MagicMock()
    bus.publish_chat_message = AsyncMock()
    event = await submit_chat_message(bus, store, "  Hi there ", conversation_id="c1")
    assert event.conversation_id == "c1"
    assert event.message == "Hi there"
    bus.publish_chat_message.assert_awaited_once_with(event)
    group = await store.get_group("c1")
    assert len(group) == 1
    (entry,) = group.values()
    assert entry.from_ == MessageFrom.USER
    assert entry.status == MessageStatus.COMPLETED
    assert entry.message == "Hi there"
    assert event.assistant_message_id not in group


@pytest.mark.asyncio
async def test_submit_uses_given_ids(store):
    bus = MagicMock()
    bus.publish_chat_message = AsyncMock()
    event = await submit_chat_message(
        bus, store, "Hi", conversation_id="c9", assistant_message_id="reply-1"
    )
    assert event.assistant_message_id == "reply-1"


@pytest.mark.asyncio
async def test_submit_new_conversation_id(store):
    bus = MagicMock()
    bus.publish_chat_message = AsyncMock()
    event = await submit_chat_message(bus, store, "Hi")
    assert event.conversation_id
    assert await store.get_group(event.conversation_id)


@pytest.mark.asyncio
async def test_submit_rejects_empty(store):
    bus = MagicMock()
    bus.publish_chat_message = AsyncMock()
    with pytest.raises(ValueError):
        await submit_chat_message(bus, store, "   ")
    bus.publish_chat_message.assert_not_called()
