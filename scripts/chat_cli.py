#!/usr/bin/env python3
"""
Send one chat message and print the assistant reply as it streams.

Writes the user entry, publishes chat-message and watches the conversation in
Redis until the reply entry reaches status=completed. Needs a running worker
(python -m ollama_chat.main).

Environment:
  REDIS_URL: Redis connection (default redis://localhost:6379/0)

Usage:
  python scripts/chat_cli.py "Why is the sky blue?"
  python scripts/chat_cli.py --conversation c1 --timeout 60 "Hi"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import AsyncIterator, TextIO

from ollama_chat.core.events import ConversationMessage, MessageStatus

logger = logging.getLogger(__name__)


def get_redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379/0")


async def follow_reply(
    updates: AsyncIterator[tuple[str, ConversationMessage]],
    assistant_message_id: str,
    out: TextIO,
) -> ConversationMessage | None:
    """Print only the new suffix of each write; return the completed entry."""
    shown = ""
    async for item_key, entry in updates:
        if item_key != assistant_message_id:
            continue
        if entry.status == MessageStatus.COMPLETED and not entry.message.startswith(shown):
            # failure replaces the partial text
            out.write("\n" + entry.message)
        elif entry.message.startswith(shown):
            out.write(entry.message[len(shown):])
        shown = entry.message
        out.flush()
        if entry.status == MessageStatus.COMPLETED:
            out.write("\n")
            return entry
    return None


async def run(text: str, conversation_id: str | None, timeout: float) -> int:
    from ollama_chat.core.bus import EventBus
    from ollama_chat.steps.chat_api import new_message_id, submit_chat_message
    from ollama_chat.streams.conversation import RedisConversationStore

    redis_url = get_redis_url()
    conversation_id = conversation_id or new_message_id()
    assistant_message_id = new_message_id()
    store = RedisConversationStore(redis_url)
    bus = EventBus(redis_url)
    ready = asyncio.Event()
    follower = asyncio.create_task(
        follow_reply(store.watch(conversation_id, ready=ready), assistant_message_id, sys.stdout)
    )
    try:
        # subscribe before publishing so the first write is not missed
        await asyncio.wait_for(ready.wait(), timeout=10)
        await submit_chat_message(
            bus,
            store,
            text,
            conversation_id=conversation_id,
            assistant_message_id=assistant_message_id,
        )
        entry = await asyncio.wait_for(follower, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("no completed reply within %ss", timeout)
        return 1
    finally:
        follower.cancel()
        await bus.disconnect()
        await store.close()
    return 0 if entry is not None else 1


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    parser = argparse.ArgumentParser(description="Send a chat message and stream the reply.")
    parser.add_argument("message", help="Text to send.")
    parser.add_argument("--conversation", default=None, help="Conversation id (new one if omitted).")
    parser.add_argument("--timeout", type=float, default=120.0, help="Seconds to wait for completion.")
    args = parser.parse_args()
    return asyncio.run(run(args.message, args.conversation, args.timeout))


if __name__ == "__main__":
    sys.exit(main())
