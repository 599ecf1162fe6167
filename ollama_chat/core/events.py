"""Event payloads and conversation entries. All are Pydantic models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with milliseconds, e.g. 2026-10-19T12:00:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class MessageFrom(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(str, Enum):
    """streaming -> completed, never back."""

    STREAMING = "streaming"
    COMPLETED = "completed"


class ChatMessage(BaseModel):
    """Published on chat-message when a user sends text. JSON keys are camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(description="User text")
    conversation_id: str = Field(alias="conversationId")
    assistant_message_id: str = Field(
        alias="assistantMessageId", description="Store item the reply is written to"
    )


class ConversationMessage(BaseModel):
    """One entry of the conversation stream, addressed by (conversationId, messageId)."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    from_: MessageFrom = Field(default=MessageFrom.ASSISTANT, alias="from")
    status: MessageStatus = MessageStatus.STREAMING
    timestamp: str = Field(default_factory=utc_now_iso, description="Time of this write")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def assistant(cls, message: str, status: MessageStatus) -> "ConversationMessage":
        return cls(message=message, from_=MessageFrom.ASSISTANT, status=status)
