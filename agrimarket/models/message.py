"""
Message Model for the AI farm assistant.

User messages are append-only. The assistant placeholder created for a
streamed reply is the single row per conversation whose content keeps
changing until the stream ends.
"""

import threading
from datetime import datetime, timedelta
from uuid import UUID, uuid4
from enum import Enum
from typing import Optional, TYPE_CHECKING
from sqlmodel import SQLModel, Field, Relationship, Column
from sqlalchemy import Text, String

if TYPE_CHECKING:
    from .conversation import Conversation


_clock_lock = threading.Lock()
_last_created_at = datetime.min


def message_timestamp() -> datetime:
    """utcnow(), nudged forward so timestamps handed out here strictly increase."""
    global _last_created_at
    with _clock_lock:
        now = datetime.utcnow()
        if now <= _last_created_at:
            now = _last_created_at + timedelta(microseconds=1)
        _last_created_at = now
        return now


class MessageRole(str, Enum):
    """Message sender role"""
    USER = "user"
    ASSISTANT = "assistant"


class Message(SQLModel, table=True):
    """
    Individual chat message (user or assistant).

    The optional attachment holds a data URL (``data:<mime>;base64,<payload>``)
    for an image or document dropped into the chat.
    """
    __tablename__ = "ai_messages"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    conversation_id: UUID = Field(foreign_key="ai_conversations.id", index=True)
    role: str = Field(sa_column=Column(String, nullable=False))  # Store enum value as string
    content: str = Field(default="", sa_column=Column(Text, nullable=False))
    attachment: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=message_timestamp, index=True)

    conversation: "Conversation" = Relationship(
        back_populates="messages",
        sa_relationship_kwargs={"lazy": "select"}
    )
