"""
Conversation Model for the AI farm assistant.

Each conversation belongs to one profile and holds an ordered list of
messages. The owner is fixed at creation; the title starts empty and is
filled in from the first user message once a reply has streamed.
"""

from datetime import datetime
from uuid import UUID, uuid4
from typing import List, Optional, TYPE_CHECKING
from sqlmodel import SQLModel, Field, Relationship

if TYPE_CHECKING:
    from .message import Message

# Fields the application never changes after insert
IMMUTABLE_CONVERSATION_FIELDS = frozenset({"id", "user_id", "created_at"})


class Conversation(SQLModel, table=True):
    """
    Conversation metadata for chat sessions.

    Relationships:
    - Belongs to one Profile (user_id)
    - Has many Messages
    """
    __tablename__ = "ai_conversations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(foreign_key="profiles.id", index=True)
    title: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    messages: List["Message"] = Relationship(
        back_populates="conversation",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "select"}
    )
