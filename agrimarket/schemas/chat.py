"""Chat schemas shared by the chat view, routers and realtime frames."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ConversationSummary(BaseModel):
    """Directory entry for one conversation."""
    id: UUID
    title: Optional[str] = None
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def display_title(self) -> str:
        return self.title or "New Chat"


class MessageView(BaseModel):
    """In-memory copy of a stored message, as held by a chat view."""
    id: UUID
    conversation_id: UUID
    role: str
    content: str = ""
    attachment: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("role", mode="before")
    @classmethod
    def coerce_role(cls, value: Any) -> str:
        # Anything other than an exact "assistant" is shown as the user
        return "assistant" if value == "assistant" else "user"

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, value: Any) -> str:
        return value or ""

    @classmethod
    def from_record(cls, record: Any) -> "MessageView":
        if isinstance(record, dict):
            return cls.model_validate(record)
        return cls.model_validate(record, from_attributes=True)


class ConversationListResponse(BaseModel):
    conversations: List[ConversationSummary]


class MessageItem(BaseModel):
    """Message as rendered to the browser: attachment decoded into parts."""
    id: UUID
    role: str
    created_at: datetime
    parts: List[Dict[str, Any]]


class ConversationMessagesResponse(BaseModel):
    messages: List[MessageItem]


class ChatFrame(BaseModel):
    """Client frame on the chat WebSocket."""
    type: str = Field(..., pattern=r"^(new|select|send|input)$")
    conversation_id: Optional[UUID] = None
    text: Optional[str] = Field(None, max_length=5000)
