"""
Conversation Service

Directory and message operations for the AI assistant, expressed as gateway
reads and writes. Ownership is enforced by the gateway; this layer only
refuses to touch fields that must never change after insert.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from agrimarket.gateway.base import DataGateway
from agrimarket.models.conversation import Conversation, IMMUTABLE_CONVERSATION_FIELDS
from agrimarket.models.message import Message, MessageRole
from agrimarket.schemas.chat import MessageView


class ConversationService:
    """Service for managing conversations and messages"""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def list_conversations(self, owner_id: str) -> List[Conversation]:
        """Conversations for an owner, most recently updated first"""
        return await (
            self.gateway.table(Conversation)
            .eq("user_id", owner_id)
            .order("updated_at", descending=True)
            .all()
        )

    async def create_conversation(self, owner_id: str) -> Conversation:
        """Create new, untitled conversation"""
        now = datetime.utcnow()
        conversation = Conversation(user_id=owner_id, title=None, created_at=now, updated_at=now)
        return await self.gateway.insert(conversation)

    async def get_conversation(self, conversation_id: UUID, owner_id: Optional[str] = None) -> Optional[Conversation]:
        """Get conversation, optionally ensuring ownership"""
        query = self.gateway.table(Conversation).eq("id", conversation_id)
        if owner_id is not None:
            query = query.eq("user_id", owner_id)
        return await query.first()

    async def update_conversation(self, conversation_id: UUID, values: Dict[str, Any]) -> Conversation:
        forbidden = IMMUTABLE_CONVERSATION_FIELDS.intersection(values)
        if forbidden:
            raise ValueError(f"Conversation fields cannot change: {', '.join(sorted(forbidden))}")
        return await self.gateway.update(Conversation, conversation_id, values)

    async def set_title(self, conversation_id: UUID, title: str) -> Conversation:
        return await self.update_conversation(conversation_id, {"title": title})

    async def load_messages(self, conversation_id: UUID) -> List[MessageView]:
        """All messages of a conversation, oldest first"""
        rows = await (
            self.gateway.table(Message)
            .eq("conversation_id", conversation_id)
            .order("created_at")
            .order("id")
            .all()
        )
        return [MessageView.from_record(row) for row in rows]

    async def add_message(
        self,
        conversation_id: UUID,
        role: MessageRole,
        content: str,
        attachment: Optional[str] = None,
    ) -> Message:
        """Append a message and bump the conversation timestamp"""
        message = Message(
            conversation_id=conversation_id,
            role=role.value,  # Use enum value (lowercase string)
            content=content,
            attachment=attachment,
        )
        message = await self.gateway.insert(message)
        await self.update_conversation(conversation_id, {"updated_at": datetime.utcnow()})
        return message

    async def update_message_content(self, message_id: UUID, content: str) -> Message:
        """Overwrite the content of the open assistant message"""
        return await self.gateway.update(Message, message_id, {"content": content})
