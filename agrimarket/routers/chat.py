"""
Chat API Router

Conversation directory and history over REST, and the live assistant chat
over a WebSocket. Each WebSocket connection mounts its own ChatView, so a
browser tab owns exactly one realtime subscription at a time.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Request,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from pydantic import ValidationError

from agrimarket.errors import PersistenceError
from agrimarket.gateway.base import DataGateway
from agrimarket.middleware.auth import session_provider
from agrimarket.models.message import MessageRole
from agrimarket.routers.deps import get_gateway, get_stored_profile
from agrimarket.schemas.chat import (
    ChatFrame,
    ConversationListResponse,
    ConversationMessagesResponse,
    ConversationSummary,
    MessageItem,
    MessageView,
)
from agrimarket.schemas.dashboard import ProfileView
from agrimarket.security.validation import RateLimiter
from agrimarket.services.attachments import encode_dropped_files, message_parts
from agrimarket.services.chat_view import ChatView
from agrimarket.services.conversation_service import ConversationService
from agrimarket.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])
ws_router = APIRouter(tags=["chat"])

# Close codes in the private 4000-4999 range
WS_AUTH_REQUIRED = 4401
WS_PROFILE_UNAVAILABLE = 4503


def get_conversation_limiter(request: Request) -> RateLimiter:
    return request.app.state.conversation_limiter


def to_item(message: MessageView) -> MessageItem:
    return MessageItem(
        id=message.id,
        role=message.role,
        created_at=message.created_at,
        parts=[part.model_dump() for part in message_parts(message.content, message.attachment)],
    )


async def _owned_conversation(service: ConversationService, conversation_id: UUID, owner_id: str):
    conversation = await service.get_conversation(conversation_id, owner_id)
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    profile: ProfileView = Depends(get_stored_profile),
    gateway: DataGateway = Depends(get_gateway),
):
    rows = await ConversationService(gateway).list_conversations(profile.id)
    return ConversationListResponse(
        conversations=[ConversationSummary.model_validate(row) for row in rows]
    )


@router.post("/conversations", response_model=ConversationSummary, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    profile: ProfileView = Depends(get_stored_profile),
    gateway: DataGateway = Depends(get_gateway),
    limiter: RateLimiter = Depends(get_conversation_limiter),
):
    if not limiter.is_allowed(profile.id):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many new chats. Please wait a minute and try again.",
        )
    row = await ConversationService(gateway).create_conversation(profile.id)
    return ConversationSummary.model_validate(row)


@router.get("/conversations/{conversation_id}/messages", response_model=ConversationMessagesResponse)
async def get_messages(
    conversation_id: UUID,
    profile: ProfileView = Depends(get_stored_profile),
    gateway: DataGateway = Depends(get_gateway),
):
    """History of one conversation, oldest first, with attachments decoded into parts."""
    service = ConversationService(gateway)
    await _owned_conversation(service, conversation_id, profile.id)
    messages = await service.load_messages(conversation_id)
    return ConversationMessagesResponse(messages=[to_item(m) for m in messages])


@router.post(
    "/conversations/{conversation_id}/attachments",
    response_model=MessageItem,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    conversation_id: UUID,
    files: List[UploadFile] = File(...),
    profile: ProfileView = Depends(get_stored_profile),
    gateway: DataGateway = Depends(get_gateway),
):
    """Store one dropped image or PDF as a user message."""
    service = ConversationService(gateway)
    await _owned_conversation(service, conversation_id, profile.id)

    attachment = await encode_dropped_files(files)
    if attachment is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Drop a single image or PDF file",
        )

    row = await service.add_message(
        conversation_id,
        MessageRole.USER,
        attachment.content,
        attachment=attachment.data_url,
    )
    return to_item(MessageView.from_record(row))


class ChatConnection:
    """Bridges one WebSocket to one mounted ChatView."""

    def __init__(
        self,
        websocket: WebSocket,
        view_factory,
        limiter: Optional[RateLimiter] = None,
        limit_key: Optional[str] = None,
    ):
        self.websocket = websocket
        self.limiter = limiter
        self.limit_key = limit_key
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.view: ChatView = view_factory(self.push)

    def push(self, event_type: str, payload: Dict[str, Any]):
        self.outbox.put_nowait({"type": event_type, "data": payload})

    async def _drain(self):
        while True:
            frame = await self.outbox.get()
            await self.websocket.send_json(frame)

    async def handle(self, frame: ChatFrame):
        if frame.type == "new":
            if self.limiter is not None and not self.limiter.is_allowed(self.limit_key):
                self.push("notice", {"text": "Too many new chats. Please wait a minute and try again."})
                return
            await self.view.create_conversation()
        elif frame.type == "select":
            if frame.conversation_id is None:
                self.push("notice", {"text": "Pick a conversation to open."})
                return
            if not any(c.id == frame.conversation_id for c in self.view.conversations):
                self.push("notice", {"text": "Conversation not found."})
                return
            await self.view.select_conversation(frame.conversation_id)
        elif frame.type == "input":
            self.view.set_input(frame.text or "")
        elif frame.type == "send":
            if not self.view.can_send:
                self.push("notice", {"text": "The assistant is not configured right now."})
                return
            self.view.start_send(frame.text)

    async def run(self):
        sender = asyncio.create_task(self._drain())
        try:
            await self.view.mount()
            while True:
                raw = await self.websocket.receive_json()
                try:
                    frame = ChatFrame.model_validate(raw)
                except ValidationError:
                    self.push("notice", {"text": "Unrecognised message."})
                    continue
                try:
                    await self.handle(frame)
                except PersistenceError:
                    # The view has already queued a notice for the user
                    continue
        finally:
            await self.view.unmount()
            sender.cancel()
            try:
                await sender
            except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                pass


@ws_router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, token: Optional[str] = None):
    """Live assistant chat: one ChatView per connection."""
    app_state = websocket.app.state
    provider = getattr(app_state, "session_provider", session_provider)
    session = provider.acquire(token)
    if session is None:
        await websocket.close(code=WS_AUTH_REQUIRED)
        return

    profile = await ProfileService(app_state.gateway).load_profile(session)
    if profile.degraded or profile.id is None:
        await websocket.close(code=WS_PROFILE_UNAVAILABLE)
        return

    await websocket.accept()
    logger.info(f"Chat socket opened for {profile.id}")

    def view_factory(listener):
        return ChatView(
            app_state.gateway,
            profile.id,
            assistant=getattr(app_state, "assistant", None),
            listener=listener,
        )

    connection = ChatConnection(
        websocket,
        view_factory,
        limiter=getattr(app_state, "conversation_limiter", None),
        limit_key=profile.id,
    )
    try:
        await connection.run()
    except WebSocketDisconnect:
        logger.info(f"Chat socket closed for {profile.id}")
