"""
Streamed assistant reply pipeline.

One run per send:

    IDLE -> SENDING -> AWAITING_FIRST_CHUNK -> ACCUMULATING -> FINALIZING -> IDLE
                 \\______________\\___________________\\__________> ERRORED -> IDLE

Every gateway write is awaited before the next one starts, so for a single
tab the stored order matches the send order: user message, empty assistant
placeholder, then the placeholder's content growing with each delta.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence
from uuid import UUID

from agrimarket import config
from agrimarket.errors import PersistenceError, StreamError
from agrimarket.models.message import Message, MessageRole
from agrimarket.schemas.chat import MessageView
from agrimarket.services.assistant_client import AssistantClient, CancelToken, build_contents
from agrimarket.services.conversation_service import ConversationService
from agrimarket.utils.logger import chat_logger
from agrimarket.utils.metrics import metrics_collector


class PipelineState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_FIRST_CHUNK = "awaiting_first_chunk"
    ACCUMULATING = "accumulating"
    FINALIZING = "finalizing"
    ERRORED = "errored"


StateCallback = Callable[[PipelineState], None]
MessageCallback = Callable[[MessageView], None]


@dataclass
class PipelineResult:
    """What one send produced."""
    user_message: MessageView
    assistant_message: Optional[MessageView] = None
    content: str = ""
    title: Optional[str] = None
    error: Optional[str] = None
    cancelled: bool = False


def derive_title(text: str, limit: int = config.CHAT_TITLE_MAX_LENGTH) -> str:
    """First ``limit`` characters of the message, with ``...`` when cut."""
    return text[:limit] + ("..." if len(text) > limit else "")


class IncrementalWriter:
    """
    Writes a growing reply back onto its placeholder message.

    The stored content is always the full text accumulated up to the last
    flush. With ``min_chars=0`` every delta is flushed.
    """

    def __init__(
        self,
        conversations: ConversationService,
        message_id: UUID,
        min_chars: int = config.CHAT_WRITEBACK_MIN_CHARS,
    ):
        self.conversations = conversations
        self.message_id = message_id
        self.min_chars = min_chars
        self.text = ""
        self.flushed_length = 0
        self.writes = 0

    @property
    def pending(self) -> int:
        return len(self.text) - self.flushed_length

    async def append(self, delta: str) -> Optional[Message]:
        self.text += delta
        if self.pending > 0 and self.pending >= self.min_chars:
            return await self.flush()
        return None

    async def flush(self) -> Optional[Message]:
        if self.pending <= 0:
            return None
        message = await self.conversations.update_message_content(self.message_id, self.text)
        self.flushed_length = len(self.text)
        self.writes += 1
        return message


class ResponsePipeline:
    """Runs one send: persist, stream, write back, title."""

    def __init__(
        self,
        conversations: ConversationService,
        assistant: AssistantClient,
        on_state: Optional[StateCallback] = None,
        on_message: Optional[MessageCallback] = None,
        writeback_min_chars: int = config.CHAT_WRITEBACK_MIN_CHARS,
        title_limit: int = config.CHAT_TITLE_MAX_LENGTH,
    ):
        self.conversations = conversations
        self.assistant = assistant
        self.on_state = on_state
        self.on_message = on_message
        self.writeback_min_chars = writeback_min_chars
        self.title_limit = title_limit
        self.state = PipelineState.IDLE

    def _transition(self, state: PipelineState):
        self.state = state
        if self.on_state:
            self.on_state(state)

    def _emit(self, message: Optional[Message]) -> Optional[MessageView]:
        if message is None:
            return None
        view = MessageView.from_record(message)
        if self.on_message:
            self.on_message(view)
        return view

    async def run(
        self,
        conversation_id: UUID,
        history: Sequence[MessageView],
        text: str,
        cancel: Optional[CancelToken] = None,
    ) -> PipelineResult:
        """
        Send ``text`` in a conversation and stream the reply.

        Args:
            conversation_id: Conversation receiving the exchange
            history: Messages already in the conversation, oldest first
            text: The user's message
            cancel: Token that stops reading the stream early

        Returns:
            PipelineResult describing the stored messages and outcome

        Raises:
            PersistenceError: If the user message or placeholder cannot be stored
        """
        self._transition(PipelineState.SENDING)
        try:
            user_row = await self.conversations.add_message(conversation_id, MessageRole.USER, text)
            user_message = self._emit(user_row)

            contents = build_contents(
                [m for m in history if m.id != user_message.id], text
            )

            placeholder_row = await self.conversations.add_message(
                conversation_id, MessageRole.ASSISTANT, ""
            )
        except PersistenceError:
            self._transition(PipelineState.IDLE)
            raise

        placeholder = self._emit(placeholder_row)
        result = PipelineResult(user_message=user_message, assistant_message=placeholder)
        writer = IncrementalWriter(self.conversations, placeholder.id, self.writeback_min_chars)

        log = chat_logger.bind(conversation_id=conversation_id, message_id=placeholder.id)
        log.info("Reply stream started", turns=len(contents))
        metrics_collector.stream_started()
        self._transition(PipelineState.AWAITING_FIRST_CHUNK)

        try:
            async for delta in self.assistant.stream_reply(contents, cancel):
                if self.state is PipelineState.AWAITING_FIRST_CHUNK:
                    self._transition(PipelineState.ACCUMULATING)
                metrics_collector.delta_received()
                updated = self._emit(await writer.append(delta))
                if updated is not None:
                    result.assistant_message = updated
                if cancel is not None and cancel.cancelled:
                    break

            self._transition(PipelineState.FINALIZING)
            updated = self._emit(await writer.flush())
            if updated is not None:
                result.assistant_message = updated
            result.content = writer.text

            if cancel is not None and cancel.cancelled:
                result.cancelled = True
                metrics_collector.stream_cancelled()
                log.info("Reply stream cancelled", chars=len(writer.text))
            else:
                result.title = await self._auto_title(conversation_id, text)
                metrics_collector.stream_completed()
                log.info("Reply stream completed", chars=len(writer.text), writes=writer.writes)
        except asyncio.CancelledError:
            metrics_collector.stream_cancelled()
            log.info("Reply stream task cancelled")
            self._transition(PipelineState.IDLE)
            raise
        except (StreamError, PersistenceError) as e:
            await self._fail(result, placeholder, e)

        self._transition(PipelineState.IDLE)
        return result

    async def _auto_title(self, conversation_id: UUID, text: str) -> Optional[str]:
        conversation = await self.conversations.get_conversation(conversation_id)
        if conversation is None or conversation.title:
            return None
        title = derive_title(text, self.title_limit)
        await self.conversations.set_title(conversation_id, title)
        return title

    async def _fail(self, result: PipelineResult, placeholder: MessageView, error: Exception):
        self._transition(PipelineState.ERRORED)
        metrics_collector.stream_failed()
        result.error = f"Error: {error}"
        chat_logger.error(
            "Reply stream failed",
            conversation_id=placeholder.conversation_id,
            message_id=placeholder.id,
            error=str(error),
        )
        try:
            errored = await self.conversations.update_message_content(placeholder.id, result.error)
            result.assistant_message = self._emit(errored)
        except PersistenceError as e:
            chat_logger.error("Could not store error notice", message_id=placeholder.id, error=str(e))
        result.content = result.error
