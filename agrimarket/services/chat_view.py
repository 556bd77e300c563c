"""
Chat view controller.

Holds the state one mounted chat view needs: the conversation directory, the
active conversation, its cached messages, the input text and the busy flag.
The cache converges with the gateway through a single realtime subscription
for the active conversation; the view's own writes are applied locally as
well, and replaying either is harmless because entries are keyed by id.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence
from uuid import UUID

from agrimarket import config
from agrimarket.errors import PersistenceError
from agrimarket.gateway.base import DataGateway
from agrimarket.gateway.realtime import ChangeEvent, Subscription, INSERT, UPDATE
from agrimarket.models.message import Message, MessageRole
from agrimarket.schemas.chat import ConversationSummary, MessageView
from agrimarket.security.validation import validate_file_upload
from agrimarket.services.assistant_client import AssistantClient, CancelToken
from agrimarket.services.attachments import encode_dropped_files
from agrimarket.services.chat_pipeline import PipelineResult, PipelineState, ResponsePipeline
from agrimarket.services.conversation_service import ConversationService

logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, Any]], None]


class ChatView:
    """
    One mounted chat view.

    Args:
        gateway: Data gateway
        owner_id: Profile id owning the conversations
        assistant: Generative client; None or unconfigured disables sending
        listener: Called with (event_type, payload) whenever view state changes
        cancel_on_switch: Also cancel an in-flight reply when switching conversations
        validate_attachments: Apply the upload validator to dropped files
    """

    def __init__(
        self,
        gateway: DataGateway,
        owner_id: str,
        assistant: Optional[AssistantClient] = None,
        listener: Optional[Listener] = None,
        cancel_on_switch: bool = False,
        validate_attachments: bool = False,
        writeback_min_chars: int = config.CHAT_WRITEBACK_MIN_CHARS,
    ):
        self.gateway = gateway
        self.owner_id = owner_id
        self.assistant = assistant
        self.listener = listener
        self.cancel_on_switch = cancel_on_switch
        self.validate_attachments = validate_attachments
        self.writeback_min_chars = writeback_min_chars
        self.conversations_service = ConversationService(gateway)

        self.conversations: List[ConversationSummary] = []
        self.active_conversation_id: Optional[UUID] = None
        self.messages: List[MessageView] = []
        self.input_text = ""
        self.busy = False
        self.state = PipelineState.IDLE
        self.loading = False

        self._subscription: Optional[Subscription] = None
        self._listen_task: Optional[asyncio.Task] = None
        self._cancel: Optional[CancelToken] = None
        self._send_task: Optional[asyncio.Task] = None
        self._activation = 0

    # -- notifications ----------------------------------------------------

    def _notify(self, event_type: str, payload: Dict[str, Any]):
        if self.listener:
            self.listener(event_type, payload)

    def _notice(self, text: str):
        logger.info(f"Chat notice for {self.owner_id}: {text}")
        self._notify("notice", {"text": text})

    @property
    def can_send(self) -> bool:
        return self.assistant is not None and self.assistant.configured

    # -- directory ----------------------------------------------------------

    async def mount(self):
        """Load the directory and open the most recent conversation."""
        await self.refresh_conversations()
        if self.conversations and self.active_conversation_id is None:
            await self.select_conversation(self.conversations[0].id)

    async def refresh_conversations(self) -> List[ConversationSummary]:
        rows = await self.conversations_service.list_conversations(self.owner_id)
        self.conversations = [ConversationSummary.model_validate(row, from_attributes=True) for row in rows]
        self._notify("conversations", {"conversations": [c.model_dump(mode="json") for c in self.conversations]})
        return self.conversations

    async def create_conversation(self) -> ConversationSummary:
        """
        Start a new chat and make it active.

        Raises:
            PersistenceError: If the gateway rejects the insert; the previously
                active conversation stays active
        """
        try:
            row = await self.conversations_service.create_conversation(self.owner_id)
        except PersistenceError:
            self._notice("Could not start a new chat. Please try again.")
            raise

        summary = ConversationSummary.model_validate(row, from_attributes=True)
        self.conversations.insert(0, summary)
        self._notify("conversations", {"conversations": [c.model_dump(mode="json") for c in self.conversations]})
        await self._activate(summary.id, load=False)
        return summary

    # -- history and live sync -------------------------------------------

    async def select_conversation(self, conversation_id: UUID):
        """Switch the active conversation: tear down, reload, resubscribe."""
        await self._activate(conversation_id, load=True)

    async def _activate(self, conversation_id: UUID, load: bool):
        # Only the latest activation may subscribe; older ones stop at their next await
        self._activation += 1
        ticket = self._activation
        if self.cancel_on_switch and self._cancel is not None:
            self._cancel.cancel()
        await self._teardown_subscription()
        if ticket != self._activation:
            return

        self.active_conversation_id = conversation_id
        self.messages = []

        if load:
            self.loading = True
            try:
                messages = await self.conversations_service.load_messages(conversation_id)
            except PersistenceError:
                self._notice("Could not load messages for this chat.")
                raise
            finally:
                self.loading = False
            if ticket != self._activation:
                return
            self.messages = messages

        self._notify("messages", {
            "conversation_id": str(conversation_id),
            "messages": [m.model_dump(mode="json") for m in self.messages],
        })
        self._subscription = self.gateway.subscribe(Message, conversation_id=conversation_id)
        self._listen_task = asyncio.create_task(self._listen(self._subscription))

    async def _listen(self, subscription: Subscription):
        async for event in subscription:
            self.apply_event(event)

    async def _teardown_subscription(self):
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        task = self._listen_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            if self._listen_task is task:
                self._listen_task = None

    def apply_event(self, event: ChangeEvent):
        if event.kind not in (INSERT, UPDATE):
            return
        message = MessageView.from_record(event.record)
        if message.conversation_id != self.active_conversation_id:
            return
        self._apply_message(message)

    def _apply_message(self, message: MessageView):
        """Replace the entry with the same id, or append a new one."""
        if message.conversation_id != self.active_conversation_id:
            return
        for index, existing in enumerate(self.messages):
            if existing.id == message.id:
                self.messages[index] = message
                break
        else:
            self.messages.append(message)
        self._notify("message", message.model_dump(mode="json"))

    # -- attachments ------------------------------------------------------

    async def attach(self, files: Sequence[Any]) -> Optional[MessageView]:
        """Store a single dropped image or PDF as a user message."""
        if self.active_conversation_id is None:
            return None

        attachment = await encode_dropped_files(files)
        if attachment is None:
            return None

        if self.validate_attachments:
            check = validate_file_upload(attachment.mime_type, attachment.size)
            if not check.valid:
                self._notice(check.error)
                return None

        try:
            row = await self.conversations_service.add_message(
                self.active_conversation_id,
                MessageRole.USER,
                attachment.content,
                attachment=attachment.data_url,
            )
        except PersistenceError:
            self._notice("Could not upload the file. Please try again.")
            return None

        message = MessageView.from_record(row)
        self._apply_message(message)
        return message

    # -- sending -------------------------------------------------------------

    def set_input(self, text: str):
        self.input_text = text

    def _set_state(self, state: PipelineState):
        self.state = state
        self._notify("state", {"state": state.value, "busy": self.busy})

    async def send(self, text: Optional[str] = None) -> Optional[PipelineResult]:
        """
        Send the input text and stream the reply.

        A send while another is in flight, with empty input, or without a
        configured assistant does nothing and returns None. The busy flag is
        raised before the first await, so a concurrent send cannot slip in
        while a conversation is still being created.
        """
        if self.busy:
            return None
        if text is not None:
            self.input_text = text
        message = self.input_text.strip()

        if not message:
            return None
        if not self.can_send:
            logger.warning("Send ignored: assistant is not configured")
            return None

        self.busy = True
        self.input_text = ""
        try:
            if self.active_conversation_id is None:
                try:
                    await self.create_conversation()
                except PersistenceError:
                    self.input_text = message
                    return None

            conversation_id = self.active_conversation_id
            history = list(self.messages)
            self._cancel = CancelToken()
            pipeline = ResponsePipeline(
                self.conversations_service,
                self.assistant,
                on_state=self._set_state,
                on_message=self._apply_message,
                writeback_min_chars=self.writeback_min_chars,
            )
            try:
                result = await pipeline.run(conversation_id, history, message, self._cancel)
            except PersistenceError:
                self._notice("Could not send your message. Please try again.")
                return None
        finally:
            self.busy = False
            self._cancel = None
            self._set_state(PipelineState.IDLE)

        if result.title:
            self._retitle(conversation_id, result.title)
        return result

    def start_send(self, text: Optional[str] = None) -> Optional[asyncio.Task]:
        """Run :meth:`send` in the background; None when it would be a no-op."""
        if self.busy or (self._send_task is not None and not self._send_task.done()):
            return None
        self._send_task = asyncio.create_task(self.send(text))
        return self._send_task

    def _retitle(self, conversation_id: UUID, title: str):
        for index, summary in enumerate(self.conversations):
            if summary.id == conversation_id:
                self.conversations[index] = summary.model_copy(update={"title": title})
        self._notify("conversations", {"conversations": [c.model_dump(mode="json") for c in self.conversations]})

    # -- teardown -----------------------------------------------------------

    async def unmount(self):
        """Cancel any in-flight reply and close the live subscription."""
        if self._cancel is not None:
            self._cancel.cancel()
        if self._send_task is not None and not self._send_task.done():
            self._send_task.cancel()
            try:
                await self._send_task
            except asyncio.CancelledError:
                pass
        self._send_task = None
        self._activation += 1
        await self._teardown_subscription()
