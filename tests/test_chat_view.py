"""Tests for the mounted chat view: busy flag, live sync, switching and teardown."""
import asyncio
import base64
import uuid
from datetime import datetime

import pytest

from agrimarket.errors import PersistenceError
from agrimarket.gateway.realtime import INSERT, UPDATE, ChangeEvent
from agrimarket.models.message import MessageRole
from agrimarket.services.chat_view import ChatView
from agrimarket.services.conversation_service import ConversationService

from conftest import FakeAssistant, settle


class FakeUpload:
    def __init__(self, filename, content_type, payload=b"", error=None):
        self.filename = filename
        self.content_type = content_type
        self.payload = payload
        self.error = error

    async def read(self):
        if self.error:
            raise self.error
        return self.payload


@pytest.fixture
def events():
    return []


@pytest.fixture
def view_factory(gateway, owner, events):
    def make(assistant=None, **kwargs):
        view = ChatView(
            gateway,
            owner.id,
            assistant=assistant,
            listener=lambda kind, payload: events.append((kind, payload)),
            **kwargs,
        )
        return view

    return make


async def persisted_messages(gateway, conversation_id):
    return await ConversationService(gateway).load_messages(conversation_id)


async def test_pests_scenario(view_factory, gateway):
    view = view_factory(FakeAssistant(["Try ", "companion planting ", "and neem oil."]))
    await view.mount()

    result = await view.send("How do I manage pests naturally?")

    stored = await persisted_messages(gateway, view.active_conversation_id)
    assert [m.role for m in stored] == ["user", "assistant"]
    assert stored[0].content == "How do I manage pests naturally?"
    assert stored[1].content == "Try companion planting and neem oil."
    assert result.title == "How do I manage pests naturally?"
    assert view.conversations[0].title == "How do I manage pests naturally?"
    assert view.busy is False
    await view.unmount()


async def test_input_is_cleared_when_sending_starts(view_factory):
    gate = asyncio.Event()
    assistant = FakeAssistant(["one", "two"], gate=gate)
    view = view_factory(assistant)
    await view.mount()

    view.set_input("What fertilizer for cassava?")
    task = view.start_send()
    await asyncio.wait_for(assistant.first_chunk_sent.wait(), timeout=1)

    assert view.input_text == ""
    assert view.busy is True

    gate.set()
    await task
    assert view.busy is False
    await view.unmount()


async def test_send_while_busy_is_a_noop(view_factory, gateway):
    gate = asyncio.Event()
    assistant = FakeAssistant(["one", "two"], gate=gate)
    view = view_factory(assistant)
    await view.mount()

    task = view.start_send("first")
    await asyncio.wait_for(assistant.first_chunk_sent.wait(), timeout=1)

    view.set_input("second")
    assert await view.send() is None
    assert view.start_send("third") is None
    assert view.input_text == "second"

    gate.set()
    await task

    stored = await persisted_messages(gateway, view.active_conversation_id)
    assert [m.content for m in stored if m.role == "user"] == ["first"]
    assert len(assistant.requests) == 1
    await view.unmount()


async def test_empty_input_and_unconfigured_assistant_do_nothing(view_factory, gateway):
    view = view_factory(FakeAssistant(configured=False))
    await view.mount()
    assert await view.send("   ") is None
    assert await view.send("hello") is None
    assert view.active_conversation_id is None
    assert view.input_text == "hello"


async def test_stream_error_clears_busy_and_keeps_placeholder_row(view_factory, gateway, failing_assistant):
    view = view_factory(failing_assistant)
    await view.mount()

    result = await view.send("Will it rain?")

    assert result.error.startswith("Error:")
    assert view.busy is False
    stored = await persisted_messages(gateway, view.active_conversation_id)
    assert [m.role for m in stored] == ["user", "assistant"]
    assert stored[1].content == result.error
    await view.unmount()


async def test_local_and_realtime_copies_do_not_duplicate(view_factory):
    view = view_factory(FakeAssistant(["a", "b", "c"]))
    await view.mount()
    await view.send("hello")
    await settle()

    ids = [m.id for m in view.messages]
    assert len(ids) == len(set(ids)) == 2
    assert view.messages[-1].content == "abc"

    # Replaying the same row changes nothing in size
    replay = view.messages[-1].model_dump()
    view.apply_event(ChangeEvent(kind=INSERT, table="ai_messages", record=replay))
    view.apply_event(ChangeEvent(kind=UPDATE, table="ai_messages", record=replay))
    assert len(view.messages) == 2
    await view.unmount()


async def test_events_for_other_conversations_are_ignored(view_factory):
    view = view_factory(FakeAssistant())
    await view.mount()
    await view.create_conversation()

    stray = {
        "id": uuid.uuid4(),
        "conversation_id": uuid.uuid4(),
        "role": "user",
        "content": "not mine",
        "attachment": None,
        "created_at": datetime.utcnow(),
    }
    view.apply_event(ChangeEvent(kind=INSERT, table="ai_messages", record=stray))
    assert view.messages == []
    await view.unmount()


async def test_other_tab_writes_arrive_live(view_factory, gateway):
    view = view_factory(FakeAssistant())
    await view.mount()
    summary = await view.create_conversation()

    await ConversationService(gateway).add_message(summary.id, MessageRole.USER, "from another tab")
    await settle()

    assert [m.content for m in view.messages] == ["from another tab"]
    await view.unmount()


async def test_switching_away_mid_stream_and_back_shows_full_reply(view_factory, gateway):
    gate = asyncio.Event()
    assistant = FakeAssistant(["Rotate ", "crops ", "every season."], gate=gate)
    view = view_factory(assistant)
    await view.mount()

    conversation_a = await view.create_conversation()
    task = view.start_send("How do I keep soil healthy?")
    await asyncio.wait_for(assistant.first_chunk_sent.wait(), timeout=1)

    conversation_b = await view.create_conversation()
    assert view.active_conversation_id == conversation_b.id
    assert gateway.channels.count() == 1

    gate.set()
    await task
    await settle()
    # Nothing from A leaks into B
    assert view.messages == []

    await view.select_conversation(conversation_a.id)
    assert view.messages[-1].role == "assistant"
    assert view.messages[-1].content == "Rotate crops every season."
    await view.unmount()


async def test_single_subscription_per_view_and_teardown_on_unmount(view_factory, gateway):
    view = view_factory(FakeAssistant())
    await view.mount()
    first = await view.create_conversation()
    await view.create_conversation()
    await view.select_conversation(first.id)
    assert gateway.channels.count() == 1

    await view.unmount()
    assert gateway.channels.count() == 0


async def test_unmount_cancels_in_flight_stream(view_factory, gateway):
    gate = asyncio.Event()
    assistant = FakeAssistant(["partial ", "never written"], gate=gate)
    view = view_factory(assistant)
    await view.mount()

    task = view.start_send("Tell me about irrigation")
    await asyncio.wait_for(assistant.first_chunk_sent.wait(), timeout=1)
    conversation_id = view.active_conversation_id

    await view.unmount()
    assert task.done()

    stored = await persisted_messages(gateway, conversation_id)
    assert stored[-1].content == "partial "
    assert gateway.channels.count() == 0


async def test_failed_create_keeps_previous_conversation(view_factory, gateway, events, monkeypatch):
    view = view_factory(FakeAssistant())
    await view.mount()
    existing = await view.create_conversation()

    async def refuse(owner_id):
        raise PersistenceError("insert failed")

    monkeypatch.setattr(view.conversations_service, "create_conversation", refuse)
    with pytest.raises(PersistenceError):
        await view.create_conversation()

    assert view.active_conversation_id == existing.id
    assert len(view.conversations) == 1
    assert events[-1][0] == "notice"
    await view.unmount()


async def test_large_image_is_accepted_on_the_drop_path(view_factory, gateway):
    view = view_factory(FakeAssistant())
    await view.mount()
    await view.create_conversation()

    payload = b"\x89PNG" + b"\x00" * (6 * 1024 * 1024)
    message = await view.attach([FakeUpload("field.png", "image/png", payload)])

    assert message is not None
    assert message.content == "Uploaded: field.png"
    assert message.attachment.startswith("data:image/png;base64,")
    assert base64.b64decode(message.attachment.split(",", 1)[1]) == payload

    stored = await persisted_messages(gateway, view.active_conversation_id)
    assert stored[0].attachment == message.attachment
    await view.unmount()


async def test_validator_rejects_large_image_when_enabled(view_factory, gateway, events):
    view = view_factory(FakeAssistant(), validate_attachments=True)
    await view.mount()
    await view.create_conversation()

    payload = b"\x00" * (6 * 1024 * 1024)
    assert await view.attach([FakeUpload("field.png", "image/png", payload)]) is None
    assert await persisted_messages(gateway, view.active_conversation_id) == []
    assert events[-1] == ("notice", {"text": "File size must be less than 5MB"})
    await view.unmount()


async def test_rejected_drops_write_nothing(view_factory, gateway):
    view = view_factory(FakeAssistant())
    await view.mount()
    await view.create_conversation()

    two_files = [FakeUpload("a.png", "image/png", b"a"), FakeUpload("b.png", "image/png", b"b")]
    assert await view.attach(two_files) is None
    assert await view.attach([FakeUpload("notes.txt", "text/plain", b"hi")]) is None
    assert await view.attach([FakeUpload("bad.png", "image/png", error=OSError("unreadable"))]) is None

    assert await persisted_messages(gateway, view.active_conversation_id) == []
    await view.unmount()


async def test_attachment_is_sent_as_inline_data(view_factory):
    assistant = FakeAssistant(["Looks like leaf blight."])
    view = view_factory(assistant)
    await view.mount()
    await view.create_conversation()
    await view.attach([FakeUpload("leaf.jpg", "image/jpeg", b"jpeg-bytes")])
    await settle()

    await view.send("What is wrong with this leaf?")

    first_turn = assistant.requests[0][0]
    assert first_turn["role"] == "user"
    assert first_turn["parts"][0] == {"text": "Uploaded: leaf.jpg"}
    assert first_turn["parts"][1]["inline_data"]["mime_type"] == "image/jpeg"
    await view.unmount()


async def test_messages_listener_receives_frames(view_factory, events):
    view = view_factory(FakeAssistant(["hi"]))
    await view.mount()
    await view.send("hello")

    kinds = {kind for kind, _ in events}
    assert {"conversations", "messages", "message", "state"} <= kinds
    await view.unmount()


async def test_concurrent_sends_before_a_conversation_exists_send_once(view_factory, gateway):
    assistant = FakeAssistant(["Plant after the first rains."])
    view = view_factory(assistant)
    await view.mount()

    first, second = await asyncio.gather(view.send("first question"), view.send("second question"))

    assert second is None
    assert first.content == "Plant after the first rains."
    assert len(view.conversations) == 1
    stored = await persisted_messages(gateway, view.active_conversation_id)
    assert [m.content for m in stored if m.role == "user"] == ["first question"]
    assert len(assistant.requests) == 1
    await view.unmount()


async def test_start_send_refuses_while_the_first_is_pending(view_factory, gateway):
    assistant = FakeAssistant(["Yes."])
    view = view_factory(assistant)
    await view.mount()

    task = view.start_send("first question")
    assert view.start_send("second question") is None
    await task

    stored = await persisted_messages(gateway, view.active_conversation_id)
    assert [m.content for m in stored if m.role == "user"] == ["first question"]
    assert len(assistant.requests) == 1
    await view.unmount()


async def test_rapid_switching_keeps_one_subscription(view_factory, gateway):
    view = view_factory(FakeAssistant())
    await view.mount()
    conversation_a = await view.create_conversation()
    await ConversationService(gateway).add_message(conversation_a.id, MessageRole.USER, "about maize")
    conversation_b = await view.create_conversation()

    await asyncio.gather(
        view.select_conversation(conversation_a.id),
        view.select_conversation(conversation_b.id),
        view.select_conversation(conversation_a.id),
    )

    assert view.active_conversation_id == conversation_a.id
    assert [m.content for m in view.messages] == ["about maize"]
    assert gateway.channels.count() == 1

    await view.unmount()
    assert gateway.channels.count() == 0
