"""Tests for the streamed reply pipeline."""
import pytest

from agrimarket.errors import PersistenceError, StreamError
from agrimarket.services.chat_pipeline import (
    IncrementalWriter,
    PipelineState,
    ResponsePipeline,
    derive_title,
)
from agrimarket.services.conversation_service import ConversationService
from agrimarket.utils.metrics import metrics_collector

from conftest import FakeAssistant


@pytest.fixture
def service(gateway):
    return ConversationService(gateway)


@pytest.fixture
async def conversation(service, owner):
    return await service.create_conversation(owner.id)


def test_long_title_is_truncated_with_ellipsis():
    text = "x" * 80
    assert derive_title(text) == "x" * 50 + "..."


def test_short_title_is_kept_verbatim():
    text = "Best time to plant maize here?"
    assert len(text) == 30
    assert derive_title(text) == text


async def test_reply_is_written_back_and_titled(service, conversation):
    states = []
    pipeline = ResponsePipeline(service, FakeAssistant(["Use ", "neem ", "oil."]), on_state=states.append)

    result = await pipeline.run(conversation.id, [], "How do I manage pests naturally?")

    assert result.content == "Use neem oil."
    assert result.error is None
    assert result.title == "How do I manage pests naturally?"
    assert states == [
        PipelineState.SENDING,
        PipelineState.AWAITING_FIRST_CHUNK,
        PipelineState.ACCUMULATING,
        PipelineState.FINALIZING,
        PipelineState.IDLE,
    ]

    messages = await service.load_messages(conversation.id)
    assert [(m.role, m.content) for m in messages] == [
        ("user", "How do I manage pests naturally?"),
        ("assistant", "Use neem oil."),
    ]
    stored = await service.get_conversation(conversation.id)
    assert stored.title == "How do I manage pests naturally?"


async def test_existing_title_is_not_replaced(service, conversation):
    await service.set_title(conversation.id, "Soil questions")
    result = await ResponsePipeline(service, FakeAssistant()).run(conversation.id, [], "Another question")

    assert result.title is None
    assert (await service.get_conversation(conversation.id)).title == "Soil questions"


async def test_history_is_sent_oldest_first_with_model_role(service, conversation):
    assistant = FakeAssistant(["ok"])
    pipeline = ResponsePipeline(service, assistant)
    await pipeline.run(conversation.id, [], "first question")
    history = await service.load_messages(conversation.id)

    await pipeline.run(conversation.id, history, "second question")

    contents = assistant.requests[-1]
    assert [turn["role"] for turn in contents] == ["user", "model", "user"]
    assert contents[-1]["parts"] == [{"text": "second question"}]


async def test_stream_error_replaces_placeholder(service, conversation):
    states = []
    assistant = FakeAssistant(chunks=["partial"], error=StreamError("Gemini error: 500"))
    pipeline = ResponsePipeline(service, assistant, on_state=states.append)

    result = await pipeline.run(conversation.id, [], "Will it rain?")

    assert result.error == "Error: Gemini error: 500"
    assert PipelineState.ERRORED in states
    assert states[-1] == PipelineState.IDLE

    messages = await service.load_messages(conversation.id)
    assert len(messages) == 2
    assert messages[1].role == "assistant"
    assert messages[1].content == "Error: Gemini error: 500"
    assert (await service.get_conversation(conversation.id)).title is None


async def test_user_message_failure_propagates(broken_gateway):
    import uuid

    pipeline = ResponsePipeline(ConversationService(broken_gateway), FakeAssistant())
    with pytest.raises(PersistenceError):
        await pipeline.run(uuid.uuid4(), [], "hello")
    assert pipeline.state is PipelineState.IDLE


async def test_writer_flushes_every_delta_by_default(service, conversation):
    from agrimarket.models.message import MessageRole

    placeholder = await service.add_message(conversation.id, MessageRole.ASSISTANT, "")
    writer = IncrementalWriter(service, placeholder.id, min_chars=0)
    for delta in ["a", "b", "c"]:
        await writer.append(delta)

    assert writer.writes == 3
    [stored] = await service.load_messages(conversation.id)
    assert stored.content == "abc"


async def test_writer_buffers_until_threshold(service, conversation):
    from agrimarket.models.message import MessageRole

    placeholder = await service.add_message(conversation.id, MessageRole.ASSISTANT, "")
    writer = IncrementalWriter(service, placeholder.id, min_chars=5)
    await writer.append("ab")
    await writer.append("cd")
    assert writer.writes == 0

    await writer.append("efg")
    assert writer.writes == 1
    await writer.append("h")
    await writer.flush()

    [stored] = await service.load_messages(conversation.id)
    assert stored.content == "abcdefgh"
    assert writer.pending == 0


async def test_stream_counters_are_reported(service, conversation):
    metrics_collector.reset()
    await ResponsePipeline(service, FakeAssistant(["a", "b"])).run(conversation.id, [], "Hi")
    await ResponsePipeline(service, FakeAssistant([], error=StreamError("Gemini error: 500"))).run(
        conversation.id, [], "Hi again"
    )

    counters = metrics_collector.get_metrics()["counters"]
    assert counters["streams_started_total"] == 2
    assert counters["streams_completed_total"] == 1
    assert counters["streams_failed_total"] == 1
    assert counters["stream_deltas_total"] == 2
