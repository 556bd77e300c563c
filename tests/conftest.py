"""Shared fixtures: in-memory gateway, fake assistants and a seeded owner."""
import asyncio
from typing import Any, Dict, List, Optional

import pytest

from agrimarket.db.config import build_engine
from agrimarket.db.init import init_db
from agrimarket.errors import StreamError
from agrimarket.gateway.realtime import ChannelRegistry
from agrimarket.gateway.sql_gateway import SQLGateway
from agrimarket.models.profile import Profile
from agrimarket.services.assistant_client import AssistantClient, CancelToken


class FakeAssistant(AssistantClient):
    """
    Scripted assistant.

    Yields ``chunks`` in order. When ``gate`` is set, waits on it after the
    first chunk so tests can act mid-stream. ``error`` is raised after all
    chunks have been yielded.
    """

    def __init__(self, chunks=None, error: Optional[Exception] = None, gate: Optional[asyncio.Event] = None,
                 configured: bool = True):
        self.chunks = list(chunks if chunks is not None else ["Hello", " world"])
        self.error = error
        self.gate = gate
        self._configured = configured
        self.requests: List[List[Dict[str, Any]]] = []
        self.first_chunk_sent = asyncio.Event()

    @property
    def configured(self) -> bool:
        return self._configured

    async def stream_reply(self, contents, cancel: Optional[CancelToken] = None):
        self.requests.append(contents)
        for index, chunk in enumerate(self.chunks):
            if cancel is not None and cancel.cancelled:
                return
            yield chunk
            if index == 0:
                self.first_chunk_sent.set()
                if self.gate is not None:
                    await self.gate.wait()
        if self.error is not None:
            raise self.error


async def settle(rounds: int = 5):
    """Let queued realtime deliveries and listener tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def gateway(engine):
    return SQLGateway(engine, ChannelRegistry())


@pytest.fixture
def broken_gateway():
    """A gateway whose tables were never created: every call fails."""
    engine = build_engine("sqlite://")
    yield SQLGateway(engine, ChannelRegistry())
    engine.dispose()


@pytest.fixture
async def owner(gateway):
    return await gateway.insert(Profile(user_id="user-1", full_name="Ada Farmer", location="Lagos, Nigeria"))


@pytest.fixture
def assistant():
    return FakeAssistant()


@pytest.fixture
def failing_assistant():
    return FakeAssistant(chunks=[], error=StreamError("Gemini error: 500"))
