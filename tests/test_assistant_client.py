"""Tests for request building and stream parsing of the Gemini client."""
import json
import uuid
from datetime import datetime

import httpx
import pytest

from agrimarket.errors import ConfigFault, StreamError
from agrimarket.schemas.chat import MessageView
from agrimarket.services.assistant_client import (
    CancelToken,
    GeminiClient,
    build_contents,
    extract_delta,
    parse_fragment,
)


def chunk(text):
    return json.dumps({"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]})


def view(role, content, attachment=None):
    return MessageView(
        id=uuid.uuid4(),
        conversation_id=uuid.uuid4(),
        role=role,
        content=content,
        attachment=attachment,
        created_at=datetime.utcnow(),
    )


def make_client(handler, api_key="test-key"):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiClient(api_key=api_key, model="gemini-test", base_url="https://gemini.test/v1beta",
                        http_client=http_client)


async def collect(client, contents=None, cancel=None):
    return [delta async for delta in client.stream_reply(contents or [], cancel)]


def test_parse_fragment_tolerates_sse_and_array_punctuation():
    assert parse_fragment('data: {"a": 1}') == {"a": 1}
    assert parse_fragment('[{"a": 1}') == {"a": 1}
    assert parse_fragment(',{"a": 2}]') == {"a": 2}
    assert parse_fragment("   ") is None
    with pytest.raises(ValueError):
        parse_fragment("data: {broken")


def test_extract_delta():
    assert extract_delta(json.loads(chunk("hi"))) == "hi"
    assert extract_delta({"candidates": []}) is None
    assert extract_delta({"usageMetadata": {}}) is None


def test_build_contents_maps_roles_and_skips_empty_turns():
    history = [
        view("user", "Hello"),
        view("assistant", ""),
        view("assistant", "Hi, how can I help?"),
        view("user", "Uploaded: leaf.png", "data:image/png;base64,AAAA"),
    ]
    contents = build_contents(history, "What is this?")

    assert [turn["role"] for turn in contents] == ["user", "model", "user", "user"]
    assert contents[2]["parts"][1] == {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}
    assert contents[-1] == {"role": "user", "parts": [{"text": "What is this?"}]}


async def test_stream_concatenates_deltas_and_skips_bad_fragments():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = request.url
        seen["body"] = json.loads(request.content)
        body = "\n".join([
            "data: " + chunk("Plant "),
            "data: {not json",
            "",
            "data: " + chunk("early."),
        ])
        return httpx.Response(200, text=body)

    client = make_client(handler)
    deltas = await collect(client, [{"role": "user", "parts": [{"text": "When?"}]}])

    assert "".join(deltas) == "Plant early."
    assert seen["url"].params["key"] == "test-key"
    assert seen["url"].params["alt"] == "sse"
    assert seen["url"].path.endswith("/models/gemini-test:streamGenerateContent")
    assert seen["body"]["generationConfig"]["maxOutputTokens"] == client.max_output_tokens


async def test_error_status_raises_stream_error():
    client = make_client(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(StreamError, match="Gemini error: 500"):
        await collect(client)


async def test_network_failure_raises_stream_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(StreamError):
        await collect(make_client(handler))


async def test_missing_key_is_a_config_fault():
    client = make_client(lambda request: httpx.Response(200), api_key=None)
    assert not client.configured
    with pytest.raises(ConfigFault):
        await collect(client)


async def test_cancelled_token_stops_reading():
    client = make_client(lambda request: httpx.Response(200, text="\n".join(["data: " + chunk("x")] * 3)))
    token = CancelToken()
    token.cancel()
    assert await collect(client, cancel=token) == []
