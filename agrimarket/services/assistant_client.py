"""
Generative assistant client.

Builds the request body from conversation history and streams the reply
back as text deltas. The Gemini implementation reads the response body line
by line with httpx; each line is one JSON fragment and the delta sits at
``candidates[0].content.parts[0].text``. Fragments that do not parse are
skipped without ending the stream.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from agrimarket import config
from agrimarket.errors import ConfigFault, StreamError
from agrimarket.schemas.chat import MessageView
from agrimarket.services.attachments import InlineDataPart, TextPart, message_parts
from agrimarket.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)

# Stored roles mapped onto the generative API's two-role vocabulary
ROLE_MAP = {"user": "user", "assistant": "model"}


class CancelToken:
    """Cooperative cancellation flag for an in-flight reply stream."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def _request_parts(message: MessageView) -> List[Dict[str, Any]]:
    parts = []
    for part in message_parts(message.content, message.attachment):
        if isinstance(part, TextPart):
            parts.append({"text": part.text})
        elif isinstance(part, InlineDataPart):
            parts.append({"inline_data": {"mime_type": part.mime_type, "data": part.data}})
    return parts


def build_contents(history: Sequence[MessageView], user_text: str) -> List[Dict[str, Any]]:
    """
    Turn stored history plus the new user text into request turns.

    History is taken oldest first; turns without any text or inline data
    (an empty placeholder, for example) are left out. The new user text is
    always the last turn.
    """
    contents = []
    for message in history:
        parts = _request_parts(message)
        if not parts:
            continue
        contents.append({"role": ROLE_MAP[message.role], "parts": parts})
    contents.append({"role": "user", "parts": [{"text": user_text}]})
    return contents


def parse_fragment(line: str) -> Optional[Any]:
    """
    Decode one stream line.

    Tolerates an SSE ``data:`` prefix and the brackets/commas of a streamed
    JSON array. Returns None for blank lines.

    Raises:
        ValueError: If the fragment is not valid JSON
    """
    fragment = line.strip()
    if fragment.startswith("data:"):
        fragment = fragment[len("data:"):].strip()
    fragment = fragment.lstrip("[,").rstrip("],").strip()
    if not fragment:
        return None
    return json.loads(fragment)


def extract_delta(payload: Any) -> Optional[str]:
    """Text delta at candidates[0].content.parts[0].text, if present."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text else None


class AssistantClient(ABC):
    """A generative model that streams a reply to a list of turns."""

    @property
    def configured(self) -> bool:
        return True

    @abstractmethod
    def stream_reply(
        self,
        contents: List[Dict[str, Any]],
        cancel: Optional[CancelToken] = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas in arrival order."""


class GeminiClient(AssistantClient):
    """Streaming client for the Gemini ``streamGenerateContent`` endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = config.GEMINI_API_KEY,
        model: str = config.GEMINI_MODEL,
        base_url: str = config.GEMINI_API_BASE,
        temperature: float = config.CHAT_TEMPERATURE,
        max_output_tokens: int = config.CHAT_MAX_OUTPUT_TOKENS,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.http_client = http_client
        self.timeout = timeout

        if not self.api_key:
            logger.warning("Gemini client created without an API key; replies are disabled")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:streamGenerateContent"

    def request_body(self, contents: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "contents": contents,
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    async def stream_reply(
        self,
        contents: List[Dict[str, Any]],
        cancel: Optional[CancelToken] = None,
    ) -> AsyncIterator[str]:
        if not self.configured:
            raise ConfigFault("GEMINI_API_KEY is not configured")

        client = self.http_client or httpx.AsyncClient(timeout=self.timeout)
        try:
            async with client.stream(
                "POST",
                self.endpoint,
                params={"key": self.api_key, "alt": "sse"},
                json=self.request_body(contents),
            ) as response:
                if response.status_code >= 400:
                    raise StreamError(f"Gemini error: {response.status_code}")

                async for line in response.aiter_lines():
                    if cancel is not None and cancel.cancelled:
                        logger.info("Reply stream cancelled by caller")
                        return
                    try:
                        payload = parse_fragment(line)
                    except ValueError:
                        metrics_collector.fragment_skipped()
                        continue
                    if payload is None:
                        continue
                    delta = extract_delta(payload)
                    if delta:
                        yield delta
        except httpx.HTTPError as e:
            raise StreamError(f"Gemini request failed: {str(e)}") from e
        finally:
            if self.http_client is None:
                await client.aclose()
