"""
Attachment ingestion and message content decoding.

Dropped files are encoded client-side into data URLs
(``data:<mime>;base64,<payload>``) and stored in the message's dedicated
``attachment`` column. Older rows carry the blob inline in the content,
behind an ``[IMAGE:<filename>]`` marker; ``message_parts`` is the one place
that understands both conventions, so nothing ever renders the marker.
"""

import base64
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ACCEPTED_DOCUMENT_TYPES = ("application/pdf",)
DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>[A-Za-z0-9+/=]*)$")
LEGACY_MARKER_PATTERN = re.compile(
    r"^\[IMAGE:(?P<name>[^\]]*)\](?P<url>data:[\w.+-]+/[\w.+-]+;base64,[A-Za-z0-9+/=]*)",
)


class TextPart(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class InlineDataPart(BaseModel):
    kind: Literal["image"] = "image"
    mime_type: str
    data: str  # base64 payload

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass
class Attachment:
    """An encoded file ready to be stored on a user message."""
    filename: str
    mime_type: str
    data_url: str
    size: int = 0

    @property
    def content(self) -> str:
        return f"Uploaded: {self.filename}"


def is_accepted_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.startswith("image/") or content_type in ACCEPTED_DOCUMENT_TYPES


def encode_data_url(mime_type: str, payload: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"


def decode_data_url(value: Optional[str]) -> Optional[InlineDataPart]:
    """Parse a data URL into an inline part; None when it is not one."""
    if not value:
        return None
    match = DATA_URL_PATTERN.match(value)
    if not match:
        return None
    return InlineDataPart(mime_type=match.group("mime"), data=match.group("data"))


def split_legacy_content(content: str) -> Tuple[str, Optional[InlineDataPart]]:
    """Separate an ``[IMAGE:<name>]<data-url>`` prefix from the text after it."""
    match = LEGACY_MARKER_PATTERN.match(content or "")
    if not match:
        return content or "", None
    remainder = content[match.end():].strip()
    text = remainder or f"Uploaded: {match.group('name')}"
    return text, decode_data_url(match.group("url"))


def message_parts(content: str, attachment: Optional[str] = None) -> List[Union[TextPart, InlineDataPart]]:
    """
    Decode stored message fields into display/request parts.

    Args:
        content: Stored message content, possibly carrying a legacy marker
        attachment: Stored data URL, if any

    Returns:
        Text part (when there is text) followed by the inline data part (when present)
    """
    text, inline = split_legacy_content(content)
    if inline is None:
        inline = decode_data_url(attachment)

    parts: List[Union[TextPart, InlineDataPart]] = []
    if text:
        parts.append(TextPart(text=text))
    if inline is not None:
        parts.append(inline)
    return parts


async def encode_dropped_files(files: Sequence[Any]) -> Optional[Attachment]:
    """
    Encode a single dropped file.

    ``files`` holds upload-like objects exposing ``filename``, ``content_type``
    and an async ``read()``. Returns None (and nothing must be written) when
    more than one file was dropped, the type is not accepted, or the file
    cannot be read.
    """
    if len(files) != 1:
        logger.info("Rejected drop of %d files; exactly one file per upload", len(files))
        return None

    upload = files[0]
    filename = getattr(upload, "filename", None) or "attachment"
    content_type = getattr(upload, "content_type", None)
    if not is_accepted_type(content_type):
        logger.info("Rejected attachment %s with type %s", filename, content_type)
        return None

    try:
        payload = await upload.read()
        data_url = encode_data_url(content_type, payload)
    except (OSError, ValueError, TypeError) as e:
        logger.warning(f"Could not encode attachment {filename}: {str(e)}")
        return None

    return Attachment(filename=filename, mime_type=content_type, data_url=data_url, size=len(payload))
