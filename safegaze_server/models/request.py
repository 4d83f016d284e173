"""Pydantic models for inference host request payloads."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

MESSAGE_SEPARATOR = "/-/"
DETECT_MESSAGE_PREFIX = "coreML"
REPLACED_MESSAGE = "replaced"


class DetectRequest(BaseModel):
    """Detection request: an image URL or inline base64 bytes.

    Example:
        {"url": "https://example.com/photo.jpg"}
    """

    url: Optional[str] = Field(default=None, description="Image URL (http(s), // or data:)")
    image_base64: Optional[str] = Field(default=None, description="Base64 encoded image bytes")


class MessageRequest(BaseModel):
    """Raw message posted by the page script."""

    body: str = Field(..., description="Message body, e.g. coreML/-/<url>/-/<uid>")


class MessageKind(str, Enum):
    DETECT = "detect"
    REPLACED = "replaced"
    UNKNOWN = "unknown"


class ScriptMessage(BaseModel):
    """Parsed page-script message.

    Two shapes are understood:
    - ``coreML/-/<url>/-/<uid>[/-/<base64 image>]`` asks for detection
    - ``replaced`` reports that the page swapped in a redacted image
    """

    kind: MessageKind
    url: Optional[str] = None
    uid: Optional[str] = None
    image_data: Optional[str] = None

    @classmethod
    def parse(cls, body: str) -> "ScriptMessage":
        if body == REPLACED_MESSAGE:
            return cls(kind=MessageKind.REPLACED)

        parts = body.split(MESSAGE_SEPARATOR)
        if parts[0] == DETECT_MESSAGE_PREFIX and len(parts) >= 3:
            return cls(
                kind=MessageKind.DETECT,
                url=parts[1],
                uid=parts[2],
                image_data=parts[3] if len(parts) > 3 and parts[3] else None,
            )
        return cls(kind=MessageKind.UNKNOWN)
