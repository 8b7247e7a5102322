"""Request-scoped data types shared by the pipeline and the API layer.

All of these are created per request and discarded once the response is
sent.  The model response is a small discriminated union: exactly one of
:class:`ImageResponse`, :class:`TextResponse` or :class:`EmptyResponse` is
produced by :func:`shotcraft.core.gemini_client.classify_response`.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Literal, Union


@dataclass(frozen=True)
class ImageAttachment:
    """A client-supplied reference image.

    The payload is opaque: only the presence of both fields is checked.
    """

    mime_type: str
    data: str  # base64

    def to_bytes(self) -> bytes:
        """Decode the base64 payload.

        Line breaks and other characters outside the base64 alphabet are
        skipped, as MIME-style encoders wrap their output.

        Raises:
            binascii.Error: If the remaining data is incorrectly padded.
        """
        return base64.b64decode(self.data)


@dataclass(frozen=True)
class GenerationRequest:
    """A validated generation request.

    ``prompt_text`` is empty for the prompt-suggestion endpoint, which is
    driven by the attachments alone.
    """

    prompt_text: str
    attachments: tuple[ImageAttachment, ...]

    def __post_init__(self) -> None:
        if not self.attachments:
            raise ValueError("GenerationRequest requires at least one attachment")


@dataclass(frozen=True)
class ModelRequest:
    """Ordered parts sent to the model: instruction first, then evidence."""

    instruction: str
    attachments: tuple[ImageAttachment, ...]

    @property
    def part_count(self) -> int:
        return 1 + len(self.attachments)


@dataclass(frozen=True)
class ImageResponse:
    data: bytes
    mime_type: str = "image/png"
    kind: Literal["image"] = "image"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class TextResponse:
    text: str
    kind: Literal["text"] = "text"


@dataclass(frozen=True)
class EmptyResponse:
    kind: Literal["empty"] = "empty"


ModelResponse = Union[ImageResponse, TextResponse, EmptyResponse]


@dataclass(frozen=True)
class GeneratedImage:
    """Final result of ``/generate-images`` before JSON shaping.

    Attributes:
        image: Base64 payload (real image bytes or an encoded SVG card).
        mime_type: MIME type of the decoded payload.
        kind: ``"image"`` for model output, ``"placeholder"`` for the card.
        description: Plan text, present only for the plan mode.
    """

    image: str
    mime_type: str
    kind: Literal["image", "placeholder"]
    description: str | None = None
