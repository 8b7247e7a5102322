"""Gemini invocation and response classification.

This module is the only place that talks to the ``google-genai`` SDK.  It
turns a :class:`~shotcraft.core.types.ModelRequest` into SDK ``Content``,
sends it with the per-mode :class:`InvocationSettings`, maps SDK failures
onto :mod:`shotcraft.core.errors`, and classifies whatever comes back into
exactly one :data:`~shotcraft.core.types.ModelResponse` variant.

Key Responsibilities
--------------------
- **Part ordering** - the instruction text is always the first part; the
  attachments follow in the order the client sent them.
- **Modality declaration** - image-seeking settings ask for
  ``response_modalities=["TEXT", "IMAGE"]``.
- **Classification** - :func:`classify_response` looks at the first
  candidate's parts for inline binary data before it looks for text.

Usage
-----
::

    client = GeminiModelClient(config)
    response = await client.generate(model_request, settings)
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from shotcraft.core.config import ShotcraftConfig
from shotcraft.core.errors import ConfigurationError, RequestValidationError, classify_upstream_error
from shotcraft.core.types import (
    EmptyResponse,
    ImageResponse,
    ModelRequest,
    ModelResponse,
    TextResponse,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationSettings:
    """Fixed model configuration for one generation mode."""

    model: str
    temperature: float
    max_output_tokens: int
    top_p: float | None = None
    top_k: int | None = None
    response_mime_type: str | None = None
    system_instruction: str | None = None
    expects_image: bool = False

    def to_generate_config(self) -> types.GenerateContentConfig:
        kwargs: dict[str, Any] = {
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }
        if self.top_p is not None:
            kwargs["top_p"] = self.top_p
        if self.top_k is not None:
            kwargs["top_k"] = self.top_k
        if self.response_mime_type:
            kwargs["response_mime_type"] = self.response_mime_type
        if self.system_instruction:
            kwargs["system_instruction"] = self.system_instruction
        if self.expects_image:
            kwargs["response_modalities"] = ["TEXT", "IMAGE"]
        return types.GenerateContentConfig(**kwargs)


class ModelClient(Protocol):
    """Anything that can answer a :class:`ModelRequest`.

    The API layer depends on this protocol so tests can substitute a fake.
    """

    async def generate(
        self, request: ModelRequest, settings: InvocationSettings
    ) -> ModelResponse: ...


def build_contents(request: ModelRequest) -> list[types.Content]:
    """Convert a model request into a single user ``Content``.

    Args:
        request: Instruction plus attachments.

    Returns:
        One-element list holding the user turn.

    Raises:
        RequestValidationError: If an attachment payload cannot be decoded.
    """
    parts = [types.Part.from_text(text=request.instruction)]
    for index, attachment in enumerate(request.attachments):
        try:
            data = attachment.to_bytes()
        except binascii.Error as e:
            raise RequestValidationError("Invalid file data", details=f"files[{index}]") from e
        parts.append(types.Part.from_bytes(data=data, mime_type=attachment.mime_type))
    return [types.Content(role="user", parts=parts)]


def classify_response(response: types.GenerateContentResponse) -> ModelResponse:
    """Reduce an SDK response to Image, Text or Empty.

    Only the first candidate is considered.  Any part with inline data wins
    over text parts, wherever it appears in the part list.

    Args:
        response: Raw SDK response.

    Returns:
        The matching :data:`ModelResponse` variant.
    """
    candidates = response.candidates or []
    if not candidates:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None)
        if block_reason:
            logger.warning(f"Prompt blocked by safety filter: {block_reason}")
        return EmptyResponse()

    content = candidates[0].content
    parts = (content.parts if content else None) or []

    for part in parts:
        inline_data = part.inline_data
        raw = inline_data.data if inline_data else None
        if not raw:
            continue
        data = base64.b64decode(raw) if isinstance(raw, str) else bytes(raw)
        return ImageResponse(data=data, mime_type=inline_data.mime_type or "image/png")

    texts = [part.text for part in parts if part.text]
    if texts:
        return TextResponse(text="".join(texts))

    return EmptyResponse()


class GeminiModelClient:
    """:class:`ModelClient` backed by ``google.genai``.

    Attributes:
        _client (genai.Client): SDK client bound to the configured key.
    """

    def __init__(self, config: ShotcraftConfig, client: genai.Client | None = None) -> None:
        """Create the SDK client.

        Args:
            config: Configuration holding the credential.
            client: Pre-built SDK client, mainly for tests.

        Raises:
            ConfigurationError: If no API key is configured.
        """
        if client is None:
            if not config.has_api_key:
                raise ConfigurationError(
                    "API key configuration error. "
                    "Please set GEMINI_API_KEY in the deployment environment."
                )
            client = genai.Client(api_key=config.gemini_api_key)
        self._client = client

    async def generate(self, request: ModelRequest, settings: InvocationSettings) -> ModelResponse:
        """Send one request and classify the reply.

        Raises:
            ShotcraftError: Classified SDK or transport failure.
        """
        logger.info(
            f"Calling {settings.model} with {request.part_count} part(s) "
            f"(image output={settings.expects_image})"
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=settings.model,
                contents=build_contents(request),
                config=settings.to_generate_config(),
            )
        except (genai_errors.APIError, httpx.TransportError) as exc:
            raise classify_upstream_error(exc) from exc

        return classify_response(response)
