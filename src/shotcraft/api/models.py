"""Pydantic request and response models for the Shotcraft API.

Request bodies are deliberately *not* bound directly to route signatures:
the API contract answers specific 400 messages ("No prompt provided",
"No files provided") instead of FastAPI's generic 422 payload, so bodies are
read as raw JSON and checked by :mod:`shotcraft.api.validation`, which uses
:class:`ImageFile` for the per-file shape.

Models
------
ImageFile
    One uploaded reference image (``{"mimeType": ..., "base64": ...}``).
GenerateImagesResponse
    Success body for ``POST /generate-images``.
ErrorResponse
    Failure body for every endpoint.
HealthResponse
    Body for ``GET /healthz``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class ImageFile(BaseModel):
    """A single uploaded file as sent by the frontend.

    Attributes:
        mime_type: MIME type reported by the browser (``mimeType`` on the wire).
        base64: Base64 file payload without a data-URL prefix.  Passed through
            untouched; it is only decoded when the model request is built.
    """

    model_config = ConfigDict(populate_by_name=True)

    mime_type: StrictStr = Field(
        ...,
        alias="mimeType",
        description="MIME type of the uploaded image (e.g. 'image/png').",
    )
    base64: StrictStr = Field(
        ...,
        description="Base64-encoded file contents.",
    )


class GenerateImagesResponse(BaseModel):
    """Response body for ``POST /generate-images``.

    Attributes:
        image: Base64 payload.  For ``kind == "placeholder"`` this decodes to
            an SVG document rather than raster image bytes.
        kind: ``"image"`` for model output, ``"placeholder"`` for the plan card.
        mime_type: MIME type of the decoded payload (``mimeType`` on the wire).
        description: The plan text (plan mode only).
    """

    model_config = ConfigDict(populate_by_name=True)

    image: str
    kind: Literal["image", "placeholder"]
    mime_type: str = Field(..., alias="mimeType")
    description: str | None = None


class ErrorResponse(BaseModel):
    """Error body returned by every failure path."""

    error: str
    details: str | None = None


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    version: str
    api_key_configured: bool
