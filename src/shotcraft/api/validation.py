"""Request body validation for the Shotcraft endpoints.

Checks run in the order the API contract lists them, so the first problem
found decides the message:

1. ``prompt`` must be a non-empty string (``/generate-images`` only).
2. ``files`` must be a non-empty array.
3. Each file must carry string ``mimeType`` and ``base64`` fields.
4. ``mode``, when present, must name an image mode.

A JSON body that is not an object (``[]``, ``"text"``, ``null``) has no
``prompt`` or ``files`` key, so it fails with "No prompt provided" or
"No files provided" like any other body missing those fields.

File payloads are opaque here: only the type and presence of both fields
are checked.  Decoding happens when the model request is built.

Every failure raises :class:`~shotcraft.core.errors.RequestValidationError`,
which the dispatcher turns into a 400.  None of these checks talk to the
model.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from shotcraft.api.models import ImageFile
from shotcraft.core.errors import RequestValidationError
from shotcraft.core.pipeline import IMAGE_MODES
from shotcraft.core.types import GenerationRequest, ImageAttachment

logger = logging.getLogger(__name__)

NO_PROMPT = "No prompt provided"
NO_FILES = "No files provided"
INVALID_FILE = "Invalid file entry"
INVALID_BODY = "Invalid JSON body"
INVALID_MODE = "Invalid mode"


def _fields(body: Any) -> dict:
    return body if isinstance(body, dict) else {}


def parse_files(raw_files: Any) -> tuple[ImageAttachment, ...]:
    """Validate the ``files`` array and convert it to attachments.

    Args:
        raw_files: Value of the ``files`` key, any JSON type.

    Returns:
        Attachments in the order received.

    Raises:
        RequestValidationError: On a missing/empty array or an entry without
            string ``mimeType`` and ``base64`` fields.
    """
    if not isinstance(raw_files, list) or not raw_files:
        logger.warning("No files provided in request")
        raise RequestValidationError(NO_FILES)

    attachments: list[ImageAttachment] = []
    for index, entry in enumerate(raw_files):
        try:
            image_file = ImageFile.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"Rejected file entry {index}: {e.error_count()} error(s)")
            raise RequestValidationError(INVALID_FILE, details=f"files[{index}]") from e
        attachments.append(ImageAttachment(mime_type=image_file.mime_type, data=image_file.base64))

    return tuple(attachments)


def parse_prompts_request(body: Any) -> GenerationRequest:
    """Validate a ``/generate-prompts`` body."""
    attachments = parse_files(_fields(body).get("files"))
    return GenerationRequest(prompt_text="", attachments=attachments)


def parse_images_request(body: Any, default_mode: str) -> tuple[GenerationRequest, str]:
    """Validate a ``/generate-images`` body.

    Args:
        body: Decoded JSON body.
        default_mode: Mode to use when the body names none.

    Returns:
        Tuple of ``(request, mode_name)``.

    Raises:
        RequestValidationError: See module docstring for the check order.
    """
    body = _fields(body)

    prompt = body.get("prompt")
    if not isinstance(prompt, str) or not prompt:
        raise RequestValidationError(NO_PROMPT)

    attachments = parse_files(body.get("files"))

    mode = body.get("mode")
    if mode is None:
        mode = default_mode
    if mode not in IMAGE_MODES:
        raise RequestValidationError(INVALID_MODE, details=f"Expected one of {', '.join(IMAGE_MODES)}")

    return GenerationRequest(prompt_text=prompt, attachments=attachments), mode
