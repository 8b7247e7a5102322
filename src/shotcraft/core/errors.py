"""Error taxonomy for the generation pipeline.

Every failure the service knows how to report is a :class:`ShotcraftError`
subclass carrying the HTTP status it maps to.  The dispatcher in
:mod:`shotcraft.api.main` catches these at the route boundary; anything else
is treated as unexpected and answered with a generic 500.

Whether an error is retried is *not* a property of the class.  Each
generation mode declares which classes its retry policy accepts (see
:mod:`shotcraft.core.pipeline`), so a modality mismatch can be transient in
one mode and terminal in another.
"""

from __future__ import annotations

import logging

from google.genai import errors as genai_errors

logger = logging.getLogger(__name__)


class ShotcraftError(Exception):
    """Base class for errors reported to API callers.

    Attributes:
        message: Short, user-facing error string (the ``error`` field).
        details: Optional longer explanation (the ``details`` field).
        status_code: HTTP status the error maps to.
    """

    status_code: int = 500

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class RequestValidationError(ShotcraftError):
    """Missing or malformed request fields.  Never retried."""

    status_code = 400


class PayloadTooLargeError(RequestValidationError):
    """Request body exceeds the configured size limit."""

    status_code = 413


class ConfigurationError(ShotcraftError):
    """The deployment is missing or has an unusable credential."""

    status_code = 500


class UpstreamRateLimitError(ShotcraftError):
    """Gemini answered HTTP 429 / RESOURCE_EXHAUSTED."""

    status_code = 429


class UpstreamServerError(ShotcraftError):
    """Gemini answered with a 5xx status."""

    status_code = 500


class UpstreamClientError(ShotcraftError):
    """Gemini rejected the request with a non-retryable 4xx status."""

    status_code = 500


class ModalityMismatchError(ShotcraftError):
    """An image-seeking call came back with text only."""

    status_code = 500


class EmptyResponseError(ShotcraftError):
    """The model returned neither inline data nor text."""

    status_code = 500


class ResponseFormatError(ShotcraftError):
    """The model output did not have the expected structure.

    Raised for unparseable JSON and for JSON that is not a non-empty array of
    strings.  These point at a contract mismatch, not a transient condition.
    """

    status_code = 500


# Substrings that identify a rate limit in errors that do not come from the
# SDK's typed hierarchy (for example a proxy that re-wraps the response).
_RATE_LIMIT_MARKERS = ("429", "resource_exhausted")


def classify_upstream_error(exc: Exception) -> ShotcraftError:
    """Map an exception raised by the Gemini SDK onto the error taxonomy.

    SDK ``APIError`` instances are mapped by status code.  Anything else is a
    transport-level failure (connection reset, read timeout) and is treated
    like a 5xx unless its text identifies a rate limit or a key problem.

    Args:
        exc: Exception raised while calling the model.

    Returns:
        The matching :class:`ShotcraftError`.  Already-classified errors are
        returned unchanged.
    """
    if isinstance(exc, ShotcraftError):
        return exc

    text = str(exc)

    if isinstance(exc, genai_errors.APIError):
        code = exc.code or 0
        if code == 429:
            return UpstreamRateLimitError("Rate limit exceeded", details=text)
        if code >= 500:
            return UpstreamServerError(f"Upstream server error ({code})", details=text)
        if "api key" in text.lower():
            return ConfigurationError("API key error", details=text)
        return UpstreamClientError(f"Upstream request rejected ({code})", details=text)

    lowered = text.lower()
    if any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
        return UpstreamRateLimitError("Rate limit exceeded", details=text)
    if "api key" in lowered:
        return ConfigurationError("API key error", details=text)

    logger.debug(f"Transport error {type(exc).__name__}: {text}")
    return UpstreamServerError("Upstream connection failed", details=text)
