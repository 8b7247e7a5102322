"""Shotcraft - FastAPI Application.

This module is the single entry point for the web service.  It defines the
FastAPI ``app`` instance, the request dispatcher for both generation
endpoints, and the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The service is stateless:

- **Configuration** is rebuilt for every request through
  :func:`~shotcraft.core.config.get_config`, so the ``GEMINI_API_KEY``
  credential is read at invocation time.
- **Model access** goes through a client factory dependency that defaults to
  :class:`~shotcraft.core.gemini_client.GeminiModelClient`.  Tests override it
  with a fake.
- **Generation** is delegated to
  :class:`~shotcraft.core.pipeline.GenerationPipeline`, which owns the retry
  policy of each mode.
- **Errors** are all caught here and shaped as ``{"error", "details"}`` JSON.

Endpoints
---------
========  =====================  ==========================================
Method    Path                   Purpose
========  =====================  ==========================================
POST      ``/generate-prompts``  Suggest four product photo prompts
POST      ``/generate-images``   Generate an image or a shooting-plan card
OPTIONS   both of the above      Cross-origin preflight (200, empty body)
GET       ``/healthz``           Liveness and credential presence
========  =====================  ==========================================

Any other method on the generation paths answers 405.

Usage
-----
CLI (installed entry point)::

    shotcraft

Direct invocation::

    python -m shotcraft.api.main
"""

from __future__ import annotations

import asyncio
import json
import logging
import traceback
from collections.abc import Callable

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from shotcraft import __version__
from shotcraft.api.models import ErrorResponse, GenerateImagesResponse, HealthResponse
from shotcraft.api.validation import INVALID_BODY, parse_images_request, parse_prompts_request
from shotcraft.core.config import ShotcraftConfig, get_config
from shotcraft.core.errors import (
    ConfigurationError,
    PayloadTooLargeError,
    RequestValidationError,
    ResponseFormatError,
    ShotcraftError,
    UpstreamRateLimitError,
)
from shotcraft.core.gemini_client import GeminiModelClient, ModelClient
from shotcraft.core.pipeline import GenerationPipeline
from shotcraft.core.retry import Sleeper

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ShotcraftConfig], ModelClient]

# ---------------------------------------------------------------------------
# Cross-origin headers sent on every response.
# ---------------------------------------------------------------------------
CORS_ALLOW_METHODS = ["GET", "OPTIONS", "PATCH", "DELETE", "POST", "PUT"]
CORS_ALLOW_HEADERS = [
    "X-CSRF-Token",
    "X-Requested-With",
    "Accept",
    "Accept-Version",
    "Content-Length",
    "Content-MD5",
    "Content-Type",
    "Date",
    "X-Api-Version",
]
CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ",".join(CORS_ALLOW_METHODS),
    "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
}

MISSING_KEY_MESSAGE = (
    "API key configuration error. Please set GEMINI_API_KEY in the deployment environment."
)
UNEXPECTED_DETAILS = "An unexpected error occurred. Please try again later."
BODY_TOO_LARGE = "Request body too large"

# Endpoint-specific bodies.  The keys are the endpoint labels used below.
_RATE_LIMIT_BODIES: dict[str, ErrorResponse] = {
    "prompts": ErrorResponse(error="Rate limit exceeded. Please try again later."),
    "images": ErrorResponse(
        error="Rate limit exceeded",
        details="The API rate limit was reached. Please wait a moment and try again.",
    ),
}
_FAILURE_MESSAGES: dict[str, str] = {
    "prompts": "Failed to generate prompts",
    "images": "Failed to generate image",
}


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Shotcraft",
    description="Product photo prompt suggestions and image generation via Gemini.",
    version=__version__,
)

@app.middleware("http")
async def apply_cors_headers(request: Request, call_next) -> Response:
    """Stamp the fixed CORS headers on every response.

    Browser preflights are not intercepted here: every OPTIONS request reaches
    :func:`preflight` and is answered 200 whatever headers it asks for.
    """
    response = await call_next(request)
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_client_factory() -> ClientFactory:
    """Return the callable that builds a model client from configuration."""
    return GeminiModelClient


def get_sleeper() -> Sleeper:
    """Return the async sleeper used between retries."""
    return asyncio.sleep


# ---------------------------------------------------------------------------
# Helpers.
# ---------------------------------------------------------------------------


def _json_error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _error_response(exc: ShotcraftError, endpoint: str) -> JSONResponse:
    """Map a classified error to the endpoint's JSON error body.

    Args:
        exc: Error raised by validation or the pipeline.
        endpoint: ``"prompts"`` or ``"images"``.

    Returns:
        JSON response with the status carried by ``exc``.
    """
    if isinstance(exc, UpstreamRateLimitError):
        body = _RATE_LIMIT_BODIES[endpoint]
    elif isinstance(exc, (RequestValidationError, ResponseFormatError, ConfigurationError)):
        body = ErrorResponse(error=exc.message, details=exc.details)
    else:
        body = ErrorResponse(error=_FAILURE_MESSAGES[endpoint], details=exc.message)
    return _json_error(exc.status_code, body)


def _unexpected_response(exc: Exception, endpoint: str, config: ShotcraftConfig) -> JSONResponse:
    """Generic 500 for errors outside the taxonomy.

    The exception text and traceback are only exposed in development.
    """
    if config.is_development:
        details = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    else:
        details = UNEXPECTED_DETAILS
    return _json_error(500, ErrorResponse(error=_FAILURE_MESSAGES[endpoint], details=details))


async def _read_json_body(request: Request, config: ShotcraftConfig) -> object:
    """Read and decode the request body.

    The declared ``Content-Length`` is checked before anything is read; the
    body is measured again afterwards for requests that declare none.

    Raises:
        PayloadTooLargeError: If the body exceeds ``max_body_bytes``.
        RequestValidationError: If the body is not valid JSON.
    """
    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > config.max_body_bytes:
        logger.warning(f"Rejected body of {content_length} bytes (limit {config.max_body_bytes})")
        raise PayloadTooLargeError(BODY_TOO_LARGE)

    raw = await request.body()
    if len(raw) > config.max_body_bytes:
        raise PayloadTooLargeError(BODY_TOO_LARGE)
    logger.info(f"Request body size: {len(raw)} bytes")
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise RequestValidationError(INVALID_BODY) from e


def _build_pipeline(
    config: ShotcraftConfig,
    client_factory: ClientFactory,
    sleep: Sleeper,
) -> GenerationPipeline:
    """Check the credential and build the pipeline for one request.

    Raises:
        ConfigurationError: If ``GEMINI_API_KEY`` is not set.
    """
    if not config.has_api_key:
        logger.error("GEMINI_API_KEY is not set in environment variables")
        raise ConfigurationError(MISSING_KEY_MESSAGE)
    return GenerationPipeline(client_factory(config), config, sleep=sleep)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.options("/generate-prompts")
@app.options("/generate-images")
async def preflight() -> Response:
    """Answer cross-origin preflight requests without touching the body."""
    return Response(status_code=200)


@app.api_route("/generate-prompts", methods=["GET", "PUT", "PATCH", "DELETE"])
@app.api_route("/generate-images", methods=["GET", "PUT", "PATCH", "DELETE"])
async def method_not_allowed() -> JSONResponse:
    return _json_error(405, ErrorResponse(error="Method not allowed"))


@app.post(
    "/generate-prompts",
    response_model=list[str],
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def generate_prompts(
    request: Request,
    config: ShotcraftConfig = Depends(get_config),
    client_factory: ClientFactory = Depends(get_client_factory),
    sleep: Sleeper = Depends(get_sleeper),
):
    """Suggest product photo prompts for the uploaded images.

    Body: ``{"files": [{"mimeType": str, "base64": str}, ...]}``.

    Returns:
        JSON array of suggestion strings, or an error body.
    """
    logger.info("Prompt suggestion API called")
    try:
        body = await _read_json_body(request, config)
        generation_request = parse_prompts_request(body)
        logger.info(f"Number of files: {len(generation_request.attachments)}")

        pipeline = _build_pipeline(config, client_factory, sleep)
        suggestions = await pipeline.suggest_prompts(generation_request)
    except ShotcraftError as e:
        logger.error(f"Error in generate-prompts: {type(e).__name__}: {e.message}")
        return _error_response(e, "prompts")
    except Exception as e:
        logger.error(f"Unexpected error in generate-prompts: {e}", exc_info=True)
        return _unexpected_response(e, "prompts", config)

    logger.info(f"Returning {len(suggestions)} suggestion(s)")
    return suggestions


@app.post(
    "/generate-images",
    response_model=GenerateImagesResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def generate_images(
    request: Request,
    config: ShotcraftConfig = Depends(get_config),
    client_factory: ClientFactory = Depends(get_client_factory),
    sleep: Sleeper = Depends(get_sleeper),
):
    """Generate a product image, or a shooting-plan card in plan mode.

    Body: ``{"prompt": str, "files": [...], "mode": "plan"|"direct"|"scene"}``
    where ``mode`` is optional and defaults to ``SHOTCRAFT_IMAGE_MODE``.

    Returns:
        :class:`GenerateImagesResponse` or an error body.
    """
    logger.info("Image generation API called")
    try:
        body = await _read_json_body(request, config)
        generation_request, mode = parse_images_request(body, config.image_mode)

        pipeline = _build_pipeline(config, client_factory, sleep)
        result = await pipeline.generate_image(generation_request, mode)
    except ShotcraftError as e:
        logger.error(f"Error in generate-images: {type(e).__name__}: {e.message}")
        return _error_response(e, "images")
    except Exception as e:
        logger.error(f"Unexpected error in generate-images: {e}", exc_info=True)
        return _unexpected_response(e, "images", config)

    logger.info(f"Image generated successfully ({result.kind}, {mode} mode)")
    return GenerateImagesResponse(
        image=result.image,
        kind=result.kind,
        mime_type=result.mime_type,
        description=result.description,
    )


@app.get("/healthz", response_model=HealthResponse)
async def healthz(config: ShotcraftConfig = Depends(get_config)) -> HealthResponse:
    """Report liveness and whether a credential is configured."""
    return HealthResponse(version=__version__, api_key_configured=config.has_api_key)


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :class:`ShotcraftConfig` (which loads
    ``SHOTCRAFT_SERVER_HOST``, ``SHOTCRAFT_SERVER_PORT`` and
    ``SHOTCRAFT_LOG_LEVEL``).  Defaults to ``0.0.0.0:8000``.

    This function is registered as the ``shotcraft`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    config = get_config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "shotcraft.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
