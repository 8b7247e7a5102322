"""Model invocation pipeline for Shotcraft.

This module provides :class:`GenerationPipeline`, the single point of control
between the HTTP layer and the model.  Each request runs through the same
steps regardless of mode:

1. Compose the instruction text (:mod:`shotcraft.core.prompt_builder`).
2. Build the :class:`ModelRequest` once: instruction first, then the
   attachments in their original order.
3. Invoke the model with the mode's fixed :class:`InvocationSettings`.
4. Classify the reply and check it against what the mode needs.
5. Retry through :func:`shotcraft.core.retry.run_with_retry` when the
   mode's policy allows it.  The same request object is re-sent unchanged.

Modes
-----
========  =========  ========  ==========  ==================================
Mode      Output     Attempts  Base delay  Retries on
========  =========  ========  ==========  ==================================
prompts   JSON text  1         n/a         nothing
plan      text       1         n/a         nothing
direct    image      3         2000 ms     rate limit, text-only, empty
scene     image      5         1000 ms     rate limit, server error
========  =========  ========  ==========  ==================================

Attempt counts and delays come from :class:`ShotcraftConfig`; the table shows
the defaults.  Every delay is capped at ``max_backoff_ms`` (10 s).

The plan mode is the only one that turns text into a successful result: the
plan is laid out on an SVG card by :mod:`shotcraft.core.placeholder`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass
from typing import Literal

from shotcraft.core.config import ShotcraftConfig
from shotcraft.core.errors import (
    EmptyResponseError,
    ModalityMismatchError,
    ResponseFormatError,
    UpstreamRateLimitError,
    UpstreamServerError,
)
from shotcraft.core.gemini_client import InvocationSettings, ModelClient
from shotcraft.core.placeholder import render_placeholder
from shotcraft.core.prompt_builder import (
    SUGGESTIONS_SYSTEM_INSTRUCTION,
    build_instruction,
    build_suggestion_instruction,
)
from shotcraft.core.retry import SINGLE_ATTEMPT, RetryPolicy, RetryState, Sleeper, run_with_retry
from shotcraft.core.types import (
    GeneratedImage,
    GenerationRequest,
    ImageResponse,
    ModelRequest,
    ModelResponse,
    TextResponse,
)

logger = logging.getLogger(__name__)

ModeName = Literal["prompts", "plan", "direct", "scene"]
IMAGE_MODES: tuple[str, ...] = ("plan", "direct", "scene")

SUGGESTION_COUNT = 4


@dataclass(frozen=True)
class GenerationMode:
    """Template, model settings and retry policy for one kind of call."""

    name: ModeName
    settings: InvocationSettings
    policy: RetryPolicy

    @property
    def expects_image(self) -> bool:
        return self.settings.expects_image


def build_modes(config: ShotcraftConfig) -> dict[str, GenerationMode]:
    """Derive every mode from configuration.

    Args:
        config: Active configuration.

    Returns:
        Mapping of mode name to :class:`GenerationMode`.
    """
    image_settings = InvocationSettings(
        model=config.image_model,
        temperature=config.image_temperature,
        max_output_tokens=config.image_max_output_tokens,
        expects_image=True,
    )
    return {
        "prompts": GenerationMode(
            name="prompts",
            settings=InvocationSettings(
                model=config.prompts_model,
                temperature=config.prompts_temperature,
                max_output_tokens=config.prompts_max_output_tokens,
                response_mime_type="application/json",
                system_instruction=SUGGESTIONS_SYSTEM_INSTRUCTION,
            ),
            policy=SINGLE_ATTEMPT,
        ),
        "plan": GenerationMode(
            name="plan",
            settings=InvocationSettings(
                model=config.plan_model,
                temperature=config.plan_temperature,
                max_output_tokens=config.plan_max_output_tokens,
                top_p=config.plan_top_p,
                top_k=config.plan_top_k,
            ),
            policy=SINGLE_ATTEMPT,
        ),
        "direct": GenerationMode(
            name="direct",
            settings=image_settings,
            policy=RetryPolicy(
                max_attempts=config.direct_max_attempts,
                base_delay_ms=config.direct_base_delay_ms,
                max_delay_ms=config.max_backoff_ms,
                retry_on=(UpstreamRateLimitError, ModalityMismatchError, EmptyResponseError),
            ),
        ),
        "scene": GenerationMode(
            name="scene",
            settings=image_settings,
            policy=RetryPolicy(
                max_attempts=config.scene_max_attempts,
                base_delay_ms=config.scene_base_delay_ms,
                max_delay_ms=config.max_backoff_ms,
                retry_on=(UpstreamRateLimitError, UpstreamServerError),
            ),
        ),
    }


def parse_suggestions(text: str) -> list[str]:
    """Parse the prompts-mode reply into a list of suggestion strings.

    Args:
        text: Raw model text, expected to be a JSON array of strings.

    Returns:
        At most :data:`SUGGESTION_COUNT` stripped suggestions.

    Raises:
        ResponseFormatError: If the text is not JSON, or is not a non-empty
            array of strings.
    """
    try:
        suggestions = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.error(f"Failed to parse AI response: {text[:500]!r}")
        raise ResponseFormatError("Invalid response format from AI") from exc

    if not isinstance(suggestions, list) or not suggestions:
        raise ResponseFormatError("AI did not return valid suggestions")
    if not all(isinstance(item, str) and item.strip() for item in suggestions):
        raise ResponseFormatError("AI did not return valid suggestions")

    if len(suggestions) != SUGGESTION_COUNT:
        logger.warning(f"Expected {SUGGESTION_COUNT} suggestions, model returned {len(suggestions)}")
    return [item.strip() for item in suggestions[:SUGGESTION_COUNT]]


class GenerationPipeline:
    """Runs generation requests against a :class:`ModelClient`.

    Attributes:
        _client: Model client (real or fake).
        _modes: Mode table from :func:`build_modes`.
        _sleep: Async sleeper used between retries.
        _rng: Random source for the placeholder gradient.
        last_state: Retry state of the most recent model call, kept for
            logging and tests.
    """

    def __init__(
        self,
        client: ModelClient,
        config: ShotcraftConfig,
        *,
        sleep: Sleeper = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._modes = build_modes(config)
        self._sleep = sleep
        self._rng = rng
        self.last_state: RetryState | None = None

    def mode(self, name: str) -> GenerationMode:
        return self._modes[name]

    # -- Public interface ---------------------------------------------------

    async def suggest_prompts(self, request: GenerationRequest) -> list[str]:
        """Ask for product photo prompt suggestions.

        Single attempt; a reply that is not a JSON array of strings is a
        terminal :class:`ResponseFormatError`.
        """
        mode = self._modes["prompts"]
        model_request = ModelRequest(
            instruction=build_suggestion_instruction(len(request.attachments)),
            attachments=request.attachments,
        )
        logger.info(f"Suggesting prompts for {len(request.attachments)} file(s)")

        response = await self._invoke(mode, model_request)
        return parse_suggestions(self._require_text(response, "Invalid response format from AI"))

    async def generate_image(self, request: GenerationRequest, mode_name: str) -> GeneratedImage:
        """Produce an image (or plan card) for ``request``.

        Args:
            request: Validated request with a non-empty prompt.
            mode_name: ``"plan"``, ``"direct"`` or ``"scene"``.

        Returns:
            The shaped result.  Plan mode always yields a placeholder.

        Raises:
            KeyError: If ``mode_name`` is not an image mode.
            ShotcraftError: When the model call fails terminally.
        """
        if mode_name not in IMAGE_MODES:
            raise KeyError(mode_name)
        mode = self._modes[mode_name]
        model_request = ModelRequest(
            instruction=build_instruction(mode_name, request.prompt_text),
            attachments=request.attachments,
        )
        logger.info(f"Generating image in {mode_name} mode with {len(request.attachments)} file(s)")

        response = await self._invoke(mode, model_request)

        if isinstance(response, ImageResponse):
            return GeneratedImage(
                image=response.to_base64(),
                mime_type=response.mime_type,
                kind="image",
            )

        description = self._require_text(response, "No description generated")
        logger.info("Description generated; rendering placeholder card")
        return GeneratedImage(
            image=render_placeholder(description, emphasize_headings=True, rng=self._rng),
            mime_type="image/svg+xml",
            kind="placeholder",
            description=description,
        )

    # -- Internals ----------------------------------------------------------

    async def _invoke(self, mode: GenerationMode, model_request: ModelRequest) -> ModelResponse:
        state = RetryState(mode.policy)
        self.last_state = state

        async def attempt() -> ModelResponse:
            response = await self._client.generate(model_request, mode.settings)
            if mode.expects_image:
                self._require_image(response)
            return response

        return await run_with_retry(
            attempt,
            mode.policy,
            sleep=self._sleep,
            label=f"{mode.name} generation",
            state=state,
        )

    @staticmethod
    def _require_image(response: ModelResponse) -> ImageResponse:
        if isinstance(response, ImageResponse):
            return response
        if isinstance(response, TextResponse):
            logger.warning(f"Model returned text instead of image: {response.text[:200]!r}")
            raise ModalityMismatchError(
                "Model returned text instead of image",
                details=response.text[:500],
            )
        raise EmptyResponseError("No image data in response")

    @staticmethod
    def _require_text(response: ModelResponse, empty_message: str) -> str:
        if isinstance(response, TextResponse) and response.text.strip():
            return response.text
        if isinstance(response, ImageResponse):
            raise ResponseFormatError("Model returned an image where text was expected")
        raise EmptyResponseError(empty_message)
