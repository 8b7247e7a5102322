"""Tests for shotcraft.core.gemini_client — request building and classification.

The SDK client is replaced with a ``MagicMock`` whose
``aio.models.generate_content`` is an ``AsyncMock``, so no network access
occurs.  Response objects are real ``google.genai.types`` models.
"""

from __future__ import annotations

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import errors as genai_errors
from google.genai import types

from shotcraft.core.config import ShotcraftConfig
from shotcraft.core.errors import (
    ConfigurationError,
    RequestValidationError,
    UpstreamRateLimitError,
    UpstreamServerError,
)
from shotcraft.core.gemini_client import (
    GeminiModelClient,
    InvocationSettings,
    build_contents,
    classify_response,
)
from shotcraft.core.types import (
    EmptyResponse,
    ImageAttachment,
    ImageResponse,
    ModelRequest,
    TextResponse,
)


def _response(*parts: types.Part) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


def _image_part(data: bytes = b"png-bytes", mime_type: str = "image/png") -> types.Part:
    return types.Part(inline_data=types.Blob(data=data, mime_type=mime_type))


def _mock_sdk(return_value=None, side_effect=None) -> MagicMock:
    sdk = MagicMock()
    sdk.aio.models.generate_content = AsyncMock(return_value=return_value, side_effect=side_effect)
    return sdk


IMAGE_SETTINGS = InvocationSettings(
    model="gemini-2.0-flash-exp",
    temperature=1.0,
    max_output_tokens=8192,
    expects_image=True,
)


class TestClassifyResponse:
    def test_inline_data_is_image(self):
        result = classify_response(_response(_image_part(b"abc")))
        assert isinstance(result, ImageResponse)
        assert result.data == b"abc"
        assert result.mime_type == "image/png"

    def test_image_wins_over_earlier_text(self):
        result = classify_response(_response(types.Part(text="Here you go"), _image_part(b"img")))
        assert isinstance(result, ImageResponse)
        assert result.data == b"img"

    def test_text_only(self):
        result = classify_response(_response(types.Part(text="A plan"), types.Part(text=" continued")))
        assert result == TextResponse(text="A plan continued")

    def test_no_candidates_is_empty(self):
        assert isinstance(classify_response(types.GenerateContentResponse(candidates=[])), EmptyResponse)

    def test_candidate_without_content_is_empty(self):
        response = types.GenerateContentResponse(candidates=[types.Candidate()])
        assert isinstance(classify_response(response), EmptyResponse)

    def test_only_first_candidate_is_considered(self):
        response = types.GenerateContentResponse(
            candidates=[
                types.Candidate(content=types.Content(role="model", parts=[types.Part(text="first")])),
                types.Candidate(content=types.Content(role="model", parts=[_image_part()])),
            ]
        )
        assert classify_response(response) == TextResponse(text="first")


class TestBuildContents:
    def test_instruction_first_then_attachments_in_order(self, pixel_png):
        second = base64.b64encode(b"second").decode("ascii")
        request = ModelRequest(
            instruction="do the thing",
            attachments=(
                ImageAttachment(mime_type="image/png", data=pixel_png),
                ImageAttachment(mime_type="image/jpeg", data=second),
            ),
        )
        contents = build_contents(request)
        assert len(contents) == 1
        parts = contents[0].parts
        assert parts[0].text == "do the thing"
        assert parts[1].inline_data.mime_type == "image/png"
        assert parts[1].inline_data.data == base64.b64decode(pixel_png)
        assert parts[2].inline_data.mime_type == "image/jpeg"
        assert parts[2].inline_data.data == b"second"

    def test_wrapped_base64_is_decoded(self, pixel_png):
        wrapped = pixel_png[:40] + "\n" + pixel_png[40:76] + "\r\n" + pixel_png[76:]
        request = ModelRequest(
            instruction="x",
            attachments=(ImageAttachment(mime_type="image/png", data=wrapped),),
        )
        parts = build_contents(request)[0].parts
        assert parts[1].inline_data.data == base64.b64decode(pixel_png)

    def test_badly_padded_payload_is_rejected(self, pixel_png):
        request = ModelRequest(
            instruction="x",
            attachments=(
                ImageAttachment(mime_type="image/png", data=pixel_png),
                ImageAttachment(mime_type="image/png", data="abc"),
            ),
        )
        with pytest.raises(RequestValidationError) as exc_info:
            build_contents(request)
        assert exc_info.value.message == "Invalid file data"
        assert exc_info.value.details == "files[1]"


class TestInvocationSettings:
    def test_image_settings_declare_image_modality(self):
        config = IMAGE_SETTINGS.to_generate_config()
        assert config.response_modalities == ["TEXT", "IMAGE"]
        assert config.temperature == 1.0
        assert config.max_output_tokens == 8192

    def test_json_settings(self):
        settings = InvocationSettings(
            model="gemini-1.5-flash",
            temperature=0.7,
            max_output_tokens=1000,
            response_mime_type="application/json",
            system_instruction="be a marketer",
        )
        config = settings.to_generate_config()
        assert config.response_mime_type == "application/json"
        assert config.system_instruction == "be a marketer"
        assert config.response_modalities is None


class TestGeminiModelClient:
    def _request(self, pixel_png) -> ModelRequest:
        return ModelRequest(
            instruction="make a photo",
            attachments=(ImageAttachment(mime_type="image/png", data=pixel_png),),
        )

    def test_missing_key_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            GeminiModelClient(ShotcraftConfig(_env_file=None))

    def test_generate_passes_model_and_config(self, test_config, pixel_png):
        sdk = _mock_sdk(return_value=_response(_image_part(b"out")))
        client = GeminiModelClient(test_config, client=sdk)

        result = asyncio.run(client.generate(self._request(pixel_png), IMAGE_SETTINGS))

        assert result == ImageResponse(data=b"out")
        kwargs = sdk.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash-exp"
        assert kwargs["config"].response_modalities == ["TEXT", "IMAGE"]
        assert kwargs["contents"][0].parts[0].text == "make a photo"

    def test_rate_limit_is_classified(self, test_config, pixel_png):
        error = genai_errors.ClientError(429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}})
        client = GeminiModelClient(test_config, client=_mock_sdk(side_effect=error))
        with pytest.raises(UpstreamRateLimitError):
            asyncio.run(client.generate(self._request(pixel_png), IMAGE_SETTINGS))

    def test_server_error_is_classified(self, test_config, pixel_png):
        error = genai_errors.ServerError(500, {"error": {"code": 500, "message": "boom", "status": "INTERNAL"}})
        client = GeminiModelClient(test_config, client=_mock_sdk(side_effect=error))
        with pytest.raises(UpstreamServerError):
            asyncio.run(client.generate(self._request(pixel_png), IMAGE_SETTINGS))
