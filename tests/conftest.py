"""Shared pytest fixtures for Shotcraft tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from shotcraft.core.config import ShotcraftConfig, get_config
from shotcraft.core.types import ImageResponse, ModelResponse

# 1x1 greyscale PNG.
PIXEL_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


class FakeModelClient:
    """Scripted stand-in for :class:`GeminiModelClient`.

    Each call consumes the next scripted outcome; the last one repeats once
    the script runs out.  Exceptions in the script are raised instead of
    returned.

    Attributes:
        outcomes: Remaining scripted responses or exceptions.
        calls: ``(ModelRequest, InvocationSettings)`` pairs, one per call.
    """

    def __init__(self, *outcomes: ModelResponse | BaseException) -> None:
        self.outcomes: list[ModelResponse | BaseException] = list(outcomes)
        self.calls: list = []

    def script(self, *outcomes: ModelResponse | BaseException) -> None:
        self.outcomes = list(outcomes)

    async def generate(self, request, settings):
        self.calls.append((request, settings))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleeper:
    """Async sleeper that records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def delays_ms(self) -> list[int]:
        return [round(d * 1000) for d in self.delays]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer credentials and overrides out of the tests."""
    for name in ("GEMINI_API_KEY", "SHOTCRAFT_GEMINI_API_KEY", "SHOTCRAFT_IMAGE_MODE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def test_config() -> ShotcraftConfig:
    """Create a configuration with a dummy credential and no .env lookup.

    Returns:
        ShotcraftConfig instance for testing
    """
    return ShotcraftConfig(_env_file=None, gemini_api_key="test-key")


@pytest.fixture
def pixel_png() -> str:
    return PIXEL_PNG_BASE64


@pytest.fixture
def image_bytes() -> bytes:
    return b"\x89PNG\r\n\x1a\nfake-image-bytes"


@pytest.fixture
def fake_client(image_bytes: bytes) -> FakeModelClient:
    """Model client that answers every call with an image by default."""
    return FakeModelClient(ImageResponse(data=image_bytes, mime_type="image/png"))


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def test_client(
    test_config: ShotcraftConfig,
    fake_client: FakeModelClient,
    sleeper: RecordingSleeper,
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with the model client and sleeper replaced.

    Yields:
        TestClient bound to :data:`shotcraft.api.main.app`

    Cleanup:
        Dependency overrides are cleared after the test
    """
    from shotcraft.api.main import app, get_client_factory, get_sleeper

    app.dependency_overrides[get_config] = lambda: test_config
    app.dependency_overrides[get_client_factory] = lambda: (lambda config: fake_client)
    app.dependency_overrides[get_sleeper] = lambda: sleeper
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
