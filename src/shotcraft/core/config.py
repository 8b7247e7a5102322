"""Configuration management for Shotcraft.

This module provides centralized configuration management using Pydantic Settings.
Values are loaded from environment variables with the SHOTCRAFT_ prefix, with
one exception: the Gemini credential is read from ``GEMINI_API_KEY`` (the name
used by existing deployments) and also accepted as ``SHOTCRAFT_GEMINI_API_KEY``.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (SHOTCRAFT_* prefix, plus GEMINI_API_KEY)
2. .env file in the project root
3. Default values defined in ShotcraftConfig

Example .env file:
    GEMINI_API_KEY=your-key-here
    SHOTCRAFT_IMAGE_MODE=direct
    SHOTCRAFT_ENVIRONMENT=development
    SHOTCRAFT_SERVER_PORT=8000

Per-Request Configuration
-------------------------
Unlike a long-lived global instance, the API builds a fresh ``ShotcraftConfig``
for every request through :func:`get_config`.  The credential is therefore
read at invocation time, and a deployment that adds the key does not need a
process restart.  Tests substitute their own instance through FastAPI's
``dependency_overrides`` instead of mutating the environment.

Usage Example
-------------
    from shotcraft.core.config import ShotcraftConfig

    cfg = ShotcraftConfig()
    if not cfg.has_api_key:
        ...
"""

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ImageMode = Literal["plan", "direct", "scene"]


class ShotcraftConfig(BaseSettings):
    """Main configuration for the Shotcraft service.

    Attributes
    ----------
    Credential:
        gemini_api_key : str | None
            Gemini API key.  ``None`` or empty means the deployment is
            misconfigured and every generation request answers 500.

    Models:
        prompts_model : str
            Model used by ``POST /generate-prompts``.
        plan_model : str
            Text model used by the shooting-plan mode.
        image_model : str
            Image-capable model used by the direct and scene modes.

    Sampling:
        prompts_temperature, prompts_max_output_tokens
        plan_temperature, plan_top_p, plan_top_k, plan_max_output_tokens
        image_temperature, image_max_output_tokens

    Retry:
        direct_max_attempts, direct_base_delay_ms
        scene_max_attempts, scene_base_delay_ms
        max_backoff_ms
            Upper bound on any single backoff delay.

    Service:
        image_mode : Literal["plan", "direct", "scene"]
            Mode used by ``/generate-images`` when the request names none.
        max_body_bytes : int
            Largest accepted request body (10 MB by default).
        environment : Literal["development", "production"]
            Controls whether unexpected error details reach the client.
        log_level : str
        server_host : str
        server_port : int
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SHOTCRAFT_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Credential
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "SHOTCRAFT_GEMINI_API_KEY"),
        description="Gemini API key (static per deployment)",
    )

    # Models
    prompts_model: str = Field(
        default="gemini-1.5-flash",
        description="Model that suggests product photo prompts",
    )
    plan_model: str = Field(
        default="gemini-2.0-flash-exp",
        description="Model that writes the textual shooting plan",
    )
    image_model: str = Field(
        default="gemini-2.0-flash-exp",
        description="Model asked for binary image output",
    )

    # Sampling settings
    prompts_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    prompts_max_output_tokens: int = Field(default=1000, ge=1)
    plan_temperature: float = Field(default=0.9, ge=0.0, le=2.0)
    plan_top_p: float = Field(default=0.95, ge=0.0, le=1.0)
    plan_top_k: int = Field(default=40, ge=1)
    plan_max_output_tokens: int = Field(default=2048, ge=1)
    image_temperature: float = Field(default=1.0, ge=0.0, le=2.0)
    image_max_output_tokens: int = Field(default=8192, ge=1)

    # Retry settings
    direct_max_attempts: int = Field(default=3, ge=1, le=10)
    direct_base_delay_ms: int = Field(default=2000, ge=0)
    scene_max_attempts: int = Field(default=5, ge=1, le=10)
    scene_base_delay_ms: int = Field(default=1000, ge=0)
    max_backoff_ms: int = Field(
        default=10000,
        ge=0,
        description="Cap applied to every backoff delay",
    )

    # Service settings
    image_mode: ImageMode = Field(
        default="plan",
        description="Default /generate-images mode (plan, direct or scene)",
    )
    max_body_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Maximum accepted request body size in bytes",
    )
    environment: Literal["development", "production"] = Field(
        default="production",
        description="Unexpected error details are only exposed in development",
    )
    log_level: str = Field(default="INFO")
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )

    @property
    def has_api_key(self) -> bool:
        """Return ``True`` when a non-blank credential is configured."""
        return bool(self.gemini_api_key and self.gemini_api_key.strip())

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def get_config() -> ShotcraftConfig:
    """Build a configuration instance for the current request.

    Registered as a FastAPI dependency in :mod:`shotcraft.api.main`.
    """
    return ShotcraftConfig()
