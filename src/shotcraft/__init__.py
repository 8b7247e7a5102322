"""Shotcraft - Gemini-backed product photo prompt and image service."""

__version__ = "0.1.0"

from shotcraft.core.config import ShotcraftConfig

__all__ = [
    "ShotcraftConfig",
    "__version__",
]
