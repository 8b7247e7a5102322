"""Core functionality for Shotcraft.

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - SHOTCRAFT_* variables plus the GEMINI_API_KEY credential

2. **Model Layer** (gemini_client.py, types.py):
   - Builds multimodal requests for the google-genai SDK
   - Classifies replies as Image, Text or Empty

3. **Pipeline Layer** (pipeline.py, retry.py, prompt_builder.py):
   - Per-mode instruction templates, model settings and retry policies
   - Explicit retry state machine with capped exponential backoff

4. **Support Utilities**:
   - placeholder.py: SVG card for text-only plan results
   - errors.py: error taxonomy mapped to HTTP statuses
"""

from shotcraft.core.config import ShotcraftConfig, get_config
from shotcraft.core.errors import ShotcraftError
from shotcraft.core.pipeline import GenerationPipeline

__all__ = [
    "GenerationPipeline",
    "ShotcraftConfig",
    "ShotcraftError",
    "get_config",
]
