"""Instruction templates for the Gemini generation modes.

Every call to the model starts with one instruction part composed from a
fixed directive and, for ``/generate-images``, the caller's prompt.  The
reference images follow as separate parts.

Template Structure (image modes)::

    [Fixed: mode directive]

    [Caller prompt]

    [Fixed: mode closing line]

Sections are separated by double newlines.  The caller prompt is stripped
but otherwise inserted verbatim.

Modes
-----
prompts
    Suggest four product photo prompts as a JSON array.  The instruction
    text depends on whether one product or several are shown; the role and
    output format live in a system instruction.
plan
    Write a structured shooting plan.  Headings use ``【...】`` brackets so
    the placeholder renderer can emphasise them.
direct
    Ask for a finished product photograph as binary image output.
scene
    Ask for a staged lifestyle scene as binary image output.

Usage
-----
::

    instruction = build_instruction("direct", "studio lighting shot")
    suggestion = build_suggestion_instruction(file_count=2)
"""

from __future__ import annotations

from typing import Literal

InstructionMode = Literal["plan", "direct", "scene"]

# ---------------------------------------------------------------------------
# Prompt suggestions.
# ---------------------------------------------------------------------------

SUGGESTIONS_SYSTEM_INSTRUCTION = (
    "You are a professional marketer who builds product pages for Amazon Japan. "
    "Analyse the supplied product images and propose exactly four concrete prompts "
    "for generating attractive product introduction images that raise purchase intent. "
    "Each prompt should let the reader picture the usage scene, the atmosphere and the "
    "target customer. Reply with a JSON array only and no other text. "
    'Example: ["prompt 1", "prompt 2", "prompt 3", "prompt 4"]'
)

_SINGLE_PRODUCT_REQUEST = "Analyse this product and propose four prompts."

_COMBINED_PRODUCTS_REQUEST = (
    "Propose four prompts for an attractive scene that combines every product shown here."
)

# ---------------------------------------------------------------------------
# Image generation directives.
# ---------------------------------------------------------------------------

_PLAN_DIRECTIVE = """You are the art director for a product photo shoot.
Write a detailed shooting plan for the product image in Japanese, using exactly this layout:

【撮影コンセプト】
The overall concept of the scene and what it aims for

【構図とレイアウト】
- Product placement
- Camera angle
- Balance of the composition

【照明と色調】
- Lighting setup
- Colour temperature and mood
- Use of shadows

【背景と小物】
- Background
- Props
- Overall atmosphere

【ターゲットへの訴求】
- Intended target audience
- Points that raise purchase intent"""

_PLAN_CLOSING = (
    "Based on the concept above, create an attractive shooting plan for a product "
    "sold on Amazon Japan."
)

_DIRECT_DIRECTIVE = (
    "Generate a single high-quality, photorealistic e-commerce product photograph. "
    "Use the attached images as the exact product reference: keep its shape, colours, "
    "materials, labels and proportions unchanged. Return the image itself, not a description."
)

_DIRECT_CLOSING = "Output: one square image suitable for an Amazon Japan product listing."

_SCENE_DIRECTIVE = (
    "Stage the product from the attached reference images in a realistic lifestyle scene. "
    "Describe the scene through the image itself: place the product naturally, match the "
    "lighting to the setting and keep the product clearly recognisable and in focus."
)

_SCENE_CLOSING = "Output: one image of the staged scene. Do not answer with text."

_TEMPLATES: dict[str, tuple[str, str]] = {
    "plan": (_PLAN_DIRECTIVE, _PLAN_CLOSING),
    "direct": (_DIRECT_DIRECTIVE, _DIRECT_CLOSING),
    "scene": (_SCENE_DIRECTIVE, _SCENE_CLOSING),
}


def build_instruction(mode: InstructionMode, prompt: str) -> str:
    """Compose the instruction part for an image-generation mode.

    Args:
        mode: One of ``"plan"``, ``"direct"`` or ``"scene"``.
        prompt: Caller-supplied prompt text.

    Returns:
        Directive, prompt and closing line joined by double newlines.

    Raises:
        KeyError: If ``mode`` has no template.
    """
    directive, closing = _TEMPLATES[mode]
    return "\n\n".join([directive, prompt.strip(), closing])


def build_suggestion_instruction(file_count: int) -> str:
    """Return the user instruction for ``/generate-prompts``.

    More than one file switches to the "combine all products" wording.
    """
    if file_count > 1:
        return _COMBINED_PRODUCTS_REQUEST
    return _SINGLE_PRODUCT_REQUEST
