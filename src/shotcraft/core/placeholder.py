"""SVG placeholder card for text-only generation results.

When the plan mode produces a written shooting plan instead of a photograph,
the text is laid out on a fixed 800x800 SVG card and returned base64-encoded
under the same ``image`` field a real image would use.  The API adds
``kind: "placeholder"`` so callers can tell the two apart.

Card Layout::

    +--------------------------------------+
    | faint gradient background            |
    |  +--------------------------------+  |
    |  | gradient header: title         |  |
    |  |--------------------------------|  |
    |  | description (foreignObject)    |  |
    |  |   【heading】 -> <strong>        |  |
    |  |   newline    -> <br/>          |  |
    |  +--------------------------------+  |
    |          footer disclaimer           |
    +--------------------------------------+

The description is XML-escaped before any markup is introduced, so model
output can never inject elements into the document.
"""

from __future__ import annotations

import base64
import random
import re
from xml.sax.saxutils import escape

CANVAS_SIZE = 800

# Only balanced bracket pairs are converted so the markup stays well formed.
_HEADING = re.compile(r"【([^【】\n]*)】")

# Header gradient colour pairs (start, end).
GRADIENT_PALETTE: tuple[tuple[str, str], ...] = (
    ("#667eea", "#764ba2"),
    ("#f093fb", "#f5576c"),
    ("#4facfe", "#00f2fe"),
    ("#43e97b", "#38f9d7"),
    ("#fa709a", "#fee140"),
    ("#30cfd0", "#330867"),
    ("#a8edea", "#fed6e3"),
    ("#ff9a9e", "#fecfef"),
)

DEFAULT_TITLE = "AI Shooting Plan"

DEFAULT_FOOTER = (
    "This card is a text plan, not a photograph. Use it as the basis for a real "
    "shoot or for an image generation tool."
)

_SVG_TEMPLATE = """<svg width="{size}" height="{size}" xmlns="http://www.w3.org/2000/svg">
  <defs>
    <linearGradient id="grad1" x1="0%" y1="0%" x2="100%" y2="100%">
      <stop offset="0%" style="stop-color:{start};stop-opacity:1" />
      <stop offset="100%" style="stop-color:{end};stop-opacity:1" />
    </linearGradient>
    <filter id="shadow" x="-50%" y="-50%" width="200%" height="200%">
      <feDropShadow dx="0" dy="4" stdDeviation="8" flood-opacity="0.15"/>
    </filter>
  </defs>
  <rect width="{size}" height="{size}" fill="url(#grad1)" opacity="0.1"/>
  <rect x="40" y="40" width="720" height="720" rx="20" fill="white" filter="url(#shadow)"/>
  <rect x="40" y="40" width="720" height="80" rx="20" fill="url(#grad1)"/>
  <text x="400" y="85" font-family="'Noto Sans JP', sans-serif" font-size="28" font-weight="bold" text-anchor="middle" fill="white">{title}</text>
  <foreignObject x="60" y="140" width="680" height="580">
    <div xmlns="http://www.w3.org/1999/xhtml" style="font-family: 'Noto Sans JP', -apple-system, BlinkMacSystemFont, sans-serif; font-size: 14px; line-height: 1.8; color: #333; padding: 20px; overflow-y: auto; height: 580px; word-wrap: break-word;">
      <style>
        strong {{ color: #5b21b6; font-weight: 600; display: block; margin-top: 16px; margin-bottom: 8px; font-size: 16px; }}
      </style>
      {body}
    </div>
  </foreignObject>
  <text x="400" y="740" font-family="'Noto Sans JP', sans-serif" font-size="11" text-anchor="middle" fill="#666">{footer}</text>
</svg>
"""


def format_description(description: str, *, emphasize_headings: bool = False) -> str:
    """Convert plan text into XHTML fragment markup.

    Args:
        description: Raw model output.
        emphasize_headings: Turn ``【...】`` segments into ``<strong>`` blocks.

    Returns:
        Escaped markup with ``<br/>`` line breaks.
    """
    body = escape(description.replace("\r\n", "\n"))
    if emphasize_headings:
        body = _HEADING.sub(r"<strong>\1</strong>", body)
    return body.replace("\n", "<br/>")


def render_placeholder_svg(
    description: str,
    *,
    emphasize_headings: bool = False,
    title: str = DEFAULT_TITLE,
    footer: str = DEFAULT_FOOTER,
    rng: random.Random | None = None,
) -> str:
    """Lay out ``description`` on the fixed-size card.

    Args:
        description: Text to embed.
        emphasize_headings: See :func:`format_description`.
        title: Header text.
        footer: Disclaimer shown under the card.
        rng: Source for the gradient choice.  Defaults to the module RNG.

    Returns:
        The SVG document as a string.
    """
    start, end = (rng or random).choice(GRADIENT_PALETTE)
    return _SVG_TEMPLATE.format(
        size=CANVAS_SIZE,
        start=start,
        end=end,
        title=escape(title),
        footer=escape(footer),
        body=format_description(description, emphasize_headings=emphasize_headings),
    )


def encode_placeholder(svg: str) -> str:
    """Base64-encode an SVG document for transport."""
    return base64.b64encode(svg.encode("utf-8")).decode("ascii")


def render_placeholder(
    description: str,
    *,
    emphasize_headings: bool = False,
    rng: random.Random | None = None,
) -> str:
    """Render and encode in one step.  Returns the base64 payload."""
    svg = render_placeholder_svg(description, emphasize_headings=emphasize_headings, rng=rng)
    return encode_placeholder(svg)
