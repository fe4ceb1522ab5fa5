"""Prompts and guardrails sent to the vision classifier."""

from __future__ import annotations

from typing import List, Optional

GUARDRAIL_BULLETS: List[str] = [
    "Only describe clothing that is visible in the supplied image.",
    "Answer with a single JSON object and nothing else.",
    "Never include names, faces or other personal details of people in the photo.",
    "Use short lowercase labels for categories, colors and tags.",
]

DETECTION_PROMPT = """Identify every distinct clothing item in this image. For each item give a
description, a category (e.g. shirt, pants, dress, jacket), a bounding box with
coordinates expressed as percentages of the image width and height, and a
confidence between 0 and 1. Skip accessories such as bags or shoes unless they
are the main subject.

Respond with JSON of exactly this shape:
{
  "items": [
    {
      "description": "detailed description",
      "category": "category name",
      "bounding_box": {"x": 0-100, "y": 0-100, "width": 0-100, "height": 0-100},
      "confidence": 0-1
    }
  ]
}"""

_ANALYSIS_SHAPE = """Provide category, sub_category (e.g. t-shirt, jeans, maxi dress), primary
color, secondary colors, vibe tags (style descriptors such as casual, formal,
vintage, minimalist) and the estimated season (spring, summer, fall, winter or
all-season).

Respond with JSON of exactly this shape:
{
  "category": "main category",
  "sub_category": "specific sub-category",
  "primary_color": "color name",
  "secondary_colors": ["color1", "color2"],
  "vibe_tags": ["tag1", "tag2"],
  "estimated_season": "spring|summer|fall|winter|all-season"
}"""


def system_instruction(role_hint: str) -> str:
    """Compose a consistent system prompt with boundary reminders."""

    boundary_text = "\n".join(f"- {bullet}" for bullet in GUARDRAIL_BULLETS)
    return (
        f"You are the wardrobe catalog {role_hint}.\n"
        "Follow these guardrails before responding:\n"
        f"{boundary_text}"
    )


def analysis_prompt(hint: Optional[str] = None) -> str:
    """Build the metadata prompt, seeding it with an earlier detection description."""

    if hint:
        lead = (
            f'Analyze this clothing item. Earlier detection described it as: "{hint}". '
            "Extract detailed metadata about this item."
        )
    else:
        lead = "Analyze this clothing item and extract detailed metadata."
    return f"{lead} {_ANALYSIS_SHAPE}"


__all__ = ["DETECTION_PROMPT", "GUARDRAIL_BULLETS", "analysis_prompt", "system_instruction"]
