"""
prompts.py — Instruction builder: StyleSpec + BrandContext → InstructionPair.

The positive instruction is assembled from:
  1. a shared base block (brand, palette, aesthetic, vector/white-bg rules)
  2. the style template (required + forbidden elements for that style)
  3. the text requirement (exact brand text, or "no text" for symbols)

The negative instruction is the standing boilerplate plus the style's
forbidden elements and the brand's own avoid list.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .models import BrandContext, InstructionPair
from .styles import LogoStyle, StyleSpec


# ── Standing rules ────────────────────────────────────────────────────────────

NEGATIVE_BOILERPLATE = (
    "photograph, photorealistic rendering, 3d render, realistic textures, "
    "drop shadow, bevel, emboss, gradients, color blends, "
    "dark background, colored background, textured background, busy background, "
    "watermark, mockup, frame"
)

NO_TEXT_NEGATIVE = "text, letters, words, typography, numbers, characters"

TEXT_NEGATIVE = "misspelled text, extra letters, missing letters, blurry text, distorted letters"

# ── Style templates ───────────────────────────────────────────────────────────

STYLE_TEMPLATES: Dict[LogoStyle, str] = {
    LogoStyle.WORDMARK: (
        "Style: clean typographic wordmark. The brand name is the whole logo, set in a "
        "custom, distinctive typeface with careful kerning and consistent weight. "
        "Typography only, no icon or symbol."
    ),
    LogoStyle.ICON_WORDMARK: (
        "Style: minimal icon mark placed to the left of or above the brand name. "
        "The icon is simplified to geometric shapes and works as a standalone symbol. "
        "Name set in a clean sans-serif; icon and text balanced as one composition."
    ),
    LogoStyle.MONOGRAM: (
        "Style: monogram lettermark built only from the initials. Interlocking or "
        "stacked letterforms, bold and memorable, works at small sizes. "
        "No full brand name, no extra illustration."
    ),
    LogoStyle.ABSTRACT_MARK: (
        "Style: abstract brand mark, a non-literal geometric or organic symbol that "
        "is unique and ownable. Simple enough to read at 16px."
    ),
    LogoStyle.PICTORIAL: (
        "Style: pictorial mark, one recognisable object simplified to a flat icon "
        "with a single focal point and minimal detail."
    ),
    LogoStyle.MASCOT: (
        "Style: friendly mascot character mark, flat vector illustration with bold "
        "outlines, limited detail and a clear silhouette."
    ),
    LogoStyle.EMBLEM: (
        "Style: emblem / badge logo, the brand name contained inside a simple crest, "
        "circle or shield shape. Restrained ornament, readable text on the badge."
    ),
    LogoStyle.DYNAMIC: (
        "Style: dynamic logo, expressive typographic composition of the brand name "
        "with one graphic accent that suggests motion or change."
    ),
}

STYLE_NEGATIVES: Dict[LogoStyle, str] = {
    LogoStyle.WORDMARK: "icon, symbol, mascot, illustration, decorative frame",
    LogoStyle.ICON_WORDMARK: "complex illustration, multiple icons, detailed scene",
    LogoStyle.MONOGRAM: "full brand name, illustration, icons, decorative clutter",
    LogoStyle.ABSTRACT_MARK: "literal objects, generic circle, clip art",
    LogoStyle.PICTORIAL: "multiple objects, background scene, fine detail",
    LogoStyle.MASCOT: "realistic anatomy, complex scene, fine hair detail",
    LogoStyle.EMBLEM: "excessive ornament, tiny unreadable text, distressed texture",
    LogoStyle.DYNAMIC: "chaotic layout, multiple accents, motion blur",
}


def _base_block(brand: BrandContext) -> str:
    lines = [
        f'Professional logo design for "{brand.brand_name}".',
        "Flat 2D vector graphic, clean crisp edges, pure white background, centered "
        "composition with even padding, high contrast, no drop shadows, solid color fills.",
    ]
    palette = brand.palette_phrase()
    if palette:
        lines.append(f"Color palette: {palette}.")
    mood = ", ".join(p for p in (brand.aesthetic, brand.tone) if p)
    if mood:
        lines.append(f"Aesthetic: {mood}.")
    return " ".join(lines)


def _text_requirement(spec: StyleSpec) -> str:
    if not spec.is_text_bearing:
        return "No text, no letters, no words anywhere in the image. Symbol only."
    if spec.style is LogoStyle.MONOGRAM:
        return (
            f'Use only the letters "{spec.expected_text}", legible and clearly identifiable.'
        )
    return (
        f'The text "{spec.expected_text}" must be spelled exactly, legible and centered, '
        "in clear crisp typography."
    )


def _concept_hints(spec: StyleSpec, brand: BrandContext) -> str:
    hints: List[str] = []
    if brand.logo_concept and spec.style is not LogoStyle.WORDMARK:
        hints.append(f"Concept: {brand.logo_concept}.")
    # keywords only help styles that carry an actual symbol
    wants_symbol = not spec.is_text_bearing or spec.style is LogoStyle.ICON_WORDMARK
    if brand.keywords and wants_symbol:
        hints.append(f"Visual ideas to explore: {', '.join(brand.keywords[:3])}.")
    return " ".join(hints)


def build_instructions(
    spec: StyleSpec,
    brand: BrandContext,
    prior_notes: Optional[str] = None,
) -> InstructionPair:
    """Initial instruction pair for one style. Pure and deterministic."""
    positive_parts = [
        _base_block(brand),
        STYLE_TEMPLATES[spec.style],
        _concept_hints(spec, brand),
        _text_requirement(spec),
    ]
    if prior_notes and prior_notes.strip():
        positive_parts.append(f"Art direction notes: {prior_notes.strip()}")

    negative_parts = [NEGATIVE_BOILERPLATE, STYLE_NEGATIVES[spec.style]]
    negative_parts.append(TEXT_NEGATIVE if spec.is_text_bearing else NO_TEXT_NEGATIVE)
    if brand.avoid:
        negative_parts.append(", ".join(brand.avoid))

    return InstructionPair(
        positive=" ".join(p for p in positive_parts if p),
        negative=", ".join(p for p in negative_parts if p),
    )
