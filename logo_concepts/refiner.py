"""
refiner.py — Instruction refiner: rewrite the instruction pair after a failed attempt.

Two strategies behind one interface:

  DeterministicStrategy  every flag maps to a fixed (positive, negative)
                         fragment pair appended to the previous instructions
  RewriteStrategy        asks a language model to rewrite the pair from
                         scratch; only for the last attempt of a 3-attempt
                         budget, falls back to the deterministic output

Either way, a wrong-text-spelled flag also injects the expected text spelled
out letter by letter ("A-c-m-e").

Only the latest attempt's flags and notes feed a refinement; earlier history
lives in the previous instruction pair itself.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from rich.console import Console

from .models import BrandContext, FlagKind, InstructionPair, sorted_flags
from .providers.base import LanguageRewriteService, call_with_timeout
from .styles import StyleSpec

console = Console()

# Rewrite tier needs at least this many attempts of budget; smaller budgets
# stay deterministic.
REWRITE_MIN_ATTEMPT = 3


@dataclass(frozen=True)
class FlagFix:
    positive: str
    negative: str


FLAG_FIXES: Dict[FlagKind, FlagFix] = {
    FlagKind.PHOTOREALISTIC: FlagFix(
        "flat vector graphic, 2D illustration, no photography, no realistic textures,",
        "photo, realistic, 3d render, photorealistic, photograph, HDR, bokeh,",
    ),
    FlagKind.EXCESSIVE_DETAIL: FlagFix(
        "extremely simple, minimal, 3 elements maximum, clean and uncluttered,",
        "complex, detailed, intricate, fine lines, many elements,",
    ),
    FlagKind.ILLEGIBLE_TYPOGRAPHY: FlagFix(
        "clear crisp legible typography, professional typeface, high contrast letters,",
        "blurry text, illegible font, distorted letters, warped text,",
    ),
    FlagKind.WRONG_STYLE_CATEGORY: FlagFix(
        "strictly follow the requested logo style and its required elements,",
        "mixed logo styles, off-brief elements,",
    ),
    FlagKind.NON_WHITE_BACKGROUND: FlagFix(
        "pure white background, white canvas, isolated on white,",
        "dark background, colored background, gradient background, black background,",
    ),
    FlagKind.DEPTH_EFFECTS: FlagFix(
        "flat design, no shadows, no depth effects, 2D only,",
        "drop shadow, box shadow, inner shadow, 3D effect, emboss, bevel, depth,",
    ),
    FlagKind.UNWANTED_TEXT: FlagFix(
        "purely symbolic mark, no letters, no words, no text, no numbers, symbol only,",
        "text, letters, words, typography, alphabet, numbers, characters,",
    ),
    FlagKind.MISSING_REQUIRED_TEXT: FlagFix(
        "large clear brand name text as a primary element, typography-focused,",
        "no text, text-free, missing name,",
    ),
    FlagKind.VISUAL_CLUTTER: FlagFix(
        "minimal, single focal point, lots of whitespace, clean and simple,",
        "cluttered, busy, many elements, overcrowded,",
    ),
    FlagKind.EXCESSIVE_GRADIENT: FlagFix(
        "flat solid colors only, no gradients, single color fills,",
        "gradient, color blend, rainbow, ombre, multicolor blend,",
    ),
    FlagKind.LOW_CONTRAST: FlagFix(
        "high contrast, strong color differentiation, bold colors against white,",
        "low contrast, muted, faded, pastel on white,",
    ),
    FlagKind.POOR_FRAMING: FlagFix(
        "perfectly centered composition, equal padding on all sides, square format,",
        "off-center, cropped, touching edges,",
    ),
    FlagKind.WRONG_TEXT_SPELLED: FlagFix(
        "exact spelling of the brand text, every letter present once and in order,",
        "misspelled text, extra letters, missing letters, swapped letters,",
    ),
    FlagKind.UNKNOWN: FlagFix(
        "clean professional logo, flat vector, white background,",
        "low quality, messy, artifacts,",
    ),
}


def spell_out(text: str) -> str:
    """Acme → A-c-m-e (whitespace dropped)."""
    return "-".join(ch for ch in text if not ch.isspace())


def spelling_directive(expected_text: str) -> str:
    return (
        f'Spell the text exactly as "{expected_text}", letter by letter: '
        f"{spell_out(expected_text)}."
    )


@dataclass(frozen=True)
class RefinementContext:
    spec: StyleSpec
    brand: BrandContext
    notes: str = ""

    @property
    def expected_text(self) -> str:
        return self.spec.expected_text


# ── Strategies ────────────────────────────────────────────────────────────────

class DeterministicStrategy:
    """Append the fixed fragments for every flag. No I/O."""

    def apply(
        self,
        previous: InstructionPair,
        flags: Iterable[FlagKind],
        context: RefinementContext,
    ) -> InstructionPair:
        ordered = sorted_flags(flags)
        positive = [previous.positive]
        negative = [previous.negative]
        for flag in ordered:
            fix = FLAG_FIXES[flag]
            if fix.positive:
                positive.append(fix.positive)
            if fix.negative:
                negative.append(fix.negative)
        if FlagKind.WRONG_TEXT_SPELLED in ordered and context.expected_text:
            positive.append(spelling_directive(context.expected_text))
        return InstructionPair(
            positive=" ".join(p for p in positive if p).strip(),
            negative=" ".join(n for n in negative if n).strip(),
        )


REWRITE_REQUEST = """\
Original prompt: "{positive}"
Original negative prompt: "{negative}"
Logo style required: {style} ({category})
Brand: {brand_name}{tone}
{text_rule}
This is attempt {attempt} of {budget}. The previous prompts failed. Rewrite the prompt completely from scratch.
Be extremely specific: detailed style descriptors, explicit format instructions, clear negative space."""


class RewriteStrategy:
    """Full rewrite via a language model."""

    def __init__(self, service: LanguageRewriteService, timeout: Optional[float] = 30.0) -> None:
        self.service = service
        self.timeout = timeout

    def build_request(
        self,
        previous: InstructionPair,
        attempt_number: int,
        context: RefinementContext,
    ) -> str:
        spec = context.spec
        if spec.expected_text:
            text_rule = f'Required text: "{spec.expected_text}" ({spell_out(spec.expected_text)}), spelled exactly.'
        else:
            text_rule = "No text of any kind may appear in the logo."
        return REWRITE_REQUEST.format(
            positive=previous.positive,
            negative=previous.negative,
            style=spec.style.value,
            category=spec.category.value,
            brand_name=context.brand.brand_name,
            tone=f", tone: {context.brand.tone}" if context.brand.tone else "",
            text_rule=text_rule,
            attempt=attempt_number,
            budget=spec.budget,
        )

    async def apply(
        self,
        previous: InstructionPair,
        flags: Iterable[FlagKind],
        attempt_number: int,
        context: RefinementContext,
    ) -> InstructionPair:
        """Raises on any service failure; the refiner owns the fallback."""
        request = self.build_request(previous, attempt_number, context)
        rewritten = await call_with_timeout(
            self.service.rewrite(request, sorted_flags(flags), context.notes), self.timeout
        )
        if rewritten is None or not rewritten.positive.strip():
            raise ValueError("rewrite returned an empty prompt")
        positive = rewritten.positive.strip()
        negative = rewritten.negative.strip() or previous.negative
        if FlagKind.WRONG_TEXT_SPELLED in set(flags) and context.expected_text:
            directive = spelling_directive(context.expected_text)
            if directive not in positive:
                positive = f"{positive} {directive}"
        return InstructionPair(positive=positive, negative=negative)


# ── Refiner ───────────────────────────────────────────────────────────────────

class InstructionRefiner:
    def __init__(
        self,
        rewrite_service: Optional[LanguageRewriteService] = None,
        rewrite_timeout: Optional[float] = 30.0,
    ) -> None:
        self.deterministic = DeterministicStrategy()
        self.rewrite = RewriteStrategy(rewrite_service, rewrite_timeout) if rewrite_service else None

    def uses_rewrite(self, attempt_number: int, budget: int) -> bool:
        return (
            self.rewrite is not None
            and attempt_number == budget
            and attempt_number >= REWRITE_MIN_ATTEMPT
        )

    async def refine(
        self,
        previous: InstructionPair,
        flags: Iterable[FlagKind],
        attempt_number: int,
        context: RefinementContext,
    ) -> InstructionPair:
        """
        Instructions for attempt_number, derived from the previous attempt.

        Args:
            previous:       Instruction pair the failed attempt used
            flags:          That attempt's flags (text-check flag included)
            attempt_number: The attempt the refined pair will be used for
            context:        Style, brand and the evaluator's notes
        """
        flags = frozenset(flags)
        fallback = self.deterministic.apply(previous, flags, context)
        if not self.uses_rewrite(attempt_number, context.spec.budget):
            return fallback

        label = context.spec.style.value
        try:
            rewritten = await self.rewrite.apply(previous, flags, attempt_number, context)
        except asyncio.TimeoutError:
            console.print(f"  [yellow]⚠ {label}: prompt rewrite timed out, using flag fixes[/yellow]")
            return fallback
        except Exception as e:
            console.print(f"  [yellow]⚠ {label}: prompt rewrite failed ({e}), using flag fixes[/yellow]")
            return fallback

        console.print(f"  [dim]{label}: prompt rewritten for final attempt {attempt_number}[/dim]")
        return rewritten
