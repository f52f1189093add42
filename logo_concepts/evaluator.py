"""
evaluator.py — Evaluation adapter: score a rendered logo against its style rubric.

Every style has a rubric of four dimensions, each scored 0–25 and summed into
a 0–100 score. The vision service also reports structured flags (FlagKind)
and free-text refinement notes that drive the refiner.

The adapter never raises for service trouble: a failed call, a timeout or an
unparsable verdict becomes a failing result with the UNKNOWN flag, so one
style's evaluation outage can't stall the whole concept set.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from rich.console import Console

from .models import EvaluationResult, FlagKind, ImageRef
from .providers.base import RubricScore, VisionEvaluationService, call_with_timeout
from .styles import LogoStyle, StyleSpec

console = Console()
logger = logging.getLogger(__name__)

# Single global acceptance bar, shared by every style category.
ACCEPT_THRESHOLD = 65

DIMENSION_MAX = 25
DIMENSION_COUNT = 4


# ── Rubrics ───────────────────────────────────────────────────────────────────

# (intro, [4 dimensions], [(problem, flag), ...])
RubricDef = Tuple[str, List[str], List[Tuple[str, FlagKind]]]

_COMMON_FLAGS: List[Tuple[str, FlagKind]] = [
    ("Photorealistic rendering instead of flat vector", FlagKind.PHOTOREALISTIC),
    ("Background is not plain white/transparent", FlagKind.NON_WHITE_BACKGROUND),
    ("Drop shadows, bevels or 3D depth effects", FlagKind.DEPTH_EFFECTS),
    ("Heavy gradients or colour blends", FlagKind.EXCESSIVE_GRADIENT),
    ("Weak contrast between mark and background", FlagKind.LOW_CONTRAST),
    ("Mark is off-center, cropped or touching the edges", FlagKind.POOR_FRAMING),
]

RUBRICS: Dict[LogoStyle, RubricDef] = {
    LogoStyle.WORDMARK: (
        "a WORDMARK logo concept. A wordmark is typography-only: the brand name "
        "rendered in a distinctive typeface with no icons or symbols.",
        [
            "Typography quality: clear, well-kerned, professional, a distinctive typeface rather than a default font",
            "Scalability: would this work at 16px? No fine details that disappear at small sizes",
            "Style compliance: ONLY typography, no icons, symbols or decorative elements beyond the letterforms",
            "Production quality: clean white background, flat colour, crisp vector edges",
        ],
        [
            ("Any icon, symbol or graphic element alongside the text", FlagKind.WRONG_STYLE_CATEGORY),
            ("Text is unclear, blurry or pixelated", FlagKind.ILLEGIBLE_TYPOGRAPHY),
            ("No brand name text present", FlagKind.MISSING_REQUIRED_TEXT),
        ],
    ),
    LogoStyle.ICON_WORDMARK: (
        "an ICON + WORDMARK logo concept: a simple icon/symbol AND the brand name "
        "as text, working together as one composition.",
        [
            "Icon quality: simple, geometric, distinctive, works as a standalone symbol",
            "Typography quality: the brand name is clearly readable in a clean typeface",
            "Composition: icon and text balanced and well-proportioned",
            "Production quality: clean white background, no shadows, works at small sizes",
        ],
        [
            ("No icon present, only text", FlagKind.WRONG_STYLE_CATEGORY),
            ("No text present, only icon", FlagKind.MISSING_REQUIRED_TEXT),
            ("Icon is too complex or detailed", FlagKind.EXCESSIVE_DETAIL),
            ("Text is unclear or distorted", FlagKind.ILLEGIBLE_TYPOGRAPHY),
        ],
    ),
    LogoStyle.MONOGRAM: (
        "a MONOGRAM / LETTERMARK logo that uses 1-3 letters (initials) rendered as "
        "an interlocking, stacked or stylised letterform composition.",
        [
            "Letter clarity: the specific letters are clearly identifiable, not abstract shapes",
            "Design quality: creative, balanced, distinctive letterform composition",
            "Style compliance: ONLY letters, no icons, illustrations or full brand name",
            "Production quality: works at small sizes, white background, no shadows",
        ],
        [
            ("Full brand name text present, not just 1-3 letters", FlagKind.WRONG_STYLE_CATEGORY),
            ("Icons or illustrations added", FlagKind.WRONG_STYLE_CATEGORY),
            ("Letters are not recognisable", FlagKind.ILLEGIBLE_TYPOGRAPHY),
            ("Too many decorative elements", FlagKind.VISUAL_CLUTTER),
        ],
    ),
    LogoStyle.ABSTRACT_MARK: (
        "an ABSTRACT MARK: a purely symbolic, non-literal logo mark with NO text whatsoever.",
        [
            "Abstraction quality: clean abstract or geometric symbol that evokes the brand without being literal",
            "Distinctiveness: unique and ownable, not a generic shape",
            "Style compliance: absolutely NO text, letters or readable words anywhere",
            "Production quality: simple enough for 16px, white background, no shadows or gradients",
        ],
        [
            ("Any text or letters visible", FlagKind.UNWANTED_TEXT),
            ("Too complex to work at small size", FlagKind.EXCESSIVE_DETAIL),
            ("Busy composition with many competing shapes", FlagKind.VISUAL_CLUTTER),
        ],
    ),
    LogoStyle.PICTORIAL: (
        "a PICTORIAL MARK: one recognisable object simplified to a flat icon, with NO text.",
        [
            "Recognisability: the object reads instantly",
            "Simplification: reduced to essential shapes, single focal point",
            "Style compliance: no text, no letters, one object only",
            "Production quality: flat colour, white background, scalable",
        ],
        [
            ("Any text or letters visible", FlagKind.UNWANTED_TEXT),
            ("Too much detail or texture", FlagKind.EXCESSIVE_DETAIL),
            ("Several objects or a full scene instead of one icon", FlagKind.VISUAL_CLUTTER),
        ],
    ),
    LogoStyle.MASCOT: (
        "a MASCOT logo: a friendly character mark in flat vector illustration, with NO text.",
        [
            "Character appeal: friendly, expressive, memorable",
            "Simplicity: bold outlines, limited detail, clear silhouette",
            "Style compliance: character only, no text, no background scene",
            "Production quality: flat colour, white background, scalable",
        ],
        [
            ("Any text or letters visible", FlagKind.UNWANTED_TEXT),
            ("Overly detailed rendering", FlagKind.EXCESSIVE_DETAIL),
            ("Background scene or extra props", FlagKind.VISUAL_CLUTTER),
        ],
    ),
    LogoStyle.EMBLEM: (
        "an EMBLEM / BADGE logo: the brand name contained inside a crest, circle or shield shape.",
        [
            "Badge construction: coherent, balanced container shape",
            "Typography: the brand name is readable on the badge",
            "Style compliance: text and badge form one unit, restrained ornament",
            "Production quality: flat colour, white background, holds up at small sizes",
        ],
        [
            ("No badge/container shape", FlagKind.WRONG_STYLE_CATEGORY),
            ("Brand name missing from the badge", FlagKind.MISSING_REQUIRED_TEXT),
            ("Text on the badge is too small or unclear", FlagKind.ILLEGIBLE_TYPOGRAPHY),
            ("Excessive ornament or tiny details", FlagKind.EXCESSIVE_DETAIL),
        ],
    ),
    LogoStyle.DYNAMIC: (
        "a DYNAMIC logo: an expressive typographic composition of the brand name "
        "with one graphic accent suggesting motion or change.",
        [
            "Energy: the composition feels dynamic without losing control",
            "Typography: the brand name stays clearly readable",
            "Style compliance: one graphic accent, typography-led",
            "Production quality: flat colour, white background, scalable",
        ],
        [
            ("Static layout with no dynamic quality", FlagKind.WRONG_STYLE_CATEGORY),
            ("Brand name missing", FlagKind.MISSING_REQUIRED_TEXT),
            ("Distorted or unreadable letters", FlagKind.ILLEGIBLE_TYPOGRAPHY),
            ("Chaotic composition, too many accents", FlagKind.VISUAL_CLUTTER),
        ],
    ),
}


def build_rubric(spec: StyleSpec) -> str:
    """Full rubric prompt for one style, including the expected brand text."""
    intro, dimensions, style_flags = RUBRICS[spec.style]
    lines = [f"You are evaluating {intro}", ""]
    lines.append(f"Score on these {DIMENSION_COUNT} dimensions (each 0-{DIMENSION_MAX}):")
    for i, dim in enumerate(dimensions, 1):
        lines.append(f"{i}. {dim}")
    lines += ["", "Flag these problems if present:"]
    for problem, flag in style_flags + _COMMON_FLAGS:
        lines.append(f'- {problem} → flag "{flag.value}"')
    if spec.expected_text:
        lines += ["", f'Expected text in the logo: "{spec.expected_text}"']
    lines += [
        "",
        "Be strict. Most AI-generated logos land between 40 and 65. Only truly clean, "
        "professional, scalable logo-quality outputs should total above "
        f"{ACCEPT_THRESHOLD}.",
        "Return dimension_scores in the order above, flags from the list above, "
        "and refinement_notes with concrete prompt fixes when the logo falls short.",
    ]
    return "\n".join(lines)


# ── Flag parsing ──────────────────────────────────────────────────────────────

# Legacy identifiers some rubric prompts and older model outputs still use.
FLAG_ALIASES: Dict[str, FlagKind] = {
    "photorealistic": FlagKind.PHOTOREALISTIC,
    "too-complex": FlagKind.EXCESSIVE_DETAIL,
    "bad-typography": FlagKind.ILLEGIBLE_TYPOGRAPHY,
    "wrong-style": FlagKind.WRONG_STYLE_CATEGORY,
    "dark-background": FlagKind.NON_WHITE_BACKGROUND,
    "drop-shadows": FlagKind.DEPTH_EFFECTS,
    "text-in-abstract": FlagKind.UNWANTED_TEXT,
    "no-text-in-wordmark": FlagKind.MISSING_REQUIRED_TEXT,
    "cluttered": FlagKind.VISUAL_CLUTTER,
    "gradient-heavy": FlagKind.EXCESSIVE_GRADIENT,
    "wrong-aspect-ratio": FlagKind.POOR_FRAMING,
    "wrong-text": FlagKind.WRONG_TEXT_SPELLED,
}

_FLAG_VALUES = {f.value: f for f in FlagKind}


def parse_flag(raw: str) -> Optional[FlagKind]:
    key = "-".join(str(raw).strip().lower().replace("_", " ").split())
    return _FLAG_VALUES.get(key) or FLAG_ALIASES.get(key)


def parse_flags(raw_flags: Iterable[str]) -> FrozenSet[FlagKind]:
    flags = set()
    for raw in raw_flags:
        flag = parse_flag(raw)
        if flag is None:
            logger.info("Dropping unrecognised evaluation flag %r", raw)
            continue
        flags.add(flag)
    return frozenset(flags)


def to_evaluation(verdict: RubricScore) -> EvaluationResult:
    """Clamp and sum the dimension scores; normalise flags."""
    if len(verdict.dimension_scores) != DIMENSION_COUNT:
        raise ValueError(
            f"expected {DIMENSION_COUNT} dimension scores, got {len(verdict.dimension_scores)}"
        )
    dims = tuple(max(0, min(DIMENSION_MAX, int(s))) for s in verdict.dimension_scores)
    return EvaluationResult(
        score=sum(dims),
        flags=parse_flags(verdict.flags),
        notes=verdict.refinement_notes.strip(),
        dimensions=dims,
        strengths=tuple(s for s in verdict.strengths[:3] if s),
    )


def failed_evaluation(reason: str) -> EvaluationResult:
    return EvaluationResult(score=0, flags=frozenset({FlagKind.UNKNOWN}), notes=reason)


def passes_threshold(result: EvaluationResult) -> bool:
    return result.score >= ACCEPT_THRESHOLD


# ── Adapter ───────────────────────────────────────────────────────────────────

class EvaluationAdapter:
    def __init__(self, service: VisionEvaluationService, timeout: Optional[float] = 45.0) -> None:
        self.service = service
        self.timeout = timeout

    async def evaluate(self, image: ImageRef, spec: StyleSpec) -> EvaluationResult:
        label = spec.style.value
        try:
            verdict = await call_with_timeout(
                self.service.score(image, build_rubric(spec)), self.timeout
            )
            result = to_evaluation(verdict)
        except asyncio.TimeoutError:
            console.print(f"  [yellow]⚠ {label}: evaluation timed out[/yellow]")
            return failed_evaluation("Evaluation timed out")
        except Exception as e:
            console.print(f"  [yellow]⚠ {label}: evaluation failed ({e})[/yellow]")
            return failed_evaluation(f"Evaluation error: {e}")

        flag_str = ", ".join(f.value for f in result.flags) or "no flags"
        console.print(f"  [dim]{label}: scored {result.score}/100 ({flag_str})[/dim]")
        return result
