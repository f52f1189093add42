"""
styles.py — Style policy: which logo styles to attempt for a brand, and how.

Each style has a category (text-bearing vs symbol-only) which decides the
attempt budget and whether the rendered text gets verified:

  text_bearing  wordmark, icon_wordmark, emblem, dynamic  → full brand name
                monogram                                 → 1–3 initials
  symbol_only   abstract_mark, pictorial, mascot         → no text at all

recommend_styles() scores every style against the brand's name length,
sector and aesthetic. select_styles() turns those scores into the ordered
list of StyleSpecs the orchestrator runs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .models import BrandContext


class LogoStyle(str, Enum):
    WORDMARK = "wordmark"
    ICON_WORDMARK = "icon_wordmark"
    MONOGRAM = "monogram"
    ABSTRACT_MARK = "abstract_mark"
    PICTORIAL = "pictorial"
    MASCOT = "mascot"
    EMBLEM = "emblem"
    DYNAMIC = "dynamic"


class StyleCategory(str, Enum):
    TEXT_BEARING = "text_bearing"
    SYMBOL_ONLY = "symbol_only"


class TextRule(str, Enum):
    FULL_NAME = "full_name"
    INITIALS = "initials"
    NONE = "none"


# ── Policy constants ──────────────────────────────────────────────────────────

ALL_STYLES: Tuple[LogoStyle, ...] = tuple(LogoStyle)

DEFAULT_STYLES: Tuple[LogoStyle, ...] = (
    LogoStyle.WORDMARK,
    LogoStyle.ICON_WORDMARK,
    LogoStyle.MONOGRAM,
    LogoStyle.ABSTRACT_MARK,
)

ATTEMPT_BUDGETS: Dict[StyleCategory, int] = {
    StyleCategory.SYMBOL_ONLY: 2,
    StyleCategory.TEXT_BEARING: 3,
}

TEXT_RULES: Dict[LogoStyle, TextRule] = {
    LogoStyle.WORDMARK: TextRule.FULL_NAME,
    LogoStyle.ICON_WORDMARK: TextRule.FULL_NAME,
    LogoStyle.EMBLEM: TextRule.FULL_NAME,
    LogoStyle.DYNAMIC: TextRule.FULL_NAME,
    LogoStyle.MONOGRAM: TextRule.INITIALS,
    LogoStyle.ABSTRACT_MARK: TextRule.NONE,
    LogoStyle.PICTORIAL: TextRule.NONE,
    LogoStyle.MASCOT: TextRule.NONE,
}

BASE_SCORE = 50
HIGH_PRIORITY = 60
MEDIUM_PRIORITY = 40


# ── Style spec ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StyleSpec:
    style: LogoStyle
    category: StyleCategory
    budget: int
    text_rule: TextRule = TextRule.NONE
    expected_text: str = ""

    @property
    def is_text_bearing(self) -> bool:
        return self.category is StyleCategory.TEXT_BEARING

    @property
    def needs_text_check(self) -> bool:
        return self.is_text_bearing and self.text_rule is not TextRule.NONE and bool(self.expected_text)


def derive_initials(brand_name: str) -> str:
    """
    1–3 uppercase letters for a monogram.

    Multi-word names (spaces, punctuation or camelCase) use each word's first
    letter; a single word uses its first two letters.
    """
    spaced = re.sub(r"([a-z])([A-Z])", r"\1 \2", brand_name or "")
    words = [w for w in re.split(r"[\W_]+", spaced) if w]
    if not words:
        return ""
    if len(words) == 1:
        return words[0][:2].upper()
    return "".join(w[0] for w in words[:3]).upper()


def build_style_spec(style: LogoStyle, brand: BrandContext) -> StyleSpec:
    rule = TEXT_RULES[style]
    category = StyleCategory.SYMBOL_ONLY if rule is TextRule.NONE else StyleCategory.TEXT_BEARING
    if rule is TextRule.FULL_NAME:
        expected = brand.brand_name.strip()
    elif rule is TextRule.INITIALS:
        expected = derive_initials(brand.brand_name)
    else:
        expected = ""
    return StyleSpec(
        style=style,
        category=category,
        budget=ATTEMPT_BUDGETS[category],
        text_rule=rule,
        expected_text=expected,
    )


# ── Recommendation ────────────────────────────────────────────────────────────

@dataclass
class StyleRecommendation:
    style: LogoStyle
    score: int = BASE_SCORE
    reasons: List[str] = field(default_factory=list)

    @property
    def priority(self) -> str:
        if self.score >= HIGH_PRIORITY:
            return "high"
        if self.score >= MEDIUM_PRIORITY:
            return "medium"
        return "low"

    @property
    def reason(self) -> str:
        return self.reasons[0] if self.reasons else "Standard style option"


# (keywords, [(style, delta, reason), ...]), matched against the lowercased sector
SECTOR_RULES: List[Tuple[Tuple[str, ...], List[Tuple[LogoStyle, int, str]]]] = [
    (("tech", "saas", "software", "developer", " ai"), [
        (LogoStyle.ABSTRACT_MARK, 15, "Tech/SaaS sector suits abstract marks"),
        (LogoStyle.ICON_WORDMARK, 10, "Icon+text is common in tech branding"),
        (LogoStyle.MASCOT, -15, "Mascots are uncommon in tech/SaaS"),
    ]),
    (("food", "restaurant", "hospitality", "hotel", "cafe", "coffee", "bakery"), [
        (LogoStyle.MASCOT, 15, "Food/hospitality brands often use mascots"),
        (LogoStyle.EMBLEM, 10, "Emblem/crest suits artisanal food brands"),
        (LogoStyle.PICTORIAL, 10, "Pictorial icons work well for food brands"),
    ]),
    (("luxury", "premium", "fashion", "jewel"), [
        (LogoStyle.WORDMARK, 15, "Luxury brands favor elegant wordmarks"),
        (LogoStyle.MONOGRAM, 10, "Monograms convey exclusivity"),
        (LogoStyle.MASCOT, -20, "Mascots undermine luxury positioning"),
        (LogoStyle.EMBLEM, 5, "Emblems can convey heritage for luxury"),
    ]),
    (("enterprise", "b2b", "finance", "legal", "consulting", "insurance"), [
        (LogoStyle.MASCOT, -15, "Mascots are inappropriate for enterprise/B2B"),
        (LogoStyle.EMBLEM, -10, "Emblems read as dated for enterprise identity"),
        (LogoStyle.PICTORIAL, -10, "Literal pictorial marks rarely fit enterprise brands"),
        (LogoStyle.WORDMARK, 10, "Professional wordmarks suit enterprise brands"),
        (LogoStyle.ABSTRACT_MARK, 5, "Abstract marks work for enterprise identity"),
    ]),
    (("education", "non-profit", "nonprofit", "school"), [
        (LogoStyle.EMBLEM, 10, "Emblems suit educational institutions"),
        (LogoStyle.PICTORIAL, 5, "Pictorial marks aid recognition in education"),
    ]),
    (("creative", "agency", "lifestyle", "studio"), [
        (LogoStyle.DYNAMIC, 10, "Creative brands benefit from dynamic layouts"),
        (LogoStyle.ABSTRACT_MARK, 5, "Abstract marks express creativity"),
    ]),
    (("healthcare", "biotech", "wellness", "health"), [
        (LogoStyle.PICTORIAL, 10, "Pictorial marks communicate care/wellness"),
        (LogoStyle.ABSTRACT_MARK, 5, "Abstract marks suit biotech innovation"),
        (LogoStyle.MASCOT, -10, "Mascots can undermine healthcare trust"),
    ]),
    (("e-commerce", "ecommerce", "consumer", "d2c", "retail"), [
        (LogoStyle.ICON_WORDMARK, 10, "Icon+text is effective for e-commerce brands"),
        (LogoStyle.PICTORIAL, 5, "Recognizable icons help consumer brands"),
    ]),
]

AESTHETIC_RULES: List[Tuple[Tuple[str, ...], List[Tuple[LogoStyle, int, str]]]] = [
    (("minimal", "precision", "nordic", "swiss"), [
        (LogoStyle.EMBLEM, -10, "Emblems are inherently detailed, conflicts with minimal aesthetic"),
        (LogoStyle.MASCOT, -10, "Mascots conflict with minimal aesthetic"),
        (LogoStyle.WORDMARK, 5, "Wordmarks align with minimal aesthetic"),
        (LogoStyle.ABSTRACT_MARK, 5, "Clean abstract marks fit minimal aesthetic"),
    ]),
    (("heritage", "classical", "art deco", "vintage"), [
        (LogoStyle.EMBLEM, 10, "Emblems suit heritage/classical aesthetics"),
        (LogoStyle.WORDMARK, 5, "Refined wordmarks work with classical style"),
    ]),
    (("brutalist", "bold", "industrial"), [
        (LogoStyle.WORDMARK, 10, "Bold wordmarks suit brutalist/industrial style"),
        (LogoStyle.MONOGRAM, 5, "Monograms can be impactful in bold style"),
    ]),
]


def _apply(recs: Dict[LogoStyle, StyleRecommendation], style: LogoStyle, delta: int, reason: str) -> None:
    recs[style].score += delta
    recs[style].reasons.append(reason)


def _matches(text: str, keywords: Iterable[str]) -> bool:
    padded = f" {text} "
    return any(k in padded for k in keywords)


def recommend_styles(brand: BrandContext) -> List[StyleRecommendation]:
    """Score all styles for this brand. Returned in canonical style order."""
    recs = {style: StyleRecommendation(style=style) for style in ALL_STYLES}

    name_length = len(brand.brand_name.strip())
    if name_length > 12:
        _apply(recs, LogoStyle.WORDMARK, -20, "Long name (>12 chars) doesn't suit wordmarks")
        _apply(recs, LogoStyle.MONOGRAM, -10, "Long name makes initials hard to recognise")
        _apply(recs, LogoStyle.ICON_WORDMARK, 10, "Icon adds recognition for long names")
        _apply(recs, LogoStyle.ABSTRACT_MARK, 10, "Symbol-based mark works well with long names")
    elif name_length <= 5:
        _apply(recs, LogoStyle.WORDMARK, 20, "Short name (<6 chars) is ideal for wordmarks")
        _apply(recs, LogoStyle.DYNAMIC, 5, "Short names leave room for expressive type")
        _apply(recs, LogoStyle.MONOGRAM, -10, "Short name doesn't need abbreviation")
    else:
        _apply(recs, LogoStyle.WORDMARK, 5, "Medium-length name works well as wordmark")

    sector = brand.sector.lower()
    for keywords, effects in SECTOR_RULES:
        if _matches(sector, keywords):
            for style, delta, reason in effects:
                _apply(recs, style, delta, reason)

    aesthetic = f"{brand.aesthetic} {brand.tone}".lower()
    for keywords, effects in AESTHETIC_RULES:
        if _matches(aesthetic, keywords):
            for style, delta, reason in effects:
                _apply(recs, style, delta, reason)

    return [recs[style] for style in ALL_STYLES]


def select_styles(
    brand: BrandContext,
    limit: Optional[int] = None,
    override: Optional[Iterable[LogoStyle]] = None,
) -> List[StyleSpec]:
    """
    Ordered StyleSpecs to attempt: high priority, then medium, by score.

    override skips scoring entirely (single-style regeneration). A blank
    brand name or an empty selection falls back to DEFAULT_STYLES.
    """
    if override:
        chosen = list(dict.fromkeys(LogoStyle(s) for s in override))
    elif not brand.brand_name.strip():
        chosen = list(DEFAULT_STYLES)
    else:
        canonical = list(ALL_STYLES)
        recs = recommend_styles(brand)
        ranked = sorted(
            (r for r in recs if r.priority != "low"),
            key=lambda r: (r.priority != "high", -r.score, canonical.index(r.style)),
        )
        chosen = [r.style for r in ranked]
        if not chosen:
            chosen = list(DEFAULT_STYLES)

    if limit is not None and limit > 0:
        chosen = chosen[:limit]
    return [build_style_spec(s, brand) for s in chosen]
