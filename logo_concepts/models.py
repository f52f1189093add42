"""
models.py — Shared records for the concept pipeline.

  BrandContext     — immutable brand input (name, tone, palette, hints)
  InstructionPair  — positive + negative generation instruction
  ImageRef         — one rendered image on disk
  EvaluationResult — rubric score + structured failure flags
  TextCheckResult  — recognised text vs expected brand text
  Attempt          — one consumed generate/evaluate cycle
  Candidate        — per-style state, replaced by value at every transition
  ConceptSet       — one Candidate per requested style, in request order

Style definitions (LogoStyle, StyleSpec) live in styles.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Optional, Tuple

if TYPE_CHECKING:
    from .styles import StyleSpec


# ── Brand input ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PaletteColor:
    hex: str
    name: str = ""
    role: str = ""

    def describe(self) -> str:
        return f"{self.name} {self.hex}".strip() if self.name else self.hex


@dataclass(frozen=True)
class BrandContext:
    """Brand signals produced upstream. Read-only for the whole pipeline."""
    brand_name: str
    aesthetic: str = ""                         # e.g. "Precision Minimalism"
    tone: str = ""                              # e.g. "calm", "techy"
    sector: str = ""                            # e.g. "Technology / SaaS"
    palette: Tuple[PaletteColor, ...] = ()
    tagline: str = ""
    logo_concept: str = ""                      # optional concept hint
    keywords: Tuple[str, ...] = ()              # visual metaphors
    avoid: Tuple[str, ...] = ()                 # elements to keep out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BrandContext":
        """Build from a loose JSON payload; unknown keys are ignored."""
        palette = []
        for item in data.get("palette") or []:
            if isinstance(item, str):
                palette.append(PaletteColor(hex=item))
            elif isinstance(item, dict) and item.get("hex"):
                palette.append(PaletteColor(
                    hex=str(item["hex"]),
                    name=str(item.get("name") or ""),
                    role=str(item.get("role") or ""),
                ))
        return cls(
            brand_name=str(data.get("brand_name") or data.get("name") or "").strip(),
            aesthetic=str(data.get("aesthetic") or "").strip(),
            tone=str(data.get("tone") or "").strip(),
            sector=str(data.get("sector") or "").strip(),
            palette=tuple(palette),
            tagline=str(data.get("tagline") or "").strip(),
            logo_concept=str(data.get("logo_concept") or "").strip(),
            keywords=tuple(str(k) for k in data.get("keywords") or [] if k),
            avoid=tuple(str(a) for a in data.get("avoid") or [] if a),
        )

    def palette_phrase(self, max_colors: int = 3) -> str:
        return ", ".join(c.describe() for c in self.palette[:max_colors])


# ── Instructions & images ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class InstructionPair:
    positive: str
    negative: str


@dataclass(frozen=True)
class ImageRef:
    uri: str                        # local file path of the rendered PNG
    model: str = ""
    seed: Optional[int] = None


# ── Evaluation ────────────────────────────────────────────────────────────────

class FlagKind(str, Enum):
    """Closed set of reasons a candidate image failed part of its rubric."""
    PHOTOREALISTIC = "photorealistic-instead-of-vector"
    EXCESSIVE_DETAIL = "excessive-detail"
    ILLEGIBLE_TYPOGRAPHY = "illegible-typography"
    WRONG_STYLE_CATEGORY = "wrong-style-category"
    NON_WHITE_BACKGROUND = "non-white-background"
    DEPTH_EFFECTS = "depth-effects-present"
    UNWANTED_TEXT = "unwanted-text-present"
    MISSING_REQUIRED_TEXT = "missing-required-text"
    VISUAL_CLUTTER = "visual-clutter"
    EXCESSIVE_GRADIENT = "excessive-gradient-use"
    LOW_CONTRAST = "low-contrast"
    POOR_FRAMING = "poor-framing"
    WRONG_TEXT_SPELLED = "wrong-text-spelled"
    UNKNOWN = "unknown"


def sorted_flags(flags) -> List[FlagKind]:
    """Flags in declaration order, so downstream text is deterministic."""
    order = list(FlagKind)
    return sorted(set(flags), key=order.index)


@dataclass(frozen=True)
class EvaluationResult:
    score: int
    flags: FrozenSet[FlagKind] = frozenset()
    notes: str = ""
    dimensions: Tuple[int, ...] = ()
    strengths: Tuple[str, ...] = ()

    def with_flag(self, flag: FlagKind, notes: str = "") -> "EvaluationResult":
        merged_notes = f"{self.notes}\n{notes}".strip() if notes else self.notes
        return EvaluationResult(
            score=self.score,
            flags=self.flags | {flag},
            notes=merged_notes,
            dimensions=self.dimensions,
            strengths=self.strengths,
        )


@dataclass(frozen=True)
class TextCheckResult:
    matched: bool
    recognized_text: str
    expected_text: str = ""
    issues: Tuple[str, ...] = ()


# ── Per-style state ───────────────────────────────────────────────────────────

class Outcome(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    BEST_EFFORT = "best_effort"
    FAILED_TO_GENERATE = "failed_to_generate"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Attempt:
    number: int
    instructions: InstructionPair
    image: Optional[ImageRef] = None
    evaluation: Optional[EvaluationResult] = None
    text_check: Optional[TextCheckResult] = None
    generation_error: str = ""

    @property
    def evaluated(self) -> bool:
        return self.image is not None and self.evaluation is not None

    @property
    def score(self) -> int:
        return self.evaluation.score if self.evaluation else 0


def best_attempt(attempts) -> Optional[Attempt]:
    """Highest-scoring evaluated attempt; ties keep the earliest."""
    best: Optional[Attempt] = None
    for attempt in attempts:
        if not attempt.evaluated:
            continue
        if best is None or attempt.score > best.score:
            best = attempt
    return best


@dataclass(frozen=True)
class Candidate:
    spec: "StyleSpec"
    instructions: InstructionPair
    attempt_count: int = 0
    last_evaluation: Optional[EvaluationResult] = None
    last_text_check: Optional[TextCheckResult] = None
    image: Optional[ImageRef] = None
    accepted: bool = False
    outcome: Outcome = Outcome.PENDING
    attempts: Tuple[Attempt, ...] = field(default_factory=tuple)

    @property
    def score(self) -> int:
        return self.last_evaluation.score if self.last_evaluation else 0

    @property
    def flags(self) -> List[FlagKind]:
        return sorted_flags(self.last_evaluation.flags) if self.last_evaluation else []

    @property
    def done(self) -> bool:
        return self.outcome is not Outcome.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "style": self.spec.style.value,
            "category": self.spec.category.value,
            "status": self.outcome.value,
            "accepted": self.accepted,
            "image": self.image.uri if self.image else None,
            "seed": self.image.seed if self.image else None,
            "score": self.score,
            "flags": [f.value for f in self.flags],
            "attempt_count": self.attempt_count,
            "prompt": self.instructions.positive,
            "negative_prompt": self.instructions.negative,
            "recognized_text": (
                self.last_text_check.recognized_text if self.last_text_check else None
            ),
        }


@dataclass(frozen=True)
class ConceptSet:
    brand_name: str
    candidates: Tuple[Candidate, ...] = ()

    def __iter__(self):
        return iter(self.candidates)

    def __len__(self) -> int:
        return len(self.candidates)

    def _with(self, outcome: Outcome) -> List[Candidate]:
        return [c for c in self.candidates if c.outcome is outcome]

    def accepted(self) -> List[Candidate]:
        return self._with(Outcome.ACCEPTED)

    def best_effort(self) -> List[Candidate]:
        return self._with(Outcome.BEST_EFFORT)

    def failed_to_generate(self) -> List[Candidate]:
        return self._with(Outcome.FAILED_TO_GENERATE)

    def cancelled(self) -> List[Candidate]:
        return self._with(Outcome.CANCELLED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brand_name": self.brand_name,
            "concepts": [c.to_dict() for c in self.candidates],
        }
