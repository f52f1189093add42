"""Generative logo concept pipeline: per-style generate → evaluate → refine loops."""

from .config import ConfigError, PipelineSettings
from .evaluator import ACCEPT_THRESHOLD, EvaluationAdapter
from .generator import GenerationClient, GenerationError
from .models import (
    BrandContext,
    Candidate,
    ConceptSet,
    EvaluationResult,
    FlagKind,
    ImageRef,
    InstructionPair,
    Outcome,
    PaletteColor,
    TextCheckResult,
)
from .orchestrator import ConceptOrchestrator
from .prompts import build_instructions
from .refiner import InstructionRefiner
from .styles import LogoStyle, StyleCategory, StyleSpec, recommend_styles, select_styles
from .text_check import TextFidelityChecker

__all__ = [
    "ACCEPT_THRESHOLD",
    "BrandContext",
    "Candidate",
    "ConceptOrchestrator",
    "ConceptSet",
    "ConfigError",
    "EvaluationAdapter",
    "EvaluationResult",
    "FlagKind",
    "GenerationClient",
    "GenerationError",
    "ImageRef",
    "InstructionPair",
    "InstructionRefiner",
    "LogoStyle",
    "Outcome",
    "PaletteColor",
    "PipelineSettings",
    "StyleCategory",
    "StyleSpec",
    "TextCheckResult",
    "TextFidelityChecker",
    "build_instructions",
    "recommend_styles",
    "select_styles",
]
