"""Shared fixtures for logo_concepts tests."""

import pytest

from logo_concepts.evaluator import EvaluationAdapter
from logo_concepts.generator import GenerationClient
from logo_concepts.models import BrandContext, PaletteColor
from logo_concepts.orchestrator import ConceptOrchestrator
from logo_concepts.refiner import InstructionRefiner
from logo_concepts.styles import LogoStyle, build_style_spec
from logo_concepts.text_check import TextFidelityChecker

from fakes import FakeImageService, FakeTextReader, FakeVisionService


@pytest.fixture
def brand():
    """Short-named SaaS brand with a palette and hints."""
    return BrandContext(
        brand_name="Acme",
        aesthetic="Precision Minimalism",
        tone="calm",
        sector="Technology / SaaS",
        palette=(
            PaletteColor(hex="#1A2B3C", name="Deep Navy", role="primary"),
            PaletteColor(hex="#F5F1E8", name="Warm Ivory", role="background"),
            PaletteColor(hex="#E4572E", name="Signal Orange", role="accent"),
            PaletteColor(hex="#888888", name="Slate", role="neutral"),
        ),
        logo_concept="an orbit around a spark",
        keywords=("orbit", "signal", "spark", "grid"),
        avoid=("lightbulbs", "gears"),
    )


@pytest.fixture
def spec_for(brand):
    """Build a StyleSpec for the brand fixture by style name."""
    def _spec(style: str):
        return build_style_spec(LogoStyle(style), brand)
    return _spec


@pytest.fixture
def make_orchestrator():
    """Factory wiring fakes into a real ConceptOrchestrator."""
    def _make(
        image=None,
        vision=None,
        reader=None,
        rewriter=None,
        concurrency=2,
        overall_timeout=None,
        generation_timeout=1.0,
        evaluation_timeout=1.0,
    ):
        return ConceptOrchestrator(
            generator=GenerationClient(image or FakeImageService(), timeout=generation_timeout),
            evaluator=EvaluationAdapter(vision or FakeVisionService(), timeout=evaluation_timeout),
            text_checker=TextFidelityChecker(reader or FakeTextReader(), timeout=1.0),
            refiner=InstructionRefiner(rewriter, rewrite_timeout=1.0),
            concurrency=concurrency,
            overall_timeout=overall_timeout,
        )
    return _make
