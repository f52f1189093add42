"""In-memory service fakes. No network, no files."""

import asyncio
from typing import Dict, List, Optional, Sequence, Union

from logo_concepts.models import FlagKind, ImageRef, InstructionPair
from logo_concepts.prompts import STYLE_TEMPLATES
from logo_concepts.providers.base import (
    ImageGenerationService,
    LanguageRewriteService,
    RubricScore,
    ServiceError,
    TextRecognitionService,
    VisionEvaluationService,
)


def verdict(total: int, flags: Sequence[str] = (), notes: str = "", strengths: Sequence[str] = ()) -> RubricScore:
    """RubricScore whose four dimensions add up to total."""
    base, extra = divmod(total, 4)
    dims = [base + (1 if i < extra else 0) for i in range(4)]
    return RubricScore(
        dimension_scores=dims,
        flags=list(flags),
        strengths=list(strengths),
        refinement_notes=notes,
    )


def style_of(instructions: InstructionPair) -> str:
    for style, template in STYLE_TEMPLATES.items():
        if template in instructions.positive:
            return style.value
    return "unknown"


def style_from_uri(uri: str) -> str:
    # mem://<style>/<n>.png
    return uri.split("/")[2]


def _next(script: List, default):
    if not script:
        return default
    return script.pop(0) if len(script) > 1 else script[0]


class FakeImageService(ImageGenerationService):
    """
    behaviour maps style → list of "ok" | "fail" | "hang", one per call;
    the last entry repeats.
    """

    def __init__(
        self,
        behaviour: Optional[Dict[str, List[str]]] = None,
        delays: Optional[Dict[str, float]] = None,
        delay: float = 0.0,
    ) -> None:
        self.behaviour = {k: list(v) for k, v in (behaviour or {}).items()}
        self.delays = delays or {}
        self.delay = delay
        self.calls: List[InstructionPair] = []
        self.counter = 0
        self.active = 0
        self.max_active = 0
        self.cancelled = 0

    def calls_for(self, style: str) -> List[InstructionPair]:
        return [c for c in self.calls if style_of(c) == style]

    async def generate(self, instructions: InstructionPair) -> ImageRef:
        style = style_of(instructions)
        self.calls.append(instructions)
        action = _next(self.behaviour.get(style, []), "ok")
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if action == "hang":
                await asyncio.sleep(3600)
            await asyncio.sleep(self.delays.get(style, self.delay))
            if action == "fail":
                raise ServiceError("upstream 503")
            self.counter += 1
            return ImageRef(uri=f"mem://{style}/{self.counter}.png", model="fake-imagen", seed=self.counter)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.active -= 1


class FakeVisionService(VisionEvaluationService):
    """scripts maps style → list of RubricScore or Exception; the last entry repeats."""

    def __init__(self, scripts: Optional[Dict[str, List[Union[RubricScore, Exception]]]] = None, default: int = 80) -> None:
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.default = verdict(default)
        self.rubrics: List[str] = []

    async def score(self, image: ImageRef, rubric: str) -> RubricScore:
        self.rubrics.append(rubric)
        item = _next(self.scripts.get(style_from_uri(image.uri), []), self.default)
        if isinstance(item, Exception):
            raise item
        return item


class FakeTextReader(TextRecognitionService):
    """scripts maps style → list of readings; unscripted styles echo the expected text."""

    def __init__(self, scripts: Optional[Dict[str, List[str]]] = None) -> None:
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.calls: List[str] = []

    async def read(self, image: ImageRef, expected_hint: str = "") -> str:
        style = style_from_uri(image.uri)
        self.calls.append(style)
        item = _next(self.scripts.get(style, []), expected_hint)
        if isinstance(item, Exception):
            raise item
        return item


class FakeRewriter(LanguageRewriteService):
    def __init__(self, error: Optional[Exception] = None, hang: bool = False) -> None:
        self.error = error
        self.hang = hang
        self.calls: List[List[FlagKind]] = []

    async def rewrite(self, prompt: str, flags: List[FlagKind], notes: str) -> InstructionPair:
        self.calls.append(list(flags))
        if self.hang:
            await asyncio.sleep(3600)
        if self.error is not None:
            raise self.error
        return InstructionPair(positive=f"Rewritten. {prompt}", negative="rewritten negative")
