"""Abstract contracts for the external services the pipeline drives."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, List, Optional, TypeVar

from pydantic import BaseModel, Field

from ..models import FlagKind, ImageRef, InstructionPair

T = TypeVar("T")


class ServiceError(Exception):
    """An external service call failed or returned something unusable."""


async def call_with_timeout(call: Awaitable[T], seconds: Optional[float]) -> T:
    """Await a service call, bounded by seconds (None or 0 = unbounded)."""
    if not seconds:
        return await call
    return await asyncio.wait_for(call, timeout=seconds)


class RubricScore(BaseModel):
    """Raw vision-model verdict for one image against one rubric."""
    dimension_scores: List[int] = Field(
        description="Exactly four integers, each 0-25, one per rubric dimension in order."
    )
    flags: List[str] = Field(
        default_factory=list,
        description="Flag identifiers from the rubric's flag list. Empty if none apply.",
    )
    strengths: List[str] = Field(
        default_factory=list,
        description="1-3 specific things that work well.",
    )
    refinement_notes: str = Field(
        default="",
        description="Specific instructions for improving the prompt. Empty if the logo is strong.",
    )


class ImageGenerationService(ABC):
    @abstractmethod
    async def generate(self, instructions: InstructionPair) -> ImageRef:
        """Render one image. Raises ServiceError on failure."""
        ...


class VisionEvaluationService(ABC):
    @abstractmethod
    async def score(self, image: ImageRef, rubric: str) -> RubricScore:
        """Score one image against a rubric prompt. Raises ServiceError on failure."""
        ...


class TextRecognitionService(ABC):
    @abstractmethod
    async def read(self, image: ImageRef, expected_hint: str = "") -> str:
        """
        Return every character visible in the image, in reading order.

        expected_hint lets the reader compare letter by letter; it must not be
        echoed back when the image shows something else.
        """
        ...


class LanguageRewriteService(ABC):
    @abstractmethod
    async def rewrite(
        self,
        prompt: str,
        flags: List[FlagKind],
        notes: str,
    ) -> InstructionPair:
        """Rewrite a failing instruction pair from scratch. Raises ServiceError on failure."""
        ...
