"""
generator.py — Generation client: one instruction pair in, one image out.

Wraps an ImageGenerationService with a per-call timeout. Any failure
(service error, timeout, unexpected exception from the provider) surfaces as
GenerationError so the orchestrator can tell "no image" apart from "image
rejected". Cancellation passes straight through.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from rich.console import Console

from .models import ImageRef, InstructionPair
from .providers.base import ImageGenerationService, call_with_timeout

console = Console()


class GenerationError(Exception):
    """No image was produced for this attempt. Retryable within budget."""


class GenerationClient:
    def __init__(self, service: ImageGenerationService, timeout: Optional[float] = 90.0) -> None:
        self.service = service
        self.timeout = timeout

    async def generate(self, instructions: InstructionPair, label: str = "logo") -> ImageRef:
        t0 = time.monotonic()
        try:
            image = await call_with_timeout(self.service.generate(instructions), self.timeout)
        except asyncio.TimeoutError:
            raise GenerationError(f"{label}: generation timed out after {self.timeout:.0f}s")
        except Exception as e:
            raise GenerationError(f"{label}: generation failed ({e})") from e

        if image is None or not image.uri:
            raise GenerationError(f"{label}: service returned no image")

        console.print(
            f"  [green]✓ {label}[/green] rendered [dim]({time.monotonic() - t0:.1f}s)[/dim]"
        )
        return image
