"""
gemini.py — Gemini-backed implementations of the four service contracts.

  GeminiImageGenerator   Imagen first, Gemini image model as fallback
  GeminiVisionEvaluator  Gemini vision + structured RubricScore output
  GeminiTextReader       Gemini vision, character-by-character reading
  GeminiRewriter         Gemini text, full prompt rewrite

All calls go through the async client (client.aio.models). Model replies are
parsed from response.parsed when the SDK filled it, otherwise repaired with
json_repair and validated with pydantic.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import uuid
from pathlib import Path
from typing import List, Optional, Type, TypeVar

import json_repair
from google import genai
from google.genai import types
from PIL import Image
from pydantic import BaseModel, Field, ValidationError

from ..models import FlagKind, ImageRef, InstructionPair
from .base import (
    ImageGenerationService,
    LanguageRewriteService,
    RubricScore,
    ServiceError,
    TextRecognitionService,
    VisionEvaluationService,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# ── Response schemas ──────────────────────────────────────────────────────────

class TextReading(BaseModel):
    detected_text: str = Field(description="Exact characters visible, in reading order.")
    letter_by_letter: str = Field(default="", description="Each detected letter separated by dashes, e.g. p-a-r-t-y")
    confidence: str = Field(default="medium", description="high | medium | low")
    notes: str = Field(default="", description="Observations about clarity, missing or extra characters.")


class RewrittenPrompt(BaseModel):
    prompt: str = Field(description="The new positive image prompt.")
    negative_prompt: str = Field(description="The new negative prompt.")


# ── Helpers ───────────────────────────────────────────────────────────────────

def _parse_model(response, schema: Type[M]) -> M:
    parsed = getattr(response, "parsed", None)
    if isinstance(parsed, schema):
        return parsed
    raw = (getattr(response, "text", None) or "").strip()
    if not raw:
        raise ServiceError("model returned no content")
    data = json_repair.loads(raw)
    if not isinstance(data, dict):
        raise ServiceError(f"unparsable model reply: {raw[:80]!r}")
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ServiceError(f"model reply did not match {schema.__name__}: {e}") from e


def _image_part(image: ImageRef) -> types.Part:
    path = Path(image.uri)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ServiceError(f"cannot read image {path}: {e}") from e
    ext = path.suffix.lower().lstrip(".")
    mime = f"image/{'jpeg' if ext in ('jpg', 'jpeg') else ext or 'png'}"
    return types.Part.from_bytes(data=data, mime_type=mime)


def _save_png(data: bytes, save_path: Path) -> Path:
    """Decode whatever the model returned and store it as PNG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            save_path.parent.mkdir(parents=True, exist_ok=True)
            img.save(save_path, "PNG")
    except OSError as e:
        raise ServiceError(f"model returned undecodable image data: {e}") from e
    return save_path


class _GeminiService:
    def __init__(self, api_key: str, model: str) -> None:
        if not api_key:
            raise ServiceError("GEMINI_API_KEY not set")
        self.client = genai.Client(api_key=api_key)
        self.model = model


# ── Image generation ──────────────────────────────────────────────────────────

class GeminiImageGenerator(_GeminiService, ImageGenerationService):
    def __init__(
        self,
        api_key: str,
        output_dir: Path = Path("outputs"),
        model: str = "imagen-3.0-generate-002",
        fallback_model: Optional[str] = "gemini-2.5-flash-image",
    ) -> None:
        super().__init__(api_key, model)
        self.output_dir = Path(output_dir)
        self.fallback_model = fallback_model

    def _next_path(self) -> Path:
        return self.output_dir / f"concept_{uuid.uuid4().hex[:12]}.png"

    async def _try_imagen(self, instructions: InstructionPair) -> Optional[bytes]:
        response = await self.client.aio.models.generate_images(
            model=self.model,
            prompt=instructions.positive,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                aspect_ratio="1:1",
                negative_prompt=instructions.negative or None,
            ),
        )
        if response.generated_images:
            image = response.generated_images[0].image
            if image is not None and image.image_bytes:
                return image.image_bytes
        return None

    async def _try_gemini_image(self, instructions: InstructionPair) -> Optional[bytes]:
        prompt = (
            f"{instructions.positive}\n\n"
            f"Avoid: {instructions.negative}\n"
            "Square format, crisp vector edges, white background."
        )
        response = await self.client.aio.models.generate_content(
            model=self.fallback_model,
            contents=prompt,
            config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
        )
        for candidate in response.candidates or []:
            content = candidate.content
            for part in (content.parts if content else None) or []:
                if getattr(part, "inline_data", None) and part.inline_data.data:
                    data = part.inline_data.data
                    if isinstance(data, str):
                        data = base64.b64decode(data)
                    return data
        return None

    async def generate(self, instructions: InstructionPair) -> ImageRef:
        used_model = self.model
        data: Optional[bytes] = None
        try:
            data = await self._try_imagen(instructions)
        except Exception as e:
            if not self.fallback_model:
                raise ServiceError(f"{self.model}: {e}") from e
            logger.warning("Imagen failed (%s), falling back to %s", e, self.fallback_model)

        if data is None and self.fallback_model:
            used_model = self.fallback_model
            try:
                data = await self._try_gemini_image(instructions)
            except Exception as e:
                raise ServiceError(f"{self.fallback_model}: {e}") from e

        if not data:
            raise ServiceError("no image returned")
        path = await asyncio.to_thread(_save_png, data, self._next_path())
        return ImageRef(uri=str(path), model=used_model)


# ── Vision scoring ────────────────────────────────────────────────────────────

class GeminiVisionEvaluator(_GeminiService, VisionEvaluationService):
    def __init__(self, api_key: str, model: str = "gemini-2.5-flash") -> None:
        super().__init__(api_key, model)

    async def score(self, image: ImageRef, rubric: str) -> RubricScore:
        image_part = await asyncio.to_thread(_image_part, image)
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_text(text=f"{rubric}\n\nEvaluate this logo concept strictly."),
                    image_part,
                ],
                config=types.GenerateContentConfig(
                    temperature=0.2,
                    response_mime_type="application/json",
                    response_schema=RubricScore,
                ),
            )
        except Exception as e:
            raise ServiceError(f"{self.model}: {e}") from e
        return _parse_model(response, RubricScore)


# ── Text reading ──────────────────────────────────────────────────────────────

TEXT_READING_PROMPT = """\
You are a precise text-reading agent. Look at this logo image very carefully.

TASK: Read ALL text/letters visible in the image, character by character.

EXPECTED TEXT: "{expected}"
EXPECTED LETTERS (one by one): {expected_letters}

INSTRUCTIONS:
1. Look at each letter in the logo from left to right.
2. Spell out every single character you see, one by one.
3. Report what is actually there, even when it differs from the expected text.
4. Pay special attention to: doubled letters, easily confused letters (n/m, l/i, e/c, rn/m), and missing/extra characters.
"""


class GeminiTextReader(_GeminiService, TextRecognitionService):
    def __init__(self, api_key: str, model: str = "gemini-2.5-flash") -> None:
        super().__init__(api_key, model)

    async def read(self, image: ImageRef, expected_hint: str = "") -> str:
        prompt = TEXT_READING_PROMPT.format(
            expected=expected_hint,
            expected_letters=" - ".join(expected_hint) if expected_hint else "(unknown)",
        )
        image_part = await asyncio.to_thread(_image_part, image)
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[types.Part.from_text(text=prompt), image_part],
                config=types.GenerateContentConfig(
                    temperature=0.0,
                    response_mime_type="application/json",
                    response_schema=TextReading,
                ),
            )
        except Exception as e:
            raise ServiceError(f"{self.model}: {e}") from e
        reading = _parse_model(response, TextReading)
        logger.info("Text reading %r (confidence %s)", reading.detected_text, reading.confidence)
        return reading.detected_text


# ── Prompt rewrite ────────────────────────────────────────────────────────────

REWRITE_PROMPT = """\
You are a prompt engineer specializing in AI logo generation with image models.

{request}

Problems found: {flags}
Evaluator notes: {notes}

Return JSON with "prompt" and "negative_prompt"."""


class GeminiRewriter(_GeminiService, LanguageRewriteService):
    def __init__(self, api_key: str, model: str = "gemini-2.5-flash") -> None:
        super().__init__(api_key, model)

    async def rewrite(self, prompt: str, flags: List[FlagKind], notes: str) -> InstructionPair:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=REWRITE_PROMPT.format(
                    request=prompt,
                    flags=", ".join(f.value for f in flags) or "none reported",
                    notes=notes or "none",
                ),
                config=types.GenerateContentConfig(
                    temperature=0.7,
                    response_mime_type="application/json",
                    response_schema=RewrittenPrompt,
                ),
            )
        except Exception as e:
            raise ServiceError(f"{self.model}: {e}") from e
        rewritten = _parse_model(response, RewrittenPrompt)
        return InstructionPair(positive=rewritten.prompt, negative=rewritten.negative_prompt)
