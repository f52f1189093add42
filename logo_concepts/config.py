"""
config.py — Runtime settings, read from the environment (and .env).

Required:
  GEMINI_API_KEY              — used by every Gemini-backed service

Optional (defaults in brackets):
  LOGO_IMAGE_MODEL            [imagen-3.0-generate-002]
  LOGO_IMAGE_FALLBACK_MODEL   [gemini-2.5-flash-image]
  LOGO_VISION_MODEL           [gemini-2.5-flash]
  LOGO_REWRITE_MODEL          [gemini-2.5-flash]
  LOGO_OUTPUT_DIR             [outputs]
  LOGO_CONCURRENCY            [2]     styles in flight at once
  LOGO_GENERATION_TIMEOUT     [90]    seconds per image generation call
  LOGO_EVALUATION_TIMEOUT     [45]
  LOGO_TEXT_TIMEOUT           [45]
  LOGO_REWRITE_TIMEOUT        [30]
  LOGO_OVERALL_TIMEOUT        [300]   whole concept set; 0 disables
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv()


class ConfigError(Exception):
    """Settings are missing or malformed."""


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{key} must be >= 0, got {raw!r}")
    return value


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigError(f"{key} must be >= 1, got {raw!r}")
    return value


@dataclass(frozen=True)
class PipelineSettings:
    gemini_api_key: str = ""
    image_model: str = "imagen-3.0-generate-002"
    image_fallback_model: str = "gemini-2.5-flash-image"
    vision_model: str = "gemini-2.5-flash"
    rewrite_model: str = "gemini-2.5-flash"
    output_dir: Path = Path("outputs")
    concurrency: int = 2
    generation_timeout: float = 90.0
    evaluation_timeout: float = 45.0
    text_timeout: float = 45.0
    rewrite_timeout: float = 30.0
    overall_timeout: Optional[float] = 300.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        env = os.environ if env is None else env
        defaults = cls()
        overall = _get_float(env, "LOGO_OVERALL_TIMEOUT", defaults.overall_timeout or 0.0)
        return cls(
            gemini_api_key=env.get("GEMINI_API_KEY", "").strip(),
            image_model=env.get("LOGO_IMAGE_MODEL") or defaults.image_model,
            image_fallback_model=env.get("LOGO_IMAGE_FALLBACK_MODEL") or defaults.image_fallback_model,
            vision_model=env.get("LOGO_VISION_MODEL") or defaults.vision_model,
            rewrite_model=env.get("LOGO_REWRITE_MODEL") or defaults.rewrite_model,
            output_dir=Path(env.get("LOGO_OUTPUT_DIR") or defaults.output_dir),
            concurrency=_get_int(env, "LOGO_CONCURRENCY", defaults.concurrency),
            generation_timeout=_get_float(env, "LOGO_GENERATION_TIMEOUT", defaults.generation_timeout),
            evaluation_timeout=_get_float(env, "LOGO_EVALUATION_TIMEOUT", defaults.evaluation_timeout),
            text_timeout=_get_float(env, "LOGO_TEXT_TIMEOUT", defaults.text_timeout),
            rewrite_timeout=_get_float(env, "LOGO_REWRITE_TIMEOUT", defaults.rewrite_timeout),
            overall_timeout=overall or None,
        )

    def require_api_key(self) -> str:
        if not self.gemini_api_key:
            raise ConfigError(
                "GEMINI_API_KEY not found. Set it as an environment variable or in .env.\n"
                "  export GEMINI_API_KEY=..."
            )
        return self.gemini_api_key
