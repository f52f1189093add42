"""
text_check.py — Text fidelity checker for text-bearing styles.

Reads the text actually rendered in a logo and compares it with the brand
text the style expects:

  full_name  → normalised edit distance ≤ 1 ("Acme" vs "Acne" passes,
               "Acme" vs "Acrne" does not)
  initials   → expected letters appear in order ("JB" inside "J&B")

Normalisation casefolds and drops whitespace and punctuation. A failing check
is a hard gate: the orchestrator adds wrong-text-spelled to the attempt's
flags whatever the visual score was.
"""

from __future__ import annotations

import asyncio
import re
from typing import List, Optional

from rich.console import Console

from .models import ImageRef, TextCheckResult
from .providers.base import TextRecognitionService, call_with_timeout
from .styles import TextRule

console = Console()

MAX_EDIT_DISTANCE = 1


def normalize(text: str) -> str:
    return re.sub(r"[\W_]+", "", (text or "").casefold())


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def full_name_matches(recognized: str, expected: str) -> bool:
    d, e = normalize(recognized), normalize(expected)
    if not e:
        return False
    return d == e or levenshtein(d, e) <= MAX_EDIT_DISTANCE


def initials_match(recognized: str, expected: str) -> bool:
    """True if every expected letter appears in recognized, in order."""
    d, e = normalize(recognized), normalize(expected)
    if not e:
        return False
    pos = 0
    for char in e:
        found = d.find(char, pos)
        if found == -1:
            return False
        pos = found + 1
    return True


def text_matches(recognized: str, expected: str, rule: TextRule) -> bool:
    if rule is TextRule.INITIALS:
        return initials_match(recognized, expected)
    return full_name_matches(recognized, expected)


def _issues(recognized: str, expected: str) -> List[str]:
    d, e = normalize(recognized), normalize(expected)
    issues = []
    if len(d) != len(e):
        issues.append(f"Expected {len(e)} characters, got {len(d)}")
    issues.append(f'Expected "{expected}", detected "{recognized}"')
    return issues


class TextFidelityChecker:
    def __init__(self, service: TextRecognitionService, timeout: Optional[float] = 45.0) -> None:
        self.service = service
        self.timeout = timeout

    async def check_text(
        self,
        image: ImageRef,
        expected_text: str,
        rule: TextRule = TextRule.FULL_NAME,
    ) -> TextCheckResult:
        try:
            recognized = await call_with_timeout(
                self.service.read(image, expected_text), self.timeout
            )
        except asyncio.TimeoutError:
            console.print(f"  [yellow]⚠ text check timed out for \"{expected_text}\"[/yellow]")
            return TextCheckResult(
                matched=False, recognized_text="", expected_text=expected_text,
                issues=("Text recognition timed out",),
            )
        except Exception as e:
            console.print(f"  [yellow]⚠ text check failed ({e})[/yellow]")
            return TextCheckResult(
                matched=False, recognized_text="", expected_text=expected_text,
                issues=(f"Text recognition error: {e}",),
            )

        recognized = (recognized or "").strip()
        if text_matches(recognized, expected_text, rule):
            return TextCheckResult(matched=True, recognized_text=recognized, expected_text=expected_text)

        console.print(
            f"  [yellow]⚠ text mismatch: got \"{recognized}\", expected \"{expected_text}\"[/yellow]"
        )
        return TextCheckResult(
            matched=False,
            recognized_text=recognized,
            expected_text=expected_text,
            issues=tuple(_issues(recognized, expected_text)),
        )
