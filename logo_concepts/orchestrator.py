"""
orchestrator.py — Concept orchestrator: per-style retry loops, run concurrently.

Each style runs its own sequential state machine:

    GENERATE ──fail──▶ GENERATE (same instructions) … or DONE(failed_to_generate)
       │ ok
    EVALUATE ──▶ TEXT_CHECK (text-bearing styles with expected text)
       │              │
       └────▶ DECIDE ◀┘
                │ accept: score ≥ 65 and text matched → DONE(accepted)
                │ budget left                         → REFINE → GENERATE
                └ exhausted                           → DONE(best_effort)

Styles run as asyncio tasks behind a counting semaphore. A style loop owns its
Candidate outright (replaced by value at every transition), so loops share
nothing but the semaphore. An overall deadline cancels the styles still in
flight; finished styles keep their results and the interrupted ones are
reported as cancelled with their best attempt so far.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from enum import Enum
from typing import Callable, List, Optional, Sequence

from rich.console import Console

from .evaluator import EvaluationAdapter, passes_threshold
from .generator import GenerationClient, GenerationError
from .models import (
    Attempt,
    BrandContext,
    Candidate,
    ConceptSet,
    FlagKind,
    Outcome,
    best_attempt,
)
from .prompts import build_instructions
from .refiner import InstructionRefiner, RefinementContext
from .styles import StyleSpec, select_styles
from .text_check import TextFidelityChecker

console = Console()

DEFAULT_CONCURRENCY = 2

CandidateCallback = Callable[[Candidate], None]   # called as each style finishes


class State(str, Enum):
    GENERATE = "generate"
    EVALUATE = "evaluate"
    TEXT_CHECK = "text_check"
    DECIDE = "decide"
    REFINE = "refine"
    DONE = "done"


# ── Per-style loop ────────────────────────────────────────────────────────────

class StyleLoop:
    """Retry loop for one style. Owns exactly one Candidate."""

    def __init__(
        self,
        spec: StyleSpec,
        brand: BrandContext,
        generator: GenerationClient,
        evaluator: EvaluationAdapter,
        text_checker: TextFidelityChecker,
        refiner: InstructionRefiner,
    ) -> None:
        self.spec = spec
        self.brand = brand
        self.generator = generator
        self.evaluator = evaluator
        self.text_checker = text_checker
        self.refiner = refiner
        self.candidate = Candidate(spec=spec, instructions=build_instructions(spec, brand))
        self.state = State.GENERATE
        self._current: Optional[Attempt] = None

    @property
    def label(self) -> str:
        return self.spec.style.value

    async def run(self) -> Candidate:
        handlers = {
            State.GENERATE: self._generate,
            State.EVALUATE: self._evaluate,
            State.TEXT_CHECK: self._text_check,
            State.DECIDE: self._decide,
            State.REFINE: self._refine,
        }
        while self.state is not State.DONE:
            self.state = await handlers[self.state]()
        return self.candidate

    # ── Transitions ───────────────────────────────────────────────────────────

    async def _generate(self) -> State:
        number = self.candidate.attempt_count + 1
        instructions = self.candidate.instructions
        console.print(f"  [cyan]→ {self.label}[/cyan] attempt {number}/{self.spec.budget}")
        try:
            image = await self.generator.generate(instructions, label=self.label)
        except GenerationError as e:
            console.print(f"  [yellow]⚠ {e}[/yellow]")
            self._commit(Attempt(number=number, instructions=instructions, generation_error=str(e)))
            if number < self.spec.budget:
                return State.GENERATE
            return self._finish_exhausted()
        self._current = Attempt(number=number, instructions=instructions, image=image)
        return State.EVALUATE

    async def _evaluate(self) -> State:
        evaluation = await self.evaluator.evaluate(self._current.image, self.spec)
        self._current = replace(self._current, evaluation=evaluation)
        if self.spec.needs_text_check:
            return State.TEXT_CHECK
        return State.DECIDE

    async def _text_check(self) -> State:
        check = await self.text_checker.check_text(
            self._current.image, self.spec.expected_text, self.spec.text_rule
        )
        evaluation = self._current.evaluation
        if not check.matched:
            note = (
                f'The text in the logo is wrong. It shows "{check.recognized_text}" '
                f'but must show exactly "{self.spec.expected_text}".'
            )
            evaluation = evaluation.with_flag(FlagKind.WRONG_TEXT_SPELLED, note)
        self._current = replace(self._current, evaluation=evaluation, text_check=check)
        return State.DECIDE

    async def _decide(self) -> State:
        attempt = self._current
        self._current = None
        self._commit(attempt)

        text_ok = not self.spec.needs_text_check or attempt.text_check.matched
        if passes_threshold(attempt.evaluation) and text_ok:
            self.candidate = replace(self.candidate, accepted=True, outcome=Outcome.ACCEPTED)
            console.print(
                f"  [green]✓ {self.label} accepted on attempt {attempt.number} "
                f"with score {attempt.score}[/green]"
            )
            return State.DONE

        if attempt.number < self.spec.budget:
            console.print(
                f"  [dim]{self.label} attempt {attempt.number} scored {attempt.score}, refining...[/dim]"
            )
            return State.REFINE
        return self._finish_exhausted()

    async def _refine(self) -> State:
        last = self.candidate.attempts[-1]
        context = RefinementContext(spec=self.spec, brand=self.brand, notes=last.evaluation.notes)
        refined = await self.refiner.refine(
            last.instructions,
            last.evaluation.flags,
            last.number + 1,
            context,
        )
        self.candidate = replace(self.candidate, instructions=refined)
        return State.GENERATE

    # ── Candidate bookkeeping ─────────────────────────────────────────────────

    def _commit(self, attempt: Attempt) -> None:
        """Record a consumed attempt; the candidate mirrors it until DONE."""
        updates = dict(
            attempt_count=attempt.number,
            attempts=self.candidate.attempts + (attempt,),
        )
        if attempt.evaluated:
            updates.update(
                image=attempt.image,
                last_evaluation=attempt.evaluation,
                last_text_check=attempt.text_check,
            )
        self.candidate = replace(self.candidate, **updates)

    def _retain_best(self, outcome: Outcome) -> Candidate:
        best = best_attempt(self.candidate.attempts)
        if best is None:
            return replace(self.candidate, accepted=False, outcome=outcome)
        return replace(
            self.candidate,
            instructions=best.instructions,
            image=best.image,
            last_evaluation=best.evaluation,
            last_text_check=best.text_check,
            accepted=False,
            outcome=outcome,
        )

    def _finish_exhausted(self) -> State:
        if best_attempt(self.candidate.attempts) is None:
            self.candidate = self._retain_best(Outcome.FAILED_TO_GENERATE)
            console.print(
                f"  [red]✗ {self.label}: no image after {self.candidate.attempt_count} attempt(s)[/red]"
            )
        else:
            self.candidate = self._retain_best(Outcome.BEST_EFFORT)
            console.print(
                f"  [yellow]⚠ {self.label} used best result after {self.candidate.attempt_count} "
                f"attempts. Score: {self.candidate.score}[/yellow]"
            )
        return State.DONE

    def finish_cancelled(self) -> Candidate:
        if not self.candidate.done:
            self.candidate = self._retain_best(Outcome.CANCELLED)
            self.state = State.DONE
        return self.candidate

    def finish_after_error(self, error: Exception) -> Candidate:
        console.print(f"  [red]✗ {self.label} pipeline failed: {error}[/red]")
        if not self.candidate.done:
            self._finish_exhausted()
        return self.candidate


# ── Orchestrator ──────────────────────────────────────────────────────────────

class ConceptOrchestrator:
    def __init__(
        self,
        generator: GenerationClient,
        evaluator: EvaluationAdapter,
        text_checker: TextFidelityChecker,
        refiner: InstructionRefiner,
        concurrency: int = DEFAULT_CONCURRENCY,
        overall_timeout: Optional[float] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.generator = generator
        self.evaluator = evaluator
        self.text_checker = text_checker
        self.refiner = refiner
        self.concurrency = concurrency
        self.overall_timeout = overall_timeout

    @classmethod
    def from_settings(cls, settings) -> "ConceptOrchestrator":
        """Wire the Gemini-backed services described by PipelineSettings."""
        from .providers.gemini import (
            GeminiImageGenerator,
            GeminiRewriter,
            GeminiTextReader,
            GeminiVisionEvaluator,
        )

        api_key = settings.require_api_key()
        return cls(
            generator=GenerationClient(
                GeminiImageGenerator(
                    api_key,
                    output_dir=settings.output_dir,
                    model=settings.image_model,
                    fallback_model=settings.image_fallback_model,
                ),
                timeout=settings.generation_timeout,
            ),
            evaluator=EvaluationAdapter(
                GeminiVisionEvaluator(api_key, model=settings.vision_model),
                timeout=settings.evaluation_timeout,
            ),
            text_checker=TextFidelityChecker(
                GeminiTextReader(api_key, model=settings.vision_model),
                timeout=settings.text_timeout,
            ),
            refiner=InstructionRefiner(
                GeminiRewriter(api_key, model=settings.rewrite_model),
                rewrite_timeout=settings.rewrite_timeout,
            ),
            concurrency=settings.concurrency,
            overall_timeout=settings.overall_timeout,
        )

    def _new_loop(self, spec: StyleSpec, brand: BrandContext) -> StyleLoop:
        return StyleLoop(spec, brand, self.generator, self.evaluator, self.text_checker, self.refiner)

    async def _run_guarded(
        self,
        loop: StyleLoop,
        semaphore: asyncio.Semaphore,
        on_candidate: Optional[CandidateCallback],
    ) -> Candidate:
        async with semaphore:
            t0 = time.monotonic()
            try:
                candidate = await loop.run()
            except Exception as e:
                candidate = loop.finish_after_error(e)
            console.print(
                f"  [dim]{loop.label} finished: {candidate.outcome.value} "
                f"({time.monotonic() - t0:.1f}s)[/dim]"
            )
        if on_candidate is not None:
            on_candidate(candidate)
        return candidate

    async def run(
        self,
        brand: BrandContext,
        styles: Optional[Sequence[StyleSpec]] = None,
        on_candidate: Optional[CandidateCallback] = None,
    ) -> ConceptSet:
        """
        Generate one concept per style and collect them into a ConceptSet.

        Args:
            brand:        Brand signals for instruction building
            styles:       StyleSpecs to run, in output order (default: style policy)
            on_candidate: Called as each style finishes, so callers keep partial
                          results even if they cancel this coroutine

        Returns:
            ConceptSet in the same order as styles. Never raises for service
            failures; cancelling this coroutine cancels every style task.
        """
        specs: List[StyleSpec] = list(styles) if styles is not None else select_styles(brand)
        if not specs:
            return ConceptSet(brand_name=brand.brand_name)

        console.print(
            f"\n[bold cyan]→ Generating {len(specs)} logo concept(s) for "
            f"{brand.brand_name or 'unnamed brand'}[/bold cyan] "
            f"[dim](concurrency {self.concurrency})[/dim]"
        )
        semaphore = asyncio.Semaphore(self.concurrency)
        loops = [self._new_loop(spec, brand) for spec in specs]
        tasks = [
            asyncio.create_task(self._run_guarded(loop, semaphore, on_candidate))
            for loop in loops
        ]

        try:
            _, pending = await asyncio.wait(tasks, timeout=self.overall_timeout)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if pending:
            console.print(
                f"  [yellow]⚠ Deadline reached, cancelling {len(pending)} style(s) in flight[/yellow]"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                console.print(f"  [red]✗ style callback failed: {task.exception()}[/red]")

        concept_set = ConceptSet(
            brand_name=brand.brand_name,
            candidates=tuple(loop.finish_cancelled() for loop in loops),
        )
        console.print(
            f"[bold green]✓ Concepts ready[/bold green] — "
            f"{len(concept_set.accepted())} accepted, {len(concept_set.best_effort())} best-effort, "
            f"{len(concept_set.failed_to_generate())} failed, {len(concept_set.cancelled())} cancelled"
        )
        return concept_set
