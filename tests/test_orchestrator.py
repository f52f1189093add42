"""Tests for the per-style retry loop and the concurrent orchestrator."""

import asyncio

import pytest

from logo_concepts.evaluator import ACCEPT_THRESHOLD
from logo_concepts.models import BrandContext, FlagKind, Outcome
from logo_concepts.orchestrator import ConceptOrchestrator
from logo_concepts.providers.base import ServiceError
from logo_concepts.refiner import FLAG_FIXES, InstructionRefiner
from logo_concepts.styles import LogoStyle, build_style_spec, select_styles

from fakes import FakeImageService, FakeRewriter, FakeTextReader, FakeVisionService, verdict


def run(coro):
    return asyncio.run(coro)


class TestAcceptance:
    def test_first_attempt_accepted(self, brand, spec_for, make_orchestrator):
        orch = make_orchestrator()
        result = run(orch.run(brand, [spec_for("wordmark")]))

        (candidate,) = result.candidates
        assert candidate.outcome is Outcome.ACCEPTED
        assert candidate.accepted
        assert candidate.attempt_count == 1
        assert candidate.score == 80
        assert candidate.last_text_check.matched

    def test_symbol_style_refines_clutter_then_accepts(self, brand, spec_for, make_orchestrator):
        image = FakeImageService()
        vision = FakeVisionService({
            "abstract_mark": [verdict(50, ["visual-clutter"], "too busy"), verdict(70)],
        })
        rewriter = FakeRewriter()
        orch = make_orchestrator(image=image, vision=vision, rewriter=rewriter)

        (candidate,) = run(orch.run(brand, [spec_for("abstract_mark")])).candidates

        assert candidate.outcome is Outcome.ACCEPTED
        assert candidate.attempt_count == 2
        assert candidate.score == 70
        second = image.calls_for("abstract_mark")[1]
        fix = FLAG_FIXES[FlagKind.VISUAL_CLUTTER]
        assert fix.positive in second.positive
        assert fix.negative in second.negative
        assert candidate.instructions == second
        # budget 2 never reaches the rewrite tier
        assert rewriter.calls == []

    def test_symbol_style_skips_text_check(self, brand, spec_for, make_orchestrator):
        reader = FakeTextReader()
        orch = make_orchestrator(reader=reader)
        (candidate,) = run(orch.run(brand, [spec_for("mascot")])).candidates
        assert candidate.accepted
        assert candidate.last_text_check is None
        assert reader.calls == []


class TestTextGate:
    def test_misspelled_text_forces_refinement(self, brand, spec_for, make_orchestrator):
        image = FakeImageService()
        reader = FakeTextReader({"wordmark": ["Acrne", "Acme"]})
        orch = make_orchestrator(image=image, reader=reader)

        (candidate,) = run(orch.run(brand, [spec_for("wordmark")])).candidates

        first, second = candidate.attempts
        assert first.score >= ACCEPT_THRESHOLD
        assert FlagKind.WRONG_TEXT_SPELLED in first.evaluation.flags
        assert not first.text_check.matched
        assert "A-c-m-e" in second.instructions.positive
        assert candidate.outcome is Outcome.ACCEPTED
        assert candidate.attempt_count == 2
        assert candidate.last_text_check.recognized_text == "Acme"

    def test_non_latin_brand_passes_text_gate(self, make_orchestrator):
        brand = BrandContext(brand_name="東京")
        reader = FakeTextReader({"wordmark": ["東京"], "monogram": ["東京"]})
        orch = make_orchestrator(reader=reader)
        specs = [build_style_spec(LogoStyle.WORDMARK, brand), build_style_spec(LogoStyle.MONOGRAM, brand)]

        result = run(orch.run(brand, specs))

        for candidate in result:
            assert candidate.outcome is Outcome.ACCEPTED
            assert candidate.attempt_count == 1
            assert candidate.last_text_check.matched

    def test_text_failures_exhaust_to_best_effort(self, brand, spec_for, make_orchestrator):
        vision = FakeVisionService({"wordmark": [verdict(70), verdict(82), verdict(75)]})
        reader = FakeTextReader({"wordmark": ["Acrne", "Akmee", "Acne Corp"]})
        rewriter = FakeRewriter()
        orch = make_orchestrator(vision=vision, reader=reader, rewriter=rewriter)

        (candidate,) = run(orch.run(brand, [spec_for("wordmark")])).candidates

        assert candidate.outcome is Outcome.BEST_EFFORT
        assert not candidate.accepted
        assert candidate.attempt_count == 3
        assert candidate.score == 82
        assert candidate.image == candidate.attempts[1].image
        assert candidate.instructions == candidate.attempts[1].instructions
        assert FlagKind.WRONG_TEXT_SPELLED in candidate.flags

    def test_final_text_attempt_uses_rewrite(self, brand, spec_for, make_orchestrator):
        vision = FakeVisionService({"wordmark": [verdict(50)]})
        rewriter = FakeRewriter()
        orch = make_orchestrator(vision=vision, rewriter=rewriter)

        (candidate,) = run(orch.run(brand, [spec_for("wordmark")])).candidates

        assert len(rewriter.calls) == 1
        third = candidate.attempts[2].instructions
        assert third.positive.startswith("Rewritten.")
        assert third.negative == "rewritten negative"
        assert not candidate.attempts[1].instructions.positive.startswith("Rewritten.")

    def test_rewrite_failure_falls_back_to_flag_fixes(self, brand, spec_for, make_orchestrator):
        vision = FakeVisionService({"wordmark": [verdict(50, ["low-contrast"])]})
        rewriter = FakeRewriter(error=ServiceError("quota"))
        orch = make_orchestrator(vision=vision, rewriter=rewriter)

        (candidate,) = run(orch.run(brand, [spec_for("wordmark")])).candidates

        assert len(rewriter.calls) == 1
        third = candidate.attempts[2].instructions
        assert not third.positive.startswith("Rewritten.")
        assert third.positive.startswith(candidate.attempts[1].instructions.positive)
        assert FLAG_FIXES[FlagKind.LOW_CONTRAST].positive in third.positive


class TestGenerationFailures:
    def test_transient_failure_retries_same_instructions(self, brand, spec_for, make_orchestrator):
        image = FakeImageService({"wordmark": ["fail", "ok"]})
        orch = make_orchestrator(image=image)

        (candidate,) = run(orch.run(brand, [spec_for("wordmark")])).candidates

        assert candidate.outcome is Outcome.ACCEPTED
        assert candidate.attempt_count == 2
        assert candidate.attempts[0].generation_error
        assert candidate.attempts[0].image is None
        calls = image.calls_for("wordmark")
        assert calls[0] == calls[1]

    def test_style_that_always_times_out(self, brand, spec_for, make_orchestrator):
        image = FakeImageService({"abstract_mark": ["hang"]})
        orch = make_orchestrator(image=image, generation_timeout=0.05)

        result = run(orch.run(brand, [spec_for("wordmark"), spec_for("abstract_mark"), spec_for("mascot")]))

        wordmark, abstract, mascot = result.candidates
        assert wordmark.outcome is Outcome.ACCEPTED
        assert mascot.outcome is Outcome.ACCEPTED
        assert abstract.outcome is Outcome.FAILED_TO_GENERATE
        assert abstract.attempt_count == abstract.spec.budget == 2
        assert abstract.image is None
        assert all("timed out" in a.generation_error for a in abstract.attempts)
        assert result.failed_to_generate() == [abstract]

    def test_late_generation_failure_keeps_evaluated_attempt(self, brand, spec_for, make_orchestrator):
        image = FakeImageService({"abstract_mark": ["ok", "fail"]})
        vision = FakeVisionService({"abstract_mark": [verdict(40)]})
        orch = make_orchestrator(image=image, vision=vision)

        (candidate,) = run(orch.run(brand, [spec_for("abstract_mark")])).candidates

        assert candidate.outcome is Outcome.BEST_EFFORT
        assert candidate.score == 40
        assert candidate.image is not None


class TestIsolation:
    def test_evaluation_outage_stays_in_its_style(self, brand, spec_for, make_orchestrator):
        vision = FakeVisionService({"abstract_mark": [ServiceError("vision down")]})
        orch = make_orchestrator(vision=vision)

        result = run(orch.run(brand, [spec_for("abstract_mark"), spec_for("wordmark")]))

        abstract, wordmark = result.candidates
        assert abstract.outcome is Outcome.BEST_EFFORT
        assert abstract.score == 0
        assert abstract.flags == [FlagKind.UNKNOWN]
        assert abstract.attempt_count == 2
        assert wordmark.outcome is Outcome.ACCEPTED

    def test_unexpected_loop_error_finishes_candidate(self, brand, spec_for, make_orchestrator):
        class BrokenRefiner(InstructionRefiner):
            async def refine(self, previous, flags, attempt_number, context):
                raise RuntimeError("boom")

        vision = FakeVisionService({"wordmark": [verdict(30)]})
        orch = make_orchestrator(vision=vision)
        orch.refiner = BrokenRefiner()

        (candidate,) = run(orch.run(brand, [spec_for("wordmark")])).candidates

        assert candidate.outcome is Outcome.BEST_EFFORT
        assert candidate.attempt_count == 1
        assert candidate.score == 30

    def test_callback_error_does_not_lose_results(self, brand, spec_for, make_orchestrator):
        def explode(candidate):
            raise RuntimeError("sink offline")

        orch = make_orchestrator()
        result = run(orch.run(brand, [spec_for("wordmark"), spec_for("mascot")], on_candidate=explode))
        assert [c.outcome for c in result] == [Outcome.ACCEPTED, Outcome.ACCEPTED]

    def test_invariants_hold_across_mixed_run(self, brand, make_orchestrator):
        specs = select_styles(brand, override=["wordmark", "icon_wordmark", "monogram",
                                               "abstract_mark", "pictorial", "emblem"])
        vision = FakeVisionService({
            "wordmark": [verdict(50), verdict(66)],
            "icon_wordmark": [verdict(90)],
            "monogram": [verdict(64), verdict(65)],
            "abstract_mark": [verdict(20, ["unwanted-text-present"])],
            "pictorial": [ServiceError("nope"), verdict(99)],
            "emblem": [verdict(100)],
        })
        reader = FakeTextReader({"icon_wordmark": ["Acrne"], "emblem": ["ACME", "???"]})
        orch = make_orchestrator(vision=vision, reader=reader, concurrency=3)

        result = run(orch.run(brand, specs))

        assert [c.spec.style for c in result] == [s.style for s in specs]
        for c in result:
            assert 1 <= c.attempt_count <= c.spec.budget
            assert c.done
            if c.accepted:
                assert c.score >= ACCEPT_THRESHOLD
                if c.spec.needs_text_check:
                    assert c.last_text_check.matched
        assert result.candidates[1].outcome is Outcome.BEST_EFFORT   # text never right
        assert result.candidates[3].outcome is Outcome.BEST_EFFORT   # never scores


class TestConcurrency:
    @pytest.mark.parametrize("limit", [1, 2, 3])
    def test_semaphore_caps_styles_in_flight(self, brand, limit, make_orchestrator):
        image = FakeImageService(delay=0.02)
        specs = select_styles(brand, override=["wordmark", "icon_wordmark", "monogram", "abstract_mark"])
        orch = make_orchestrator(image=image, concurrency=limit)

        run(orch.run(brand, specs))

        assert image.max_active == limit

    def test_results_keep_request_order(self, brand, spec_for, make_orchestrator):
        image = FakeImageService(delays={"wordmark": 0.1})
        finished = []
        orch = make_orchestrator(image=image, concurrency=4)
        specs = [spec_for("wordmark"), spec_for("mascot"), spec_for("monogram")]

        result = run(orch.run(brand, specs, on_candidate=finished.append))

        assert [c.spec.style.value for c in result] == ["wordmark", "mascot", "monogram"]
        assert finished[-1].spec.style.value == "wordmark"

    def test_rejects_zero_concurrency(self, make_orchestrator):
        with pytest.raises(ValueError):
            make_orchestrator(concurrency=0)

    def test_empty_style_list(self, brand, make_orchestrator):
        result = run(make_orchestrator().run(brand, []))
        assert len(result) == 0
        assert result.brand_name == "Acme"

    def test_default_styles_come_from_policy(self, brand, make_orchestrator):
        result = run(make_orchestrator(concurrency=4).run(brand))
        assert [c.spec for c in result] == select_styles(brand)


class TestCancellation:
    def test_deadline_keeps_finished_and_marks_rest_cancelled(self, brand, spec_for, make_orchestrator):
        image = FakeImageService({"monogram": ["hang"], "mascot": ["ok", "hang"]})
        vision = FakeVisionService({"mascot": [verdict(30)]})
        orch = make_orchestrator(
            image=image, vision=vision, concurrency=3,
            overall_timeout=0.3, generation_timeout=None,
        )

        result = run(orch.run(brand, [spec_for("wordmark"), spec_for("monogram"), spec_for("mascot")]))

        wordmark, monogram, mascot = result.candidates
        assert wordmark.outcome is Outcome.ACCEPTED
        assert monogram.outcome is Outcome.CANCELLED
        assert monogram.attempt_count == 0
        assert monogram.image is None
        assert mascot.outcome is Outcome.CANCELLED
        assert mascot.score == 30
        assert mascot.image is not None
        assert image.cancelled == 2
        assert len(result.cancelled()) == 2

    def test_external_cancel_propagates(self, brand, spec_for, make_orchestrator):
        image = FakeImageService({"monogram": ["hang"]})
        orch = make_orchestrator(image=image, generation_timeout=None)
        finished = []

        async def scenario():
            task = asyncio.create_task(
                orch.run(brand, [spec_for("wordmark"), spec_for("monogram")], on_candidate=finished.append)
            )
            await asyncio.sleep(0.2)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        run(scenario())

        assert [c.spec.style.value for c in finished] == ["wordmark"]
        assert image.cancelled == 1


class TestFromSettings:
    def test_requires_api_key(self):
        from logo_concepts.config import ConfigError, PipelineSettings

        with pytest.raises(ConfigError):
            ConceptOrchestrator.from_settings(PipelineSettings(gemini_api_key=""))
