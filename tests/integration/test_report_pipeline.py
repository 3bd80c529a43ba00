"""End-to-end pipeline runs with in-memory content and fake LLM components."""

from __future__ import annotations

import pytest

from smile_report.content.memory_store import MemoryContentStore
from smile_report.core.config import EvaluatorConfig, GenerationConfig
from smile_report.exceptions import EvaluatorConfigError, MissingContentError, RetryableError
from smile_report.generation.models import GapStatus
from smile_report.generation.retry import GenerationRetryLoop
from smile_report.hooks.run_tracker import get_current_run
from smile_report.models import PhaseStatus, ToneProfileId
from smile_report.pipeline import ReportPipeline
from smile_report.qa.evaluator import QualityEvaluator
from smile_report.qa.models import QAOutcome
from tests.fakes.fake_evaluator import FakeEvaluator
from tests.fakes.fake_generation import FakeGenerator, FakeRetriever, FakeVerifier

TP04 = ToneProfileId.STABILITY_FRAME

PHASES = [
    "driver_derivation",
    "tone_selection",
    "scenario_scoring",
    "content_selection",
    "availability_check",
    "content_generation",
    "composition",
    "quality_evaluation",
    "qa_decision",
]


def _build(
    rules,
    store,
    *,
    evaluator: FakeEvaluator | None = None,
    generator: FakeGenerator | None = None,
    with_retry_loop: bool = True,
    **config,
) -> ReportPipeline:
    generation = GenerationConfig(**config)
    retry_loop = None
    if with_retry_loop:
        retry_loop = GenerationRetryLoop(
            generator or FakeGenerator(), FakeVerifier(), FakeRetriever(), store, generation
        )
    quality = QualityEvaluator(EvaluatorConfig(), evaluator or FakeEvaluator(), rules=rules)
    return ReportPipeline(rules, store, quality, retry_loop=retry_loop, config=generation)


@pytest.mark.asyncio
class TestAnxiousPatient:
    async def test_report_delivered(self, rules, content_store, anxious_pain_intake):
        result = await _build(rules, content_store).run(anxious_pain_intake)

        report = result.report
        assert report.tone is TP04
        assert report.scenario_id == "S16"
        assert set(range(5, 10)) <= set(report.section_numbers)
        assert report.placeholders_unresolved == ()
        assert result.evaluation.outcome is QAOutcome.PASS
        assert result.decision.outcome is QAOutcome.PASS
        assert result.delivered
        assert result.gap_outcomes == []

    async def test_audit_record(self, rules, content_store, anxious_pain_intake):
        result = await _build(rules, content_store).run(anxious_pain_intake)
        audit = result.audit

        assert audit.session_id == "sess-anxious"
        assert audit.run_id
        assert audit.tone.rule_id == "severe_anxiety"
        assert audit.tone.tone_name == "Stability-Frame"
        assert audit.retained_scenarios[0] == "S16"
        assert "severe_anxiety" in audit.tags
        assert {d.field: d.source_question for d in audit.drivers}["active_pain"] == "Q5"
        assert [s.stage for s in audit.stages] == PHASES
        assert ("tone", "selected") in [(e.stage, e.event) for e in audit.events]
        assert audit.final_outcome is QAOutcome.PASS
        assert audit.report_delivered is True
        assert get_current_run() is None

    async def test_progress_phases(self, rules, content_store, anxious_pain_intake):
        events = []
        await _build(rules, content_store).run(anxious_pain_intake, on_progress=events.append)

        bounds = [(e.phase, e.status) for e in events if e.status is not PhaseStatus.IN_PROGRESS]
        expected = []
        for number in range(1, 10):
            expected += [(number, PhaseStatus.STARTED), (number, PhaseStatus.COMPLETED)]
        assert bounds == expected
        assert [e.phase_name for e in events if e.status is PhaseStatus.STARTED] == PHASES

    async def test_evaluator_block_stops_delivery(self, rules, content_store, anxious_pain_intake):
        fake = FakeEvaluator({"quality": 9, "clinical_accuracy": 2, "personalization": 9})
        result = await _build(rules, content_store, evaluator=fake).run(anxious_pain_intake)

        assert result.decision.outcome is QAOutcome.BLOCK
        assert not result.delivered
        assert result.decision.requires_review
        assert result.audit.final_outcome is QAOutcome.BLOCK

    async def test_evaluator_failure_flags(self, rules, content_store, anxious_pain_intake):
        fake = FakeEvaluator(error=RetryableError("upstream 503"))
        result = await _build(rules, content_store, evaluator=fake).run(anxious_pain_intake)

        assert result.decision.outcome is QAOutcome.FLAG
        assert result.delivered
        assert "LLM evaluation failed: upstream 503" in result.decision.reasons


@pytest.mark.asyncio
class TestContentGaps:
    async def test_gap_generated_and_persisted(self, rules, content_documents, anxious_pain_intake):
        docs = [d for d in content_documents if d.content_id != "S17"]
        store = MemoryContentStore(docs, fallback_chains=rules.tone_fallback_chains)
        generator = FakeGenerator()

        result = await _build(rules, store, generator=generator).run(anxious_pain_intake)

        assert [o.gap.content_id for o in result.gap_outcomes] == ["S17"]
        assert result.gap_outcomes[0].status is GapStatus.PASSED
        assert generator.calls[0]["tone"] is TP04
        assert await store.get("S17", TP04, "en") == "Calm, factual overview for S17."
        assert result.report.fact_check_score == 0.9
        assert result.report.fact_check_passed is True

    async def test_unresolved_gaps_reported(self, rules, content_documents, anxious_pain_intake):
        docs = [d for d in content_documents if d.content_id != "S17"]
        store = MemoryContentStore(docs, fallback_chains=rules.tone_fallback_chains)

        result = await _build(rules, store, with_retry_loop=False).run(anxious_pain_intake)

        outcome = result.gap_outcomes[0]
        assert outcome.status is GapStatus.FAILED
        assert outcome.reason == "generation not configured"
        assert "Missing content: S17 (generation not configured)" in result.report.issues

    async def test_fail_on_missing_content(self, rules, anxious_pain_intake):
        pipeline = _build(rules, MemoryContentStore(), with_retry_loop=False, fail_on_missing_content=True)

        with pytest.raises(MissingContentError) as exc_info:
            await pipeline.run(anxious_pain_intake)

        assert exc_info.value.content_ids[0] == "S16"
        assert exc_info.value.tone == "TP-04"
        assert get_current_run() is None


@pytest.mark.asyncio
class TestConfiguration:
    async def test_unconfigured_evaluator_fails_before_generation(self, rules, content_store, anxious_pain_intake):
        generator = FakeGenerator()
        retry_loop = GenerationRetryLoop(generator, FakeVerifier(), FakeRetriever(), content_store, GenerationConfig())
        pipeline = ReportPipeline(
            rules, content_store, QualityEvaluator(EvaluatorConfig(enabled=True), None), retry_loop=retry_loop
        )

        with pytest.raises(EvaluatorConfigError):
            await pipeline.run(anxious_pain_intake)
        assert generator.calls == []

    async def test_disabled_evaluator_skips(self, rules, content_store, anxious_pain_intake):
        pipeline = ReportPipeline(rules, content_store, QualityEvaluator(EvaluatorConfig(enabled=False), None))
        result = await pipeline.run(anxious_pain_intake)

        assert result.evaluation.outcome is QAOutcome.SKIPPED
        assert result.decision.outcome is QAOutcome.PASS


@pytest.mark.asyncio
class TestSafetyBlock:
    async def test_pregnant_medical_suppresses_treatment_sections(self, rules, content_store, pregnant_medical_intake):
        result = await _build(rules, content_store, with_retry_loop=False).run(pregnant_medical_intake)

        assert result.report.suppressed_sections == (5, 6, 7, 8, 9)
        assert not set(result.report.section_numbers) & {5, 6, 7, 8, 9}
        alerts = [s.content_id for s in result.audit.content_selections if not s.suppressed]
        assert "A_BLOCK_TREATMENT_OPTIONS" in alerts
        assert not [i for i in result.decision.issues if i.check_id == "suppression_consistency"]
        assert all(o.status is GapStatus.FAILED for o in result.gap_outcomes)
