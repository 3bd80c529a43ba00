"""Report pipeline: intake → drivers → tone → scenarios → content → gaps → compose → QA.

``ReportPipeline.run`` executes the phases in order, emitting a
``ProgressEvent`` when each phase starts and finishes, and returns the
composed report together with its evaluation, QA decision and audit record.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator

from pydantic import BaseModel, Field

from smile_report.audit import AuditRecord, build_audit_record
from smile_report.composition.composer import ReportComposer
from smile_report.core.config import GenerationConfig
from smile_report.engine.drivers import derive
from smile_report.engine.scenarios import select_scenarios
from smile_report.engine.selector import select_content
from smile_report.engine.tone import select_tone
from smile_report.exceptions import MissingContentError
from smile_report.generation.models import GapOutcome, GapStatus
from smile_report.hooks.progress import ProgressCallback, emit_progress
from smile_report.hooks.run_tracker import end_run, record_event, start_run, track_stage
from smile_report.models import (
    ComposedReport,
    ContentGap,
    IntakeAnswers,
    PhaseStatus,
    ProgressEvent,
)
from smile_report.qa.gate import QAGate
from smile_report.qa.models import EvaluationResult, QADecision

if TYPE_CHECKING:
    from smile_report.content.protocols import IContentStore
    from smile_report.generation.retry import GenerationRetryLoop
    from smile_report.qa.evaluator import QualityEvaluator
    from smile_report.rules.models import RuleSet

log = logging.getLogger(__name__)


class PipelineResult(BaseModel):
    report: ComposedReport
    evaluation: EvaluationResult
    decision: QADecision
    audit: AuditRecord
    gap_outcomes: list[GapOutcome] = Field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.decision.can_deliver


class ReportPipeline:
    """Runs one intake through every phase.

    Without a ``retry_loop`` missing content is never generated; the gaps are
    reported as unresolved and the report is composed from what the store has.
    """

    def __init__(
        self,
        rules: RuleSet,
        store: IContentStore,
        evaluator: QualityEvaluator,
        *,
        retry_loop: GenerationRetryLoop | None = None,
        gate: QAGate | None = None,
        config: GenerationConfig | None = None,
        default_language: str = "en",
    ) -> None:
        self._rules = rules
        self._store = store
        self._evaluator = evaluator
        self._retry_loop = retry_loop
        self._gate = gate or QAGate(rules)
        self._config = config or GenerationConfig()
        self._default_language = default_language

    def cancel(self) -> None:
        """Stop starting new gap generations; running ones complete."""
        if self._retry_loop is not None:
            self._retry_loop.cancel()

    async def run(
        self,
        intake: IntakeAnswers,
        *,
        language: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        language = language or self._default_language
        self._evaluator.ensure_configured()

        analytics = start_run(session_id=intake.session_id)
        log.info("Report pipeline started for %s (language=%s)", intake.session_id, language)
        try:
            async with self._phase(on_progress, 1, "driver_derivation") as info:
                state = derive(intake, self._rules)
                info["message"] = f"{len(state.tags)} tags derived"
                info["metrics"] = {"tags": list(state.tags)}

            async with self._phase(on_progress, 2, "tone_selection") as info:
                tone = select_tone(state, self._rules)
                record_event("tone", "selected", tone=tone.tone.value, rule_id=tone.rule_id)
                info["message"] = f"{tone.tone.value} ({tone.profile.name})"
                info["metrics"] = {"tone": tone.tone.value, "rule_id": tone.rule_id}

            async with self._phase(on_progress, 3, "scenario_scoring") as info:
                scenarios = select_scenarios(state, self._rules)
                record_event(
                    "scenarios",
                    "matched",
                    primary=scenarios.primary.scenario_id,
                    retained=scenarios.scenario_ids,
                    confidence=scenarios.confidence.value,
                )
                info["message"] = f"{scenarios.primary.scenario_id} ({scenarios.confidence.value})"
                info["metrics"] = {
                    "primary": scenarios.primary.scenario_id,
                    "score": scenarios.primary.score,
                    "confidence": scenarios.confidence.value,
                }

            async with self._phase(on_progress, 4, "content_selection") as info:
                selections = select_content(state, scenarios, tone.tone, self._rules)
                suppressed = [s for s in selections if s.suppressed]
                for s in suppressed:
                    record_event("selection", "suppressed", content_id=s.content_id, reason=s.suppression_reason)
                info["message"] = f"{len(selections)} items ({len(suppressed)} suppressed)"
                info["metrics"] = {"selected": len(selections), "suppressed": len(suppressed)}

            async with self._phase(on_progress, 5, "availability_check") as info:
                check = await self._store.check_availability(scenarios.scenario_ids, language, tone.tone)
                info["message"] = f"{len(check.available)}/{check.total_required} available"
                info["metrics"] = {"available": check.available, "missing": [g.content_id for g in check.missing]}

            async with self._phase(on_progress, 6, "content_generation") as info:
                outcomes = await self._resolve_gaps(check.missing, on_progress)
                unresolved = [o.gap.content_id for o in outcomes if not o.persisted]
                info["message"] = f"{len(outcomes) - len(unresolved)}/{len(outcomes)} gaps resolved"
                info["metrics"] = {"gaps": len(outcomes), "unresolved": unresolved}
            if unresolved and self._config.fail_on_missing_content:
                raise MissingContentError(unresolved, language, tone.tone.value)

            async with self._phase(on_progress, 7, "composition") as info:
                scenario_text = await self._store.get(scenarios.primary.scenario_id, tone.tone, language)
                composer = ReportComposer(self._store, self._rules, language=language)
                report = await composer.compose(
                    intake,
                    state,
                    scenarios,
                    selections,
                    tone.tone,
                    scenario_text,
                    **_fact_check_summary(outcomes),
                )
                info["message"] = f"{len(report.sections)} sections, {report.total_word_count} words"
                info["metrics"] = {
                    "sections": report.section_numbers,
                    "suppressed_sections": list(report.suppressed_sections),
                    "placeholders_unresolved": list(report.placeholders_unresolved),
                }

            async with self._phase(on_progress, 8, "quality_evaluation") as info:
                evaluation = await self._evaluator.evaluate(
                    report, intake, state, tone.tone, scenarios.primary.scenario_id, on_progress=on_progress
                )
                info["message"] = evaluation.outcome.value
                info["metrics"] = {"outcome": evaluation.outcome.value, "overall": evaluation.overall_score}

            async with self._phase(on_progress, 9, "qa_decision") as info:
                decision = self._gate.decide(report, evaluation, selections=selections)
                record_event("qa", "decided", outcome=decision.outcome.value, can_deliver=decision.can_deliver)
                info["message"] = decision.outcome.value
                info["metrics"] = {"outcome": decision.outcome.value, "can_deliver": decision.can_deliver}
        except Exception:
            end_run("failed")
            raise

        analytics_done = end_run("completed") or analytics
        audit = build_audit_record(
            intake=intake,
            language=language,
            driver_state=state,
            tone=tone,
            scenarios=scenarios,
            selections=selections,
            gap_outcomes=outcomes,
            report=report,
            evaluation=evaluation,
            decision=decision,
            analytics=analytics_done,
        )
        log.info(
            "Report pipeline finished for %s: %s in %.0fms",
            intake.session_id, decision.outcome.value, analytics_done.total_duration_ms,
        )
        return PipelineResult(
            report=report,
            evaluation=evaluation,
            decision=decision,
            audit=audit,
            gap_outcomes=outcomes,
        )

    # ── Internal ────────────────────────────────────────────────────

    async def _resolve_gaps(
        self,
        gaps: list[ContentGap],
        on_progress: ProgressCallback | None,
    ) -> list[GapOutcome]:
        if not gaps:
            return []
        if self._retry_loop is None:
            log.warning("No generator configured; %d gaps left unresolved", len(gaps))
            return [
                GapOutcome(gap=g, status=GapStatus.FAILED, reason="generation not configured") for g in gaps
            ]
        return await self._retry_loop.resolve_gaps(gaps, on_progress=on_progress)

    @asynccontextmanager
    async def _phase(
        self,
        callback: ProgressCallback | None,
        number: int,
        name: str,
    ) -> AsyncIterator[dict[str, Any]]:
        info: dict[str, Any] = {"message": "", "metrics": {}}
        started = time.monotonic()
        await emit_progress(callback, ProgressEvent(phase=number, phase_name=name, status=PhaseStatus.STARTED))
        try:
            with track_stage(name):
                yield info
        except Exception as exc:
            await emit_progress(
                callback,
                ProgressEvent(
                    phase=number,
                    phase_name=name,
                    status=PhaseStatus.ERROR,
                    message=str(exc),
                    duration_ms=(time.monotonic() - started) * 1000,
                ),
            )
            raise
        await emit_progress(
            callback,
            ProgressEvent(
                phase=number,
                phase_name=name,
                status=PhaseStatus.COMPLETED,
                message=info["message"],
                metrics=info["metrics"],
                duration_ms=(time.monotonic() - started) * 1000,
            ),
        )


def _fact_check_summary(outcomes: list[GapOutcome]) -> dict[str, Any]:
    """Report-level fact-check fields aggregated from gap outcomes."""
    persisted = [o for o in outcomes if o.persisted]
    issues = [issue.describe() for o in persisted for issue in o.issues]
    issues.extend(f"Missing content: {o.gap.content_id} ({o.reason})" for o in outcomes if not o.persisted)
    if not persisted:
        return {"fact_check_score": None, "fact_check_passed": None, "issues": issues}
    score = round(sum(o.confidence or 0.0 for o in persisted) / len(persisted), 4)
    return {
        "fact_check_score": score,
        "fact_check_passed": all(o.status is GapStatus.PASSED for o in persisted),
        "issues": issues,
    }
