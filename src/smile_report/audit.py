"""Audit record: every decision taken for one report, reproducible from the intake."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from smile_report.engine.tone import ToneDecision
from smile_report.generation.models import GapOutcome
from smile_report.models import (
    ComposedReport,
    ConfidenceLevel,
    ContentSelection,
    DriverState,
    IntakeAnswers,
    RunAnalytics,
    ScenarioSelection,
    ScoredScenario,
    StageMetrics,
    ToneProfileId,
    TraceEvent,
)
from smile_report.qa.models import EvaluationResult, QADecision, QAOutcome


class DriverTrace(BaseModel):
    """One driver value and the question it was read from."""

    field: str
    value: Any
    source_question: Optional[str] = None


class ToneRuleTrace(BaseModel):
    rule_id: str
    tone: ToneProfileId
    matched: bool
    matched_condition: Optional[int] = None


class ToneTrace(BaseModel):
    tone: ToneProfileId
    tone_name: str
    rule_id: str
    evaluated: list[ToneRuleTrace] = Field(default_factory=list)


class AuditRecord(BaseModel):
    session_id: str
    run_id: str = ""
    language: str = "en"
    intake: IntakeAnswers
    drivers: list[DriverTrace] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    tone: ToneTrace
    scenario_scores: list[ScoredScenario] = Field(default_factory=list)
    retained_scenarios: list[str] = Field(default_factory=list)
    confidence: ConfidenceLevel
    content_selections: list[ContentSelection] = Field(default_factory=list)
    gap_outcomes: list[GapOutcome] = Field(default_factory=list)
    report: Optional[ComposedReport] = None
    evaluation: Optional[EvaluationResult] = None
    decision: Optional[QADecision] = None
    stages: list[StageMetrics] = Field(default_factory=list)
    events: list[TraceEvent] = Field(default_factory=list)
    final_outcome: QAOutcome
    report_delivered: bool
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def driver_traces(state: DriverState) -> list[DriverTrace]:
    return [
        DriverTrace(field=name, value=value, source_question=state.sources.get(name))
        for name, value in state.flat().items()
    ]


def tone_trace(decision: ToneDecision) -> ToneTrace:
    return ToneTrace(
        tone=decision.tone,
        tone_name=decision.profile.name,
        rule_id=decision.rule_id,
        evaluated=[
            ToneRuleTrace(
                rule_id=e.rule_id,
                tone=e.tone,
                matched=e.matched,
                matched_condition=e.matched_condition,
            )
            for e in decision.evaluated
        ],
    )


def build_audit_record(
    *,
    intake: IntakeAnswers,
    language: str,
    driver_state: DriverState,
    tone: ToneDecision,
    scenarios: ScenarioSelection,
    selections: list[ContentSelection],
    gap_outcomes: list[GapOutcome],
    report: ComposedReport,
    evaluation: EvaluationResult,
    decision: QADecision,
    analytics: RunAnalytics | None,
) -> AuditRecord:
    return AuditRecord(
        session_id=intake.session_id,
        run_id=analytics.run_id if analytics else "",
        language=language,
        intake=intake,
        drivers=driver_traces(driver_state),
        tags=list(driver_state.tags),
        tone=tone_trace(tone),
        scenario_scores=list(scenarios.all_scores),
        retained_scenarios=scenarios.scenario_ids,
        confidence=scenarios.confidence,
        content_selections=selections,
        gap_outcomes=gap_outcomes,
        report=report,
        evaluation=evaluation,
        decision=decision,
        stages=list(analytics.stages) if analytics else [],
        events=list(analytics.events) if analytics else [],
        final_outcome=decision.outcome,
        report_delivered=decision.can_deliver,
    )
