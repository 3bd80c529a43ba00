"""Multi-dimension quality evaluator.

Each dimension is scored by an external ``IEvaluator``. Scores are clamped to
[1, 10], combined with configured weights and mapped to PASS, FLAG or BLOCK.
Any evaluator failure yields the configured fallback outcome, never PASS.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Iterable

from smile_report.exceptions import EvaluatorConfigError, LLMClientError
from smile_report.hooks.progress import ProgressCallback, emit_progress
from smile_report.hooks.run_tracker import record_event
from smile_report.models import (
    ComposedReport,
    ConfidenceLevel,
    DriverState,
    IntakeAnswers,
    PhaseStatus,
    ProgressEvent,
    ToneProfileId,
)
from smile_report.qa.models import (
    DIMENSIONS,
    DimensionScore,
    EvaluationContext,
    EvaluationResult,
    QAOutcome,
)

if TYPE_CHECKING:
    from smile_report.core.config import EvaluatorConfig, EvaluatorThresholds
    from smile_report.qa.protocols import IEvaluator
    from smile_report.rules.models import RuleSet

log = logging.getLogger(__name__)

EVALUATION_PHASE = 8
EVALUATION_PHASE_NAME = "quality_evaluation"


def java_string_hash(value: str) -> int:
    """32-bit ``String.hashCode`` over UTF-16 code units."""
    data = value.encode("utf-16-be")
    h = 0
    for i in range(0, len(data), 2):
        h = (31 * h + ((data[i] << 8) | data[i + 1])) & 0xFFFFFFFF
    return h - 0x100000000 if h >= 0x80000000 else h


def in_sample(session_id: str, sampling_rate: float) -> bool:
    """Deterministic per-session sampling decision."""
    bucket = (abs(java_string_hash(session_id)) % 100) / 100
    return bucket < sampling_rate


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def decide_outcome(
    overall: float,
    dimension_scores: Iterable[float],
    thresholds: EvaluatorThresholds,
) -> QAOutcome:
    """BLOCK, then FLAG, then PASS; the first tier whose condition holds wins."""
    scores = list(dimension_scores)
    if overall < thresholds.block_below or any(s < thresholds.dimension_block_below for s in scores):
        return QAOutcome.BLOCK
    if overall < thresholds.flag_below or any(s < thresholds.dimension_flag_below for s in scores):
        return QAOutcome.FLAG
    return QAOutcome.PASS


def report_as_text(report: ComposedReport) -> str:
    return "\n\n".join(f"## {s.name} (Section {s.number})\n{s.content}" for s in report.sections)


class QualityEvaluator:
    def __init__(
        self,
        config: EvaluatorConfig,
        evaluator: IEvaluator | None = None,
        *,
        rules: RuleSet | None = None,
        language: str = "en",
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._config = config
        self._evaluator = evaluator
        self._rules = rules
        self._language = language
        self._on_progress = on_progress

    def ensure_configured(self) -> None:
        """Raise when evaluation is enabled but there is nothing to call."""
        if self._config.enabled and self._evaluator is None:
            raise EvaluatorConfigError(
                "Quality evaluation is enabled but no evaluator is configured "
                f"(set {self._config.api_key_env} or SMILE_EVALUATOR_ENABLED=false)"
            )

    def skip_reason(self, report: ComposedReport) -> str | None:
        if not self._config.enabled:
            return "evaluation disabled"
        if self._config.skip_on_high_confidence and report.confidence is ConfidenceLevel.HIGH:
            return "high-confidence report"
        if not in_sample(report.session_id, self._config.sampling_rate):
            return f"not sampled (rate={self._config.sampling_rate})"
        return None

    async def evaluate(
        self,
        report: ComposedReport,
        intake: IntakeAnswers,
        driver_state: DriverState,
        tone: ToneProfileId,
        scenario_id: str,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> EvaluationResult:
        callback = on_progress or self._on_progress
        reason = self.skip_reason(report)
        if reason is not None:
            log.info("Skipping evaluation for %s: %s", report.session_id, reason)
            record_event("evaluation", "skipped", reason=reason)
            return EvaluationResult(outcome=QAOutcome.SKIPPED, skipped_reason=reason)
        self.ensure_configured()
        evaluator = self._evaluator

        language = intake.metadata.get("language", self._language)
        started = time.monotonic()
        dimensions: list[DimensionScore] = []
        try:
            for name in DIMENSIONS:
                context = self._context(name, report, driver_state, tone, scenario_id, language)
                raw = await asyncio.wait_for(evaluator.evaluate(context), timeout=self._config.timeout)
                score = DimensionScore(
                    dimension=name,
                    score=clamp(raw.score, 1.0, 10.0),
                    confidence=clamp(raw.confidence, 0.0, 1.0),
                    feedback=raw.feedback,
                    issues=list(raw.issues),
                )
                dimensions.append(score)
                await emit_progress(
                    callback,
                    ProgressEvent(
                        phase=EVALUATION_PHASE,
                        phase_name=EVALUATION_PHASE_NAME,
                        status=PhaseStatus.IN_PROGRESS,
                        message=f"{name}: {score.score:.1f}/10",
                        metrics={"dimension": name, "score": score.score, "confidence": score.confidence},
                    ),
                )
        except (asyncio.TimeoutError, LLMClientError, ValueError) as exc:
            return self._fallback(report, exc, started)

        weights = self._config.weights
        overall = round(
            sum(getattr(weights, d.dimension) * d.score for d in dimensions),
            2,
        )
        outcome = decide_outcome(overall, (d.score for d in dimensions), self._config.thresholds)
        assessment = " ".join(d.feedback for d in dimensions if d.feedback) or f"Overall score {overall:.1f}/10"
        duration_ms = (time.monotonic() - started) * 1000
        log.info("Evaluated %s: overall=%.2f outcome=%s", report.session_id, overall, outcome.value)
        record_event("evaluation", "scored", overall=overall, outcome=outcome.value)
        return EvaluationResult(
            outcome=outcome,
            dimensions=dimensions,
            overall_score=overall,
            assessment=assessment,
            model=evaluator.model_name,
            duration_ms=duration_ms,
        )

    # ── Internal ────────────────────────────────────────────────────

    def _context(
        self,
        dimension: str,
        report: ComposedReport,
        driver_state: DriverState,
        tone: ToneProfileId,
        scenario_id: str,
        language: str,
    ) -> EvaluationContext:
        profile = self._rules.tone_profiles.get(tone) if self._rules is not None else None
        flags = [k for k, v in driver_state.safety.model_dump().items() if v]
        return EvaluationContext(
            dimension=dimension,
            session_id=report.session_id,
            language=language,
            tone=tone,
            tone_name=profile.name if profile else "",
            tone_description=profile.description if profile else "",
            scenario_id=scenario_id,
            confidence=report.confidence.value,
            tags=list(driver_state.tags),
            safety_flags=flags,
            report_text=report_as_text(report),
            total_word_count=report.total_word_count,
        )

    def _fallback(self, report: ComposedReport, exc: BaseException, started: float) -> EvaluationResult:
        message = str(exc) or type(exc).__name__
        outcome = QAOutcome(self._config.fallback_on_error)
        if outcome is QAOutcome.PASS:
            outcome = QAOutcome.FLAG
        log.warning("Evaluation failed for %s: %s; using %s", report.session_id, message, outcome.value)
        record_event("evaluation", "failed", error=message, outcome=outcome.value)
        return EvaluationResult(
            outcome=outcome,
            dimensions=[DimensionScore(dimension=d, score=0.0, confidence=0.0) for d in DIMENSIONS],
            overall_score=0.0,
            assessment=f"LLM evaluation failed: {message}",
            error=message,
            model=getattr(self._evaluator, "model_name", ""),
            duration_ms=(time.monotonic() - started) * 1000,
        )
