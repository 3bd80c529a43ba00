"""Quality assurance: LLM-scored evaluation and rule-based delivery gate."""

from __future__ import annotations

from smile_report.qa.evaluator import QualityEvaluator, decide_outcome
from smile_report.qa.gate import QAGate
from smile_report.qa.models import (
    DimensionScore,
    EvaluationContext,
    EvaluationResult,
    QADecision,
    QAIssue,
    QAOutcome,
)
from smile_report.qa.protocols import IEvaluator

__all__ = [
    "DimensionScore",
    "EvaluationContext",
    "EvaluationResult",
    "IEvaluator",
    "QADecision",
    "QAGate",
    "QAIssue",
    "QAOutcome",
    "QualityEvaluator",
    "decide_outcome",
]
