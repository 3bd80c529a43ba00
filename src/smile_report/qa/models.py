"""Quality-assurance models: evaluator results, rule issues and the final decision."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from smile_report.models import ToneProfileId

DIMENSIONS = ("quality", "clinical_accuracy", "personalization")


class QAOutcome(str, Enum):
    PASS = "PASS"
    FLAG = "FLAG"
    BLOCK = "BLOCK"
    SKIPPED = "SKIPPED"

    @property
    def rank(self) -> int:
        return _RANK[self]


_RANK = {QAOutcome.SKIPPED: -1, QAOutcome.PASS: 0, QAOutcome.FLAG: 1, QAOutcome.BLOCK: 2}


def most_severe(*outcomes: QAOutcome) -> QAOutcome:
    """Highest-ranked outcome; SKIPPED contributes nothing."""
    ranked = [o for o in outcomes if o is not QAOutcome.SKIPPED]
    if not ranked:
        return QAOutcome.PASS
    return max(ranked, key=lambda o: o.rank)


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class EvaluationContext(BaseModel):
    """Everything an external evaluator sees for one dimension."""

    dimension: str
    session_id: str
    language: str = "en"
    tone: ToneProfileId
    tone_name: str = ""
    tone_description: str = ""
    scenario_id: str
    confidence: str = ""
    tags: list[str] = Field(default_factory=list)
    safety_flags: list[str] = Field(default_factory=list)
    report_text: str
    total_word_count: int = 0


class DimensionScore(BaseModel):
    """One dimension's score on the 1-10 scale with the evaluator's confidence."""

    dimension: str
    score: float
    confidence: float = 1.0
    feedback: str = ""
    issues: list[str] = Field(default_factory=list)


class EvaluationResult(BaseModel):
    outcome: QAOutcome
    dimensions: list[DimensionScore] = Field(default_factory=list)
    overall_score: Optional[float] = None
    assessment: str = ""
    skipped_reason: Optional[str] = None
    error: Optional[str] = None
    model: str = ""
    duration_ms: float = 0.0

    def dimension(self, name: str) -> DimensionScore | None:
        for d in self.dimensions:
            if d.dimension == name:
                return d
        return None


class QAIssue(BaseModel):
    """A rule-based QA finding."""

    check_id: str
    severity: IssueSeverity
    outcome: QAOutcome
    message: str
    section: Optional[int] = None


class QADecision(BaseModel):
    """Combined rule and evaluator verdict for delivery."""

    outcome: QAOutcome
    reasons: list[str] = Field(default_factory=list)
    can_deliver: bool
    requires_review: bool
    issues: list[QAIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
