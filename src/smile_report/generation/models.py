"""Generation and verification models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from smile_report.models import ContentGap


class GeneratedContent(BaseModel):
    content: str
    citations: list[str] = Field(default_factory=list)
    word_count: int = 0


class ClaimVerdict(str, Enum):
    VERIFIED = "verified"
    UNSUPPORTED = "unsupported"
    CONTRADICTED = "contradicted"
    INCONCLUSIVE = "inconclusive"


class Claim(BaseModel):
    text: str
    verdict: ClaimVerdict
    explanation: Optional[str] = None


class VerificationResult(BaseModel):
    """Fact-check of generated content against its sources."""

    overall_confidence: float = Field(ge=0.0, le=1.0)
    claims: list[Claim] = Field(default_factory=list)


class FactCheckIssue(BaseModel):
    """An unverified claim surfaced on the report."""

    content_id: str
    claim: str
    verdict: ClaimVerdict
    severity: str
    suggestion: str
    explanation: Optional[str] = None

    @classmethod
    def from_claim(cls, content_id: str, claim: Claim) -> FactCheckIssue:
        contradicted = claim.verdict is ClaimVerdict.CONTRADICTED
        if claim.verdict is ClaimVerdict.UNSUPPORTED:
            suggestion = "Consider adding source citation"
        else:
            suggestion = "Review this claim against source material"
        return cls(
            content_id=content_id,
            claim=claim.text,
            verdict=claim.verdict,
            severity="high" if contradicted else "medium",
            suggestion=suggestion,
            explanation=claim.explanation,
        )

    def describe(self) -> str:
        return f"[{self.severity}] {self.content_id}: {self.claim} ({self.suggestion})"


class GapStatus(str, Enum):
    PASSED = "passed"
    PERSISTED_WITH_WARNING = "persisted_with_warning"
    FAILED = "failed"


class GapOutcome(BaseModel):
    """Final result of resolving one content gap."""

    gap: ContentGap
    status: GapStatus
    attempts: int = 0
    confidence: Optional[float] = None
    reason: Optional[str] = None
    issues: list[FactCheckIssue] = Field(default_factory=list)
    states: list[str] = Field(default_factory=list)

    @property
    def persisted(self) -> bool:
        return self.status is not GapStatus.FAILED
