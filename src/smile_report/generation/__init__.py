"""Gap generation: fact-checked content generation with a bounded retry budget."""

from __future__ import annotations

from smile_report.generation.models import (
    Claim,
    ClaimVerdict,
    FactCheckIssue,
    GapOutcome,
    GapStatus,
    GeneratedContent,
    VerificationResult,
)
from smile_report.generation.protocols import IGenerator, IVerifier
from smile_report.generation.retry import GenerationRetryLoop

__all__ = [
    "Claim",
    "ClaimVerdict",
    "FactCheckIssue",
    "GapOutcome",
    "GapStatus",
    "GenerationRetryLoop",
    "GeneratedContent",
    "IGenerator",
    "IVerifier",
    "VerificationResult",
]
