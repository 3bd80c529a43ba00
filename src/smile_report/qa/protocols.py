"""External evaluator protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from smile_report.qa.models import DimensionScore, EvaluationContext


@runtime_checkable
class IEvaluator(Protocol):
    """Scores one report dimension. Values may be out of range; callers clamp."""

    model_name: str

    async def evaluate(self, context: EvaluationContext) -> DimensionScore:
        ...
