"""smile-report: dental questionnaire to personalised narrative report.

Typical use::

    from smile_report import AppSettings, IntakeAnswers, build_pipeline

    pipeline = build_pipeline(AppSettings())
    result = await pipeline.run(IntakeAnswers.model_validate(payload), language="en")
    if result.delivered:
        ...
"""

from __future__ import annotations

from smile_report.core.config import AppSettings
from smile_report.exceptions import (
    ContentStoreError,
    EvaluatorConfigError,
    LLMClientError,
    MissingContentError,
    RulesError,
    SmileReportError,
)
from smile_report.factory import build_pipeline, load_rules
from smile_report.models import (
    ComposedReport,
    DriverState,
    IntakeAnswers,
    ProgressEvent,
    ToneProfileId,
)
from smile_report.pipeline import PipelineResult, ReportPipeline

__all__ = [
    "AppSettings",
    "ComposedReport",
    "ContentStoreError",
    "DriverState",
    "EvaluatorConfigError",
    "IntakeAnswers",
    "LLMClientError",
    "MissingContentError",
    "PipelineResult",
    "ProgressEvent",
    "ReportPipeline",
    "RulesError",
    "SmileReportError",
    "ToneProfileId",
    "build_pipeline",
    "load_rules",
]
