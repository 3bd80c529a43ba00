"""Startup validation: fail-fast on critical misconfigurations."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from smile_report.core.config import AppSettings

log = logging.getLogger(__name__)


def validate_settings(settings: AppSettings) -> None:
    """Validate application settings at startup. Raises ValueError on fatal misconfig."""
    _check_weights(settings)
    _check_thresholds(settings)
    _check_fallback_outcome(settings)
    _check_sampling(settings)
    _check_languages(settings)


def _check_weights(settings: AppSettings) -> None:
    """Weights must sum to 1.0 with clinical accuracy weighted highest."""
    weights = settings.evaluator.weights
    total = weights.quality + weights.clinical_accuracy + weights.personalization
    if not math.isclose(total, 1.0, abs_tol=1e-6):
        raise ValueError(
            f"SMILE_EVALUATOR_WEIGHTS must sum to 1.0 (got {total:.3f})."
        )
    if weights.clinical_accuracy < max(weights.quality, weights.personalization):
        raise ValueError(
            "SMILE_EVALUATOR_WEIGHTS: clinical_accuracy must carry the highest weight."
        )


def _check_thresholds(settings: AppSettings) -> None:
    t = settings.evaluator.thresholds
    if not (1.0 <= t.block_below <= t.flag_below <= 10.0):
        raise ValueError(
            f"Evaluator thresholds must satisfy 1 <= block_below <= flag_below <= 10 "
            f"(got block_below={t.block_below}, flag_below={t.flag_below})."
        )
    if not (1.0 <= t.dimension_block_below <= t.dimension_flag_below <= 10.0):
        raise ValueError(
            "Evaluator thresholds must satisfy "
            "1 <= dimension_block_below <= dimension_flag_below <= 10."
        )


def _check_fallback_outcome(settings: AppSettings) -> None:
    """A failed evaluation must never resolve to PASS."""
    if settings.evaluator.fallback_on_error == "PASS":
        raise ValueError(
            "SMILE_EVALUATOR_FALLBACK_ON_ERROR=PASS would let failed evaluations through. "
            "Use FLAG or BLOCK."
        )


def _check_sampling(settings: AppSettings) -> None:
    if settings.evaluator.enabled and settings.evaluator.sampling_rate == 0.0:
        log.warning(
            "SMILE_EVALUATOR_SAMPLING_RATE=0 with evaluation enabled: "
            "every report will skip the quality evaluator."
        )


def _check_languages(settings: AppSettings) -> None:
    content = settings.content
    if content.default_language not in content.supported_languages:
        raise ValueError(
            f"SMILE_CONTENT_DEFAULT_LANGUAGE={content.default_language!r} "
            f"is not in supported_languages {content.supported_languages}."
        )
