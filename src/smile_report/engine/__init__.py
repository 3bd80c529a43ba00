"""Decision engine: driver derivation, tone selection, scenario scoring, content selection."""

from __future__ import annotations

from smile_report.engine.drivers import derive, synthesize_tags
from smile_report.engine.scenarios import confidence_for, score_scenarios, select_scenarios
from smile_report.engine.selector import select_content
from smile_report.engine.tone import ToneDecision, select_tone, tone_for_section

__all__ = [
    "ToneDecision",
    "confidence_for",
    "derive",
    "score_scenarios",
    "select_content",
    "select_scenarios",
    "select_tone",
    "synthesize_tags",
    "tone_for_section",
]
