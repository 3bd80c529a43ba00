"""Report composition: placeholders, scenario subsections and ordered section assembly."""

from __future__ import annotations

from smile_report.composition.composer import ReportComposer, count_words
from smile_report.composition.placeholders import PlaceholderResolver, PlaceholderResult
from smile_report.composition.scenario_sections import parse_scenario_sections

__all__ = [
    "PlaceholderResolver",
    "PlaceholderResult",
    "ReportComposer",
    "count_words",
    "parse_scenario_sections",
]
