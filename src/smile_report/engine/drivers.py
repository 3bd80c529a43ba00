"""Driver derivation: raw questionnaire answers → three-layer DriverState.

Pure and deterministic. Every driver field is an independent lookup of one
answer; tags come from the static tag table. Missing or malformed answers
resolve to the same default as an absent answer.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from smile_report.models import (
    DriverState,
    IntakeAnswers,
    NarrativeDrivers,
    PersonalizationDrivers,
    SafetyDrivers,
)

if TYPE_CHECKING:
    from smile_report.rules.models import RuleSet, TagRule

log = logging.getLogger(__name__)

_DEFAULT_SATISFACTION = 5


def derive(intake: IntakeAnswers, rules: RuleSet) -> DriverState:
    """Derive the driver state and semantic tags for one intake."""
    sources: dict[str, str] = {}

    safety_values: dict[str, bool] = {}
    for name, match in rules.safety_flags.items():
        safety_values[name] = match.matches(intake.answer_string(match.question_id))
        sources[name] = match.question_id

    layered: dict[str, str] = {}
    for name, question_id in rules.driver_fields.items():
        layered[name] = intake.answer_string(question_id)
        sources[name] = question_id

    personalization = PersonalizationDrivers(
        **{
            name: value
            for name, value in layered.items()
            if name in PersonalizationDrivers.model_fields and name != "satisfaction_score"
        },
        satisfaction_score=_parse_score(layered.get("satisfaction_score", "")),
    )
    narrative = NarrativeDrivers(
        **{name: value for name, value in layered.items() if name in NarrativeDrivers.model_fields}
    )
    safety = SafetyDrivers(
        **{name: value for name, value in safety_values.items() if name in SafetyDrivers.model_fields}
    )

    state = DriverState(
        session_id=intake.session_id,
        safety=safety,
        personalization=personalization,
        narrative=narrative,
        sources=sources,
    )
    tags = synthesize_tags(state, rules.tag_rules)
    log.debug("Derived %d tags for session %s", len(tags), intake.session_id)
    return state.model_copy(update={"tags": tags})


def synthesize_tags(state: DriverState, tag_rules: tuple[TagRule, ...]) -> tuple[str, ...]:
    """Union of every matching rule's tags, deduplicated in table order."""
    seen: dict[str, None] = {}
    for rule in tag_rules:
        if rule.clause.matches(state):
            for tag in rule.tags:
                seen.setdefault(tag, None)
    return tuple(seen)


def _parse_score(raw: str) -> int:
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        return _DEFAULT_SATISFACTION
