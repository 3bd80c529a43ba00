"""Tone selection: ordered (predicate, result) rules, first match wins."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from smile_report.models import DriverState, ToneProfile, ToneProfileId

if TYPE_CHECKING:
    from smile_report.rules.models import RuleSet, ToneRule


@dataclass(frozen=True)
class ToneRuleEvaluation:
    """Outcome of one tone rule, recorded for the audit trail."""

    rule_id: str
    tone: ToneProfileId
    matched: bool
    matched_condition: int | None = None


@dataclass(frozen=True)
class ToneDecision:
    profile: ToneProfile
    rule_id: str
    evaluated: tuple[ToneRuleEvaluation, ...] = field(default_factory=tuple)

    @property
    def tone(self) -> ToneProfileId:
        return self.profile.id


def select_tone(state: DriverState, rules: RuleSet) -> ToneDecision:
    """Evaluate tone rules top-down and stop at the first match.

    Rules after the winning one are not evaluated, so the audit trail shows
    exactly which predicates were consulted.
    """
    evaluated: list[ToneRuleEvaluation] = []
    for rule in rules.tone_rules:
        index = _first_matching_condition(rule, state)
        matched = index is not None
        evaluated.append(
            ToneRuleEvaluation(rule_id=rule.rule_id, tone=rule.tone, matched=matched, matched_condition=index)
        )
        if matched:
            return ToneDecision(
                profile=rules.tone_profile(rule.tone),
                rule_id=rule.rule_id,
                evaluated=tuple(evaluated),
            )

    return ToneDecision(
        profile=rules.tone_profile(rules.default_tone),
        rule_id="default",
        evaluated=tuple(evaluated),
    )


def tone_for_section(tone: ToneProfileId, section: int, rules: RuleSet) -> ToneProfileId:
    """Per-section override (e.g. next steps) beats the globally selected tone."""
    section_rule = rules.composition.sections.get(section)
    if section_rule is not None and section_rule.tone_override is not None:
        return section_rule.tone_override
    return tone


def banned_phrases_in(text: str, tone: ToneProfileId, rules: RuleSet) -> list[str]:
    """Banned phrases for ``tone`` that occur in ``text`` as whole words."""
    profile = rules.tone_profiles.get(tone)
    if profile is None:
        return []
    lowered = text.lower()
    return [
        phrase
        for phrase in profile.banned_phrases
        if re.search(rf"\b{re.escape(phrase.lower())}\b", lowered)
    ]


def is_phrase_banned(tone: ToneProfileId, phrase: str, rules: RuleSet) -> bool:
    return bool(banned_phrases_in(phrase, tone, rules))


def _first_matching_condition(rule: ToneRule, state: DriverState) -> int | None:
    if not rule.conditions:
        return 0
    for i, condition in enumerate(rule.conditions):
        if all(clause.matches(state) for clause in condition):
            return i
    return None
