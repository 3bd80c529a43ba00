"""Rule-set data models: immutable tables consulted by every pipeline stage.

A ``RuleSet`` is loaded once (see ``rules.loader``) and passed by reference
into the engine, composer and selector, so tests can inject an alternate set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

from smile_report.models import (
    ConfidenceLevel,
    ContentType,
    ScenarioDefinition,
    ToneProfile,
    ToneProfileId,
)

if TYPE_CHECKING:
    from smile_report.models import DriverState


def frozen_map(data: Mapping[Any, Any] | None = None) -> Mapping[Any, Any]:
    """Read-only view over a copy of ``data``."""
    return MappingProxyType(dict(data or {}))


class MatchOp(str, Enum):
    """Comparison applied by a clause."""

    EQUALS = "equals"
    IN = "in"
    CONTAINS = "contains"
    STARTSWITH = "startswith"
    TRUE = "true"
    HAS_TAG = "has_tag"
    LACKS_TAG = "lacks_tag"


def apply_op(op: MatchOp, actual: Any, expected: Any) -> bool:
    """Evaluate ``op`` for a driver or answer value. Never raises."""
    if op is MatchOp.TRUE:
        return bool(actual)
    text = "" if actual is None else str(actual)
    if op is MatchOp.EQUALS:
        return text == str(expected)
    if op is MatchOp.IN:
        return text in expected
    if op is MatchOp.CONTAINS:
        return bool(text) and str(expected) in text
    if op is MatchOp.STARTSWITH:
        return text.startswith(str(expected))
    return False


@dataclass(frozen=True)
class Clause:
    """One test against a driver field or the derived tag set."""

    op: MatchOp
    field: str = ""
    value: Any = None

    def matches(self, state: DriverState) -> bool:
        if self.op is MatchOp.HAS_TAG:
            return any(state.has_tag(t) for t in self.value)
        if self.op is MatchOp.LACKS_TAG:
            return not any(state.has_tag(t) for t in self.value)
        return apply_op(self.op, state.value(self.field), self.value)

    def describe(self) -> str:
        if self.op in (MatchOp.HAS_TAG, MatchOp.LACKS_TAG):
            return f"{self.op.value}({', '.join(self.value)})"
        if self.op is MatchOp.TRUE:
            return self.field
        return f"{self.field} {self.op.value} {self.value!r}"


Condition = tuple[Clause, ...]


def any_condition(conditions: tuple[Condition, ...], state: DriverState) -> bool:
    """OR over conditions, AND within each. No conditions means always."""
    if not conditions:
        return True
    return any(all(c.matches(state) for c in cond) for cond in conditions)


# ── Driver derivation ───────────────────────────────────────────────


@dataclass(frozen=True)
class AnswerMatch:
    """L1 flag definition: a fixed code test on one question."""

    question_id: str
    op: MatchOp
    value: Any = None

    def matches(self, answer: str) -> bool:
        return apply_op(self.op, answer, self.value)


@dataclass(frozen=True)
class TagRule:
    """Driver value → tag set."""

    clause: Clause
    tags: tuple[str, ...]


# ── Tone ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ToneRule:
    """First-match-wins tone rule."""

    rule_id: str
    tone: ToneProfileId
    conditions: tuple[Condition, ...] = ()
    description: str = ""


# ── Scenario scoring ────────────────────────────────────────────────


@dataclass(frozen=True)
class ScoreIncrement:
    any_tags: tuple[str, ...]
    increment: float
    label: str


@dataclass(frozen=True)
class ScenarioCategory:
    name: str
    scenario_ids: tuple[str, ...]
    increments: tuple[ScoreIncrement, ...]

    def covers(self, scenario_id: str) -> bool:
        sid = scenario_id.upper()
        return any(sid.startswith(prefix) for prefix in self.scenario_ids)


@dataclass(frozen=True)
class BudgetBonus:
    tag: str
    substring: str
    increment: float
    label: str


@dataclass(frozen=True)
class ScoringRules:
    categories: tuple[ScenarioCategory, ...]
    budget_bonuses: tuple[BudgetBonus, ...] = ()
    relevance_cutoff: float = 0.3
    fallback_id: str = "S00_GENERIC"
    fallback_name: str = "Generic Report"
    fallback_score: float = 0.1
    fallback_label: str = "fallback"
    standard_sections: tuple[int, ...] = tuple(range(1, 12))
    confidence_thresholds: Mapping[ConfidenceLevel, float] = field(default_factory=frozen_map)


# ── Composition ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class SectionRule:
    """Ordered source precedence for one report section."""

    number: int
    name: str
    order: tuple[ContentType, ...]
    scenario_key: str | None = None
    scenario_key_fallbacks: tuple[str, ...] = ()
    tone_override: ToneProfileId | None = None
    max_cardinality: Mapping[ContentType, int] = field(default_factory=frozen_map)

    @property
    def scenario_keys(self) -> tuple[str, ...]:
        if self.scenario_key is None:
            return self.scenario_key_fallbacks
        return (self.scenario_key, *self.scenario_key_fallbacks)


@dataclass(frozen=True)
class CompositionRules:
    sections: Mapping[int, SectionRule]
    block_precedence: Mapping[ContentType, ContentType] = field(default_factory=frozen_map)
    hard_suppression_alert: str = "A_BLOCK_TREATMENT_OPTIONS"
    hard_suppression_sections: tuple[int, ...] = (5, 6, 7, 8, 9)
    hedge_sections: tuple[int, ...] = (2, 3, 4)
    confidence_phrases: Mapping[ConfidenceLevel, tuple[str, ...]] = field(default_factory=frozen_map)
    static_sources: Mapping[int, str] = field(default_factory=frozen_map)
    static_fallbacks: Mapping[str, str] = field(default_factory=frozen_map)
    max_modules_per_section: int = 4
    scenario_section_patterns: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class PlaceholderRules:
    aliases: Mapping[str, str] = field(default_factory=frozen_map)
    calculated: Mapping[str, Mapping[str, Mapping[str, str]]] = field(default_factory=frozen_map)


# ── Content selection ───────────────────────────────────────────────


@dataclass(frozen=True)
class ContentTrigger:
    """Selects ``content_id`` into each of ``sections`` when its conditions hold."""

    content_id: str
    type: ContentType
    sections: tuple[int, ...]
    priority: int = 1
    conditions: tuple[Condition, ...] = ()
    tone_override: ToneProfileId | None = None


@dataclass(frozen=True)
class ScenarioBlock:
    """Per-scenario block, e.g. ``B_NUANCE_S01`` in section 3."""

    prefix: str
    section: int
    priority: int = 1


@dataclass(frozen=True)
class SuppressionRule:
    rule_id: str
    conditions: tuple[Condition, ...]
    blocks: tuple[str, ...] = ()
    sections: tuple[int, ...] = ()

    def suppresses_block(self, content_id: str) -> bool:
        for pattern in self.blocks:
            if pattern.endswith("*"):
                if content_id.startswith(pattern[:-1]):
                    return True
            elif content_id == pattern:
                return True
        return False


@dataclass(frozen=True)
class SelectionRules:
    alert_triggers: tuple[ContentTrigger, ...] = ()
    block_triggers: tuple[ContentTrigger, ...] = ()
    module_triggers: tuple[ContentTrigger, ...] = ()
    scenario_blocks: tuple[ScenarioBlock, ...] = ()
    static_selections: tuple[ContentTrigger, ...] = ()
    suppression_rules: tuple[SuppressionRule, ...] = ()
    scenario_section: int = 2


# ── QA ──────────────────────────────────────────────────────────────


class PhraseSeverity(str, Enum):
    """CRITICAL phrases block delivery; WARNING phrases flag the report for review."""

    CRITICAL = "critical"
    WARNING = "warning"


@dataclass(frozen=True)
class GlobalBannedPhrase:
    phrase: str
    severity: PhraseSeverity = PhraseSeverity.WARNING
    rule: str = "General banned phrase"


@dataclass(frozen=True)
class QARules:
    """Tone-independent report checks."""

    global_banned_phrases: tuple[GlobalBannedPhrase, ...] = ()
    repeatable_prefixes: tuple[str, ...] = ("TM_",)


# ── Rule set ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RuleSet:
    """Every table the pipeline consults, loaded once."""

    version: int
    driver_fields: Mapping[str, str]
    safety_flags: Mapping[str, AnswerMatch]
    tag_rules: tuple[TagRule, ...]
    tone_profiles: Mapping[ToneProfileId, ToneProfile]
    tone_rules: tuple[ToneRule, ...]
    tone_fallback_chains: Mapping[ToneProfileId, tuple[ToneProfileId, ...]]
    scoring: ScoringRules
    scenarios: tuple[ScenarioDefinition, ...]
    composition: CompositionRules
    placeholders: PlaceholderRules
    selection: SelectionRules
    default_tone: ToneProfileId = ToneProfileId.NEUTRAL_INFORMATIVE
    qa: QARules = field(default_factory=QARules)

    def tone_profile(self, tone: ToneProfileId) -> ToneProfile:
        return self.tone_profiles[tone]

    def fallback_chain(self, tone: ToneProfileId) -> tuple[ToneProfileId, ...]:
        return self.tone_fallback_chains.get(tone, (self.default_tone,))

    def scenario(self, scenario_id: str) -> ScenarioDefinition | None:
        for s in self.scenarios:
            if s.id == scenario_id:
                return s
        return None
