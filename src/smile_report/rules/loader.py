"""Rule-set loader: reads the YAML (or JSON) rules file into a frozen RuleSet."""

from __future__ import annotations

import functools
import json
import logging
from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from smile_report.exceptions import RulesError
from smile_report.models import (
    ConfidenceLevel,
    ContentType,
    ScenarioDefinition,
    ToneProfile,
    ToneProfileId,
)
from smile_report.rules.models import (
    AnswerMatch,
    BudgetBonus,
    Clause,
    CompositionRules,
    Condition,
    ContentTrigger,
    GlobalBannedPhrase,
    MatchOp,
    PhraseSeverity,
    PlaceholderRules,
    QARules,
    RuleSet,
    ScenarioBlock,
    ScenarioCategory,
    ScoreIncrement,
    ScoringRules,
    SectionRule,
    SelectionRules,
    SuppressionRule,
    TagRule,
    ToneRule,
    frozen_map,
)

log = logging.getLogger(__name__)

_VALUE_OPS = (MatchOp.EQUALS, MatchOp.IN, MatchOp.CONTAINS, MatchOp.STARTSWITH)


def load_ruleset(path: Path) -> RuleSet:
    """Load a rule set from a YAML or JSON file on disk."""
    if not path.exists():
        raise RulesError(f"Rules file not found: {path}")

    raw_text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(raw_text)
        else:
            data = json.loads(raw_text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise RulesError(f"Cannot parse rules file {path}: {exc}") from exc

    ruleset = parse_ruleset(data)
    log.info("Loaded rule set version %d from %s", ruleset.version, path)
    return ruleset


@functools.lru_cache(maxsize=1)
def default_ruleset() -> RuleSet:
    """The packaged default rule set, parsed once per process."""
    text = resources.files("smile_report.rules").joinpath("defaults.yaml").read_text(encoding="utf-8")
    return parse_ruleset(yaml.safe_load(text))


def parse_ruleset(data: dict[str, Any]) -> RuleSet:
    """Build a RuleSet from an already-decoded mapping."""
    if not isinstance(data, dict):
        raise RulesError("Rules document must be a mapping")
    try:
        return RuleSet(
            version=int(data.get("version", 1)),
            driver_fields=frozen_map(data.get("driver_fields", {})),
            safety_flags=frozen_map(
                {name: _parse_answer_match(entry) for name, entry in data.get("safety_flags", {}).items()}
            ),
            tag_rules=tuple(
                TagRule(clause=_parse_clause(r["when"]), tags=tuple(r["tags"]))
                for r in data.get("tag_rules", [])
            ),
            tone_profiles=frozen_map(
                {p.id: p for p in (_parse_tone_profile(t) for t in data.get("tone_profiles", []))}
            ),
            tone_rules=tuple(_parse_tone_rule(r) for r in data.get("tone_rules", [])),
            tone_fallback_chains=frozen_map(
                {
                    ToneProfileId(k): tuple(ToneProfileId(t) for t in v)
                    for k, v in data.get("tone_fallback_chains", {}).items()
                }
            ),
            scoring=_parse_scoring(data.get("scoring", {})),
            scenarios=tuple(
                ScenarioDefinition(
                    id=s["id"],
                    name=s.get("name", s["id"]),
                    description=s.get("description", ""),
                    sections=tuple(s.get("sections", ())),
                )
                for s in data.get("scenarios", [])
            ),
            composition=_parse_composition(data.get("composition", {})),
            placeholders=PlaceholderRules(
                aliases=frozen_map(data.get("placeholders", {}).get("aliases", {})),
                calculated=frozen_map(
                    {
                        fld: frozen_map({str(val): frozen_map(out) for val, out in table.items()})
                        for fld, table in data.get("placeholders", {}).get("calculated", {}).items()
                    }
                ),
            ),
            selection=_parse_selection(data.get("selection", {})),
            default_tone=ToneProfileId(data.get("default_tone", ToneProfileId.NEUTRAL_INFORMATIVE.value)),
            qa=_parse_qa(data.get("qa", {})),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise RulesError(f"Invalid rule set: {exc}") from exc


# ── Parsers ─────────────────────────────────────────────────────────


def _op_and_value(entry: dict[str, Any]) -> tuple[MatchOp, Any]:
    for op in _VALUE_OPS:
        if op.value in entry:
            value = entry[op.value]
            if op is MatchOp.IN:
                value = tuple(str(v) for v in value)
            else:
                value = str(value)
            return op, value
    raise ValueError(f"Clause has no comparison: {entry!r}")


def _as_tags(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _parse_clause(entry: dict[str, Any]) -> Clause:
    if "tag" in entry:
        return Clause(op=MatchOp.HAS_TAG, value=_as_tags(entry["tag"]))
    if "no_tag" in entry:
        return Clause(op=MatchOp.LACKS_TAG, value=_as_tags(entry["no_tag"]))
    if "flag" in entry:
        return Clause(op=MatchOp.TRUE, field=entry["flag"])
    op, value = _op_and_value(entry)
    return Clause(op=op, field=entry["field"], value=value)


def _parse_conditions(entry: Any) -> tuple[Condition, ...]:
    """``when`` is a list of alternatives; each alternative is a clause or a list of clauses."""
    if not entry:
        return ()
    conditions: list[Condition] = []
    for alt in entry:
        clauses = alt if isinstance(alt, list) else [alt]
        conditions.append(tuple(_parse_clause(c) for c in clauses))
    return tuple(conditions)


def _parse_answer_match(entry: dict[str, Any]) -> AnswerMatch:
    op, value = _op_and_value(entry)
    return AnswerMatch(question_id=entry["question"], op=op, value=value)


def _parse_tone_profile(entry: dict[str, Any]) -> ToneProfile:
    return ToneProfile(
        id=ToneProfileId(entry["id"]),
        name=entry["name"],
        description=entry.get("description", ""),
        banned_phrases=tuple(entry.get("banned_phrases", ())),
    )


def _parse_tone_rule(entry: dict[str, Any]) -> ToneRule:
    return ToneRule(
        rule_id=entry["id"],
        tone=ToneProfileId(entry["tone"]),
        conditions=_parse_conditions(entry.get("when")),
        description=entry.get("description", ""),
    )


def _parse_scoring(entry: dict[str, Any]) -> ScoringRules:
    fallback = entry.get("fallback", {})
    return ScoringRules(
        categories=tuple(
            ScenarioCategory(
                name=c["name"],
                scenario_ids=tuple(s.upper() for s in c["scenario_ids"]),
                increments=tuple(
                    ScoreIncrement(
                        any_tags=_as_tags(i["any_tags"]),
                        increment=float(i["increment"]),
                        label=i.get("label", _as_tags(i["any_tags"])[0]),
                    )
                    for i in c.get("increments", [])
                ),
            )
            for c in entry.get("categories", [])
        ),
        budget_bonuses=tuple(
            BudgetBonus(
                tag=b["tag"],
                substring=b["substring"],
                increment=float(b.get("increment", 0.1)),
                label=b.get("label", b["tag"]),
            )
            for b in entry.get("budget_bonuses", [])
        ),
        relevance_cutoff=float(entry.get("relevance_cutoff", 0.3)),
        fallback_id=fallback.get("id", "S00_GENERIC"),
        fallback_name=fallback.get("name", "Generic Report"),
        fallback_score=float(fallback.get("score", 0.1)),
        fallback_label=fallback.get("label", "fallback"),
        standard_sections=tuple(entry.get("standard_sections", range(1, 12))),
        confidence_thresholds=frozen_map(
            {ConfidenceLevel(k): float(v) for k, v in entry.get("confidence_thresholds", {}).items()}
        ),
    )


def _parse_section(number: int, entry: dict[str, Any]) -> SectionRule:
    tone = entry.get("tone_override")
    return SectionRule(
        number=number,
        name=entry["name"],
        order=tuple(ContentType(t) for t in entry.get("order", ())),
        scenario_key=entry.get("scenario_key"),
        scenario_key_fallbacks=tuple(entry.get("scenario_key_fallbacks", ())),
        tone_override=ToneProfileId(tone) if tone else None,
        max_cardinality=frozen_map(
            {ContentType(k): int(v) for k, v in entry.get("max_cardinality", {}).items()}
        ),
    )


def _parse_composition(entry: dict[str, Any]) -> CompositionRules:
    hard = entry.get("hard_suppression", {})
    return CompositionRules(
        sections=frozen_map(
            {int(n): _parse_section(int(n), s) for n, s in entry.get("sections", {}).items()}
        ),
        block_precedence=frozen_map(
            {ContentType(k): ContentType(v) for k, v in entry.get("block_precedence", {}).items()}
        ),
        hard_suppression_alert=hard.get("alert", "A_BLOCK_TREATMENT_OPTIONS"),
        hard_suppression_sections=tuple(hard.get("sections", (5, 6, 7, 8, 9))),
        hedge_sections=tuple(entry.get("hedge_sections", (2, 3, 4))),
        confidence_phrases=frozen_map(
            {ConfidenceLevel(k): tuple(v) for k, v in entry.get("confidence_phrases", {}).items()}
        ),
        static_sources=frozen_map({int(k): v for k, v in entry.get("static_sources", {}).items()}),
        static_fallbacks=frozen_map(entry.get("static_fallbacks", {})),
        max_modules_per_section=int(entry.get("max_modules_per_section", 4)),
        scenario_section_patterns=tuple(
            (str(pattern).lower(), key) for pattern, key in entry.get("scenario_section_patterns", [])
        ),
    )


def _parse_trigger(entry: dict[str, Any], content_type: ContentType) -> ContentTrigger:
    sections = entry.get("sections", [entry["section"]] if "section" in entry else [])
    tone = entry.get("tone_override")
    return ContentTrigger(
        content_id=entry["id"],
        type=content_type,
        sections=tuple(int(s) for s in sections),
        priority=int(entry.get("priority", 1)),
        conditions=_parse_conditions(entry.get("when")),
        tone_override=ToneProfileId(tone) if tone else None,
    )


def _parse_selection(entry: dict[str, Any]) -> SelectionRules:
    return SelectionRules(
        alert_triggers=tuple(
            _parse_trigger(t, ContentType.ALERT_BLOCK) for t in entry.get("alert_triggers", [])
        ),
        block_triggers=tuple(
            _parse_trigger(t, ContentType.BUILDING_BLOCK) for t in entry.get("block_triggers", [])
        ),
        module_triggers=tuple(
            _parse_trigger(t, ContentType.MODULE) for t in entry.get("module_triggers", [])
        ),
        scenario_blocks=tuple(
            ScenarioBlock(prefix=b["prefix"], section=int(b["section"]), priority=int(b.get("priority", 1)))
            for b in entry.get("scenario_blocks", [])
        ),
        static_selections=tuple(
            _parse_trigger(t, ContentType.STATIC) for t in entry.get("static_selections", [])
        ),
        suppression_rules=tuple(
            SuppressionRule(
                rule_id=r["id"],
                conditions=_parse_conditions(r.get("when")),
                blocks=tuple(r.get("blocks", ())),
                sections=tuple(int(s) for s in r.get("sections", ())),
            )
            for r in entry.get("suppression_rules", [])
        ),
        scenario_section=int(entry.get("scenario_section", 2)),
    )


def _parse_qa(entry: dict[str, Any]) -> QARules:
    return QARules(
        global_banned_phrases=tuple(
            GlobalBannedPhrase(
                phrase=p["phrase"],
                severity=PhraseSeverity(p.get("severity", PhraseSeverity.WARNING.value)),
                rule=p.get("rule", "General banned phrase"),
            )
            for p in entry.get("global_banned_phrases", [])
        ),
        repeatable_prefixes=tuple(entry.get("repeatable_prefixes", ("TM_",))),
    )
