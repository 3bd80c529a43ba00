"""Scenario scoring: category tables keyed by scenario id, plus a budget bonus."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from smile_report.models import (
    ConfidenceLevel,
    DriverState,
    ScenarioDefinition,
    ScenarioSelection,
    ScoredScenario,
)

if TYPE_CHECKING:
    from smile_report.rules.models import RuleSet, ScoringRules

log = logging.getLogger(__name__)

_SCORE_PRECISION = 4


def score_candidate(
    state: DriverState,
    scenario: ScenarioDefinition,
    scoring: ScoringRules,
) -> ScoredScenario:
    """Score one scenario. The total is capped at 1.0."""
    score = 0.0
    matched: list[str] = []

    for category in scoring.categories:
        if not category.covers(scenario.id):
            continue
        for inc in category.increments:
            if any(state.has_tag(t) for t in inc.any_tags):
                score += inc.increment
                matched.append(inc.label)

    description = scenario.description.lower()
    for bonus in scoring.budget_bonuses:
        if state.has_tag(bonus.tag) and bonus.substring.lower() in description:
            score += bonus.increment
            matched.append(bonus.label)

    return ScoredScenario(
        scenario_id=scenario.id,
        name=scenario.name,
        score=round(min(score, 1.0), _SCORE_PRECISION),
        matched_drivers=tuple(matched),
        sections=scenario.sections or scoring.standard_sections,
    )


def score_all(
    state: DriverState,
    candidates: Iterable[ScenarioDefinition],
    scoring: ScoringRules,
) -> list[ScoredScenario]:
    """Every candidate scored, ranked by score then id."""
    scored = [score_candidate(state, c, scoring) for c in candidates]
    return sorted(scored, key=lambda s: (-s.score, s.scenario_id))


def score_scenarios(
    state: DriverState,
    candidates: Iterable[ScenarioDefinition],
    rules: RuleSet,
) -> list[ScoredScenario]:
    """Ranked candidates scoring above the relevance cutoff; never empty.

    When nothing clears the cutoff a synthetic fallback scenario covering all
    standard sections is appended.
    """
    return _retain(score_all(state, candidates, rules.scoring), rules.scoring)


def _retain(ranked: list[ScoredScenario], scoring: ScoringRules) -> list[ScoredScenario]:
    retained = [s for s in ranked if s.score > scoring.relevance_cutoff]
    if not retained:
        retained.append(fallback_scenario(scoring))
    return retained


def fallback_scenario(scoring: ScoringRules) -> ScoredScenario:
    return ScoredScenario(
        scenario_id=scoring.fallback_id,
        name=scoring.fallback_name,
        score=scoring.fallback_score,
        matched_drivers=(scoring.fallback_label,),
        sections=scoring.standard_sections,
    )


def confidence_for(top: ScoredScenario, scoring: ScoringRules) -> ConfidenceLevel:
    """Map the top candidate's score onto a confidence tier."""
    if top.scenario_id == scoring.fallback_id:
        return ConfidenceLevel.FALLBACK
    for level in (ConfidenceLevel.HIGH, ConfidenceLevel.MEDIUM, ConfidenceLevel.LOW):
        threshold = scoring.confidence_thresholds.get(level)
        if threshold is not None and top.score >= threshold:
            return level
    return ConfidenceLevel.FALLBACK


def select_scenarios(
    state: DriverState,
    rules: RuleSet,
    candidates: Iterable[ScenarioDefinition] | None = None,
) -> ScenarioSelection:
    """Score the catalog (or ``candidates``) and wrap the result with its confidence tier."""
    pool = list(candidates) if candidates is not None else list(rules.scenarios)
    all_scores = score_all(state, pool, rules.scoring)
    retained = _retain(all_scores, rules.scoring)
    confidence = confidence_for(retained[0], rules.scoring)
    log.info(
        "Scenario match: %s (score=%.2f, confidence=%s, retained=%d)",
        retained[0].scenario_id,
        retained[0].score,
        confidence.value,
        len(retained),
    )
    return ScenarioSelection(
        candidates=tuple(retained),
        confidence=confidence,
        all_scores=tuple(all_scores),
    )
