"""QA gate: rule checks plus the evaluator outcome, combined into a delivery decision."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from smile_report.qa.checks import (
    REQUIRED_SECTIONS,
    check_banned_vocabulary,
    check_cardinality,
    check_confidence,
    check_global_banned_phrases,
    check_placeholders,
    check_required_sections,
    check_suppression_consistency,
)
from smile_report.qa.models import (
    EvaluationResult,
    IssueSeverity,
    QADecision,
    QAIssue,
    QAOutcome,
    most_severe,
)

if TYPE_CHECKING:
    from smile_report.models import ComposedReport, ContentSelection
    from smile_report.rules.models import RuleSet

log = logging.getLogger(__name__)


class QAGate:
    """Runs rule checks against a composed report. Pure computation, no LLM calls.

    Each check runs independently. A check that raises is logged and
    reported as an error issue, which blocks delivery. The cardinality and
    suppression-consistency checks need the content selections and are
    skipped without them.
    """

    def __init__(self, rules: RuleSet, *, required_sections: tuple[int, ...] = REQUIRED_SECTIONS) -> None:
        self._rules = rules
        self._required_sections = required_sections

    def run_checks(
        self,
        report: ComposedReport,
        selections: Iterable[ContentSelection] | None = None,
    ) -> list[QAIssue]:
        checks = [
            ("unresolved_placeholder", check_placeholders),
            ("banned_vocabulary", check_banned_vocabulary),
            ("global_banned_phrase", check_global_banned_phrases),
            ("low_confidence", check_confidence),
            ("missing_section", self._check_sections),
        ]
        if selections is not None:
            chosen = list(selections)
            checks += [
                ("cardinality", lambda r, rules: check_cardinality(r, rules, chosen)),
                ("suppression_consistency", lambda r, rules: check_suppression_consistency(r, rules, chosen)),
            ]
        issues: list[QAIssue] = []
        for check_id, check in checks:
            try:
                issues.extend(check(report, self._rules))
            except Exception as exc:
                log.exception("QA check %s failed", check_id)
                issues.append(
                    QAIssue(
                        check_id=check_id,
                        severity=IssueSeverity.ERROR,
                        outcome=QAOutcome.BLOCK,
                        message=f"Check {check_id} could not run: {exc}",
                    )
                )
        return issues

    def decide(
        self,
        report: ComposedReport,
        evaluation: EvaluationResult | None = None,
        *,
        selections: Iterable[ContentSelection] | None = None,
    ) -> QADecision:
        issues = self.run_checks(report, selections)
        rule_outcome = most_severe(*(i.outcome for i in issues))
        eval_outcome = evaluation.outcome if evaluation is not None else QAOutcome.SKIPPED
        outcome = most_severe(rule_outcome, eval_outcome)

        reasons = [i.message for i in issues]
        if evaluation is not None and eval_outcome in (QAOutcome.FLAG, QAOutcome.BLOCK):
            if evaluation.error:
                reasons.append(evaluation.assessment)
            else:
                reasons.append(f"Evaluator outcome {eval_outcome.value} (overall {evaluation.overall_score})")

        warnings = [i.message for i in issues if i.severity is IssueSeverity.WARNING]
        if outcome is QAOutcome.FLAG and not warnings:
            warnings = list(reasons)

        decision = QADecision(
            outcome=outcome,
            reasons=reasons,
            can_deliver=not report.placeholders_unresolved and outcome is not QAOutcome.BLOCK,
            requires_review=outcome is not QAOutcome.PASS,
            issues=issues,
            warnings=warnings,
        )
        log.info(
            "QA decision for %s: %s (deliver=%s, issues=%d)",
            report.session_id, outcome.value, decision.can_deliver, len(issues),
        )
        return decision

    def _check_sections(self, report: ComposedReport, rules: RuleSet) -> list[QAIssue]:
        return check_required_sections(report, rules, self._required_sections)
