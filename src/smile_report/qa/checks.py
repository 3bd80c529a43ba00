"""Rule-based QA checks. Each takes the report and rule set and returns issues."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable

from smile_report.engine.tone import banned_phrases_in, tone_for_section
from smile_report.models import ComposedReport, ConfidenceLevel, ContentSelection
from smile_report.qa.models import IssueSeverity, QAIssue, QAOutcome
from smile_report.rules.models import GlobalBannedPhrase, PhraseSeverity

if TYPE_CHECKING:
    from smile_report.rules.models import RuleSet

REQUIRED_SECTIONS = (1, 2, 11)


def check_placeholders(report: ComposedReport, rules: RuleSet) -> list[QAIssue]:
    return [
        QAIssue(
            check_id="unresolved_placeholder",
            severity=IssueSeverity.ERROR,
            outcome=QAOutcome.BLOCK,
            message=f"Unresolved placeholder {{{{{name}}}}}",
        )
        for name in report.placeholders_unresolved
    ]


def check_banned_vocabulary(report: ComposedReport, rules: RuleSet) -> list[QAIssue]:
    issues: list[QAIssue] = []
    for section in report.sections:
        tone = tone_for_section(report.tone, section.number, rules)
        for phrase in banned_phrases_in(section.content, tone, rules):
            issues.append(
                QAIssue(
                    check_id="banned_vocabulary",
                    severity=IssueSeverity.WARNING,
                    outcome=QAOutcome.FLAG,
                    message=f"'{phrase}' is not allowed in tone {tone.value}",
                    section=section.number,
                )
            )
    return issues


def check_global_banned_phrases(report: ComposedReport, rules: RuleSet) -> list[QAIssue]:
    """Tone-independent phrases such as outcome guarantees.

    Every occurrence is reported; critical phrases block delivery.
    """
    issues: list[QAIssue] = []
    for section in report.sections:
        lowered = section.content.lower()
        for entry in rules.qa.global_banned_phrases:
            for _ in re.finditer(rf"\b{re.escape(entry.phrase.lower())}\b", lowered):
                issues.append(_phrase_issue(entry, section.number))
    return issues


def _phrase_issue(entry: GlobalBannedPhrase, section: int) -> QAIssue:
    critical = entry.severity is PhraseSeverity.CRITICAL
    return QAIssue(
        check_id="global_banned_phrase",
        severity=IssueSeverity.ERROR if critical else IssueSeverity.WARNING,
        outcome=QAOutcome.BLOCK if critical else QAOutcome.FLAG,
        message=f"'{entry.phrase}' is not allowed ({entry.rule})",
        section=section,
    )


def check_confidence(report: ComposedReport, rules: RuleSet) -> list[QAIssue]:
    if report.confidence not in (ConfidenceLevel.LOW, ConfidenceLevel.FALLBACK):
        return []
    return [
        QAIssue(
            check_id="low_confidence",
            severity=IssueSeverity.WARNING,
            outcome=QAOutcome.FLAG,
            message=f"Scenario match confidence is {report.confidence.value}",
        )
    ]


def check_required_sections(
    report: ComposedReport,
    rules: RuleSet,
    required: tuple[int, ...] = REQUIRED_SECTIONS,
) -> list[QAIssue]:
    present = set(report.section_numbers)
    return [
        QAIssue(
            check_id="missing_section",
            severity=IssueSeverity.WARNING,
            outcome=QAOutcome.FLAG,
            message=f"Required section {number} is missing",
            section=number,
        )
        for number in required
        if number not in present
    ]


def check_cardinality(
    report: ComposedReport,
    rules: RuleSet,
    selections: Iterable[ContentSelection],
) -> list[QAIssue]:
    """Selections beyond a section's per-type limit, and content selected more than once."""
    active = [s for s in selections if not s.suppressed]
    issues: list[QAIssue] = []

    for number, section in sorted(rules.composition.sections.items()):
        for content_type, limit in section.max_cardinality.items():
            count = sum(1 for s in active if s.target_section == number and s.type is content_type)
            if count > limit:
                issues.append(
                    QAIssue(
                        check_id="cardinality",
                        severity=IssueSeverity.WARNING,
                        outcome=QAOutcome.FLAG,
                        message=f"Section {number} has {count} {content_type.value} items, recommended max is {limit}",
                        section=number,
                    )
                )

    counts: dict[str, int] = {}
    for s in active:
        counts[s.content_id] = counts.get(s.content_id, 0) + 1
    repeatable = rules.qa.repeatable_prefixes
    for content_id, count in counts.items():
        if count > 1 and not content_id.startswith(repeatable):
            issues.append(
                QAIssue(
                    check_id="cardinality",
                    severity=IssueSeverity.WARNING,
                    outcome=QAOutcome.FLAG,
                    message=f"Content block {content_id} appears {count} times",
                )
            )
    return issues


def check_suppression_consistency(
    report: ComposedReport,
    rules: RuleSet,
    selections: Iterable[ContentSelection],
) -> list[QAIssue]:
    """Safety overrides must have removed what they suppress."""
    comp = rules.composition
    present = set(report.section_numbers)
    issues: list[QAIssue] = []

    blocker_active = any(s.content_id == comp.hard_suppression_alert and not s.suppressed for s in selections)
    if blocker_active:
        for number in comp.hard_suppression_sections:
            if number in present:
                issues.append(
                    QAIssue(
                        check_id="suppression_consistency",
                        severity=IssueSeverity.ERROR,
                        outcome=QAOutcome.BLOCK,
                        message=f"Section {number} should be suppressed when {comp.hard_suppression_alert} is active",
                        section=number,
                    )
                )

    for number in sorted(present & set(report.suppressed_sections)):
        issues.append(
            QAIssue(
                check_id="suppression_consistency",
                severity=IssueSeverity.ERROR,
                outcome=QAOutcome.BLOCK,
                message=f"Section {number} is marked as suppressed but has content",
                section=number,
            )
        )
    return issues
