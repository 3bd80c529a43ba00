"""Report composition: ordered per-section assembly from the content store."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Iterable, Mapping

from smile_report.composition.placeholders import PlaceholderResolver, calculated_values
from smile_report.composition.scenario_sections import parse_scenario_sections
from smile_report.engine.tone import tone_for_section
from smile_report.models import (
    ComposedReport,
    ConfidenceLevel,
    ContentSelection,
    ContentType,
    DriverState,
    IntakeAnswers,
    ReportSection,
    ScenarioSelection,
    ToneProfileId,
)

if TYPE_CHECKING:
    from smile_report.content.protocols import IContentStore
    from smile_report.rules.models import RuleSet, SectionRule

log = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")


def count_words(text: str) -> int:
    return len(_PUNCTUATION.sub("", text).split())


class _Assembly:
    """Accumulates parts, source ids and placeholder results for one section."""

    def __init__(self, resolver: PlaceholderResolver) -> None:
        self._resolver = resolver
        self.parts: list[str] = []
        self.sources: list[str] = []
        self.resolved = 0
        self.unresolved: list[str] = []

    def add(self, text: str, source_id: str) -> None:
        result = self._resolver.resolve(text)
        if not result.content.strip():
            return
        self.parts.append(result.content.strip())
        self.sources.append(source_id)
        self.resolved += len(result.resolved)
        self.unresolved.extend(result.unresolved)


class ReportComposer:
    """Assembles a ``ComposedReport`` section by section.

    Each section follows its rule's source order (static, scenario, block
    types). Content comes from the store in the section's tone; the primary
    scenario's markdown supplies named subsections.
    """

    def __init__(self, store: IContentStore, rules: RuleSet, *, language: str = "en") -> None:
        self._store = store
        self._rules = rules
        self._language = language

    async def compose(
        self,
        intake: IntakeAnswers,
        driver_state: DriverState,
        scenario_selection: ScenarioSelection,
        content_selections: Iterable[ContentSelection],
        tone: ToneProfileId,
        scenario_text: str | None = None,
        *,
        custom_values: Mapping[str, str] | None = None,
        fact_check_score: float | None = None,
        fact_check_passed: bool | None = None,
        issues: Iterable[str] = (),
    ) -> ComposedReport:
        comp = self._rules.composition
        selections = list(content_selections)
        by_section: dict[int, list[ContentSelection]] = {}
        for sel in selections:
            by_section.setdefault(sel.target_section, []).append(sel)

        hard_suppressed = any(
            s.content_id == comp.hard_suppression_alert and not s.suppressed for s in selections
        )
        scenario_parts = parse_scenario_sections(scenario_text, comp) if scenario_text else {}
        resolver = PlaceholderResolver(
            intake,
            self._rules.placeholders,
            calculated=calculated_values(driver_state, self._rules.placeholders),
            custom=custom_values,
        )

        sections: list[ReportSection] = []
        suppressed_sections: list[int] = []
        resolved = 0
        unresolved: list[str] = []

        for number in sorted(comp.sections):
            rule = comp.sections[number]
            if hard_suppressed and number in comp.hard_suppression_sections:
                suppressed_sections.append(number)
                continue

            section_sels = by_section.get(number, [])
            if section_sels and all(s.suppressed for s in section_sels):
                suppressed_sections.append(number)
                continue

            active = sorted((s for s in section_sels if not s.suppressed), key=lambda s: s.priority)
            assembly = await self._assemble(
                rule,
                active,
                tone_for_section(tone, number, self._rules),
                scenario_parts,
                resolver,
            )
            if not assembly.parts:
                continue

            if number in comp.hedge_sections and scenario_selection.confidence is not ConfidenceLevel.HIGH:
                phrases = comp.confidence_phrases.get(scenario_selection.confidence, ())
                if phrases:
                    assembly.parts.insert(0, phrases[0])

            content = "\n\n".join(assembly.parts)
            sections.append(
                ReportSection(
                    number=number,
                    name=rule.name,
                    content=content,
                    sources=tuple(assembly.sources),
                    word_count=count_words(content),
                )
            )
            resolved += assembly.resolved
            unresolved.extend(assembly.unresolved)

        unique_unresolved = tuple(dict.fromkeys(unresolved))
        if unique_unresolved:
            log.warning("Unresolved placeholders in %s: %s", intake.session_id, ", ".join(unique_unresolved))

        report = ComposedReport(
            session_id=intake.session_id,
            sections=tuple(sections),
            tone=tone,
            scenario_id=scenario_selection.primary.scenario_id,
            scenario_ids=tuple(scenario_selection.scenario_ids),
            confidence=scenario_selection.confidence,
            fact_check_score=fact_check_score,
            fact_check_passed=fact_check_passed,
            issues=tuple(issues),
            placeholders_resolved=resolved,
            placeholders_unresolved=unique_unresolved,
            suppressed_sections=tuple(suppressed_sections),
            total_word_count=sum(s.word_count for s in sections),
        )
        log.info(
            "Composed report %s: %d sections, %d words, suppressed=%s",
            intake.session_id,
            len(sections),
            report.total_word_count,
            list(report.suppressed_sections),
        )
        return report

    async def _assemble(
        self,
        rule: SectionRule,
        selections: list[ContentSelection],
        tone: ToneProfileId,
        scenario_parts: dict[str, str],
        resolver: PlaceholderResolver,
    ) -> _Assembly:
        comp = self._rules.composition
        assembly = _Assembly(resolver)
        scenario_key = next((k for k in rule.scenario_keys if k in scenario_parts), None)

        for source_type in rule.order:
            if source_type is ContentType.STATIC:
                content_id = comp.static_sources.get(rule.number)
                if content_id is None:
                    continue
                text = await self._store.get(content_id, tone, self._language)
                text = text or comp.static_fallbacks.get(content_id)
                if text:
                    assembly.add(text, f"STATIC_{rule.number}")
                continue

            if source_type is ContentType.SCENARIO:
                if scenario_key is not None:
                    assembly.add(scenario_parts[scenario_key], f"SCENARIO:{scenario_key}")
                continue

            pre_empted_by = comp.block_precedence.get(source_type)
            if pre_empted_by is ContentType.SCENARIO and scenario_key is not None:
                continue

            limit = rule.max_cardinality.get(source_type)
            if limit is None and source_type is ContentType.MODULE:
                limit = comp.max_modules_per_section
            typed = [s for s in selections if s.type is source_type]
            for sel in typed[:limit]:
                text = await self._store.get(sel.content_id, sel.tone, self._language)
                if text:
                    assembly.add(text, sel.content_id)
                else:
                    log.debug("No content for %s (%s) in section %d", sel.content_id, sel.tone.value, rule.number)
        return assembly
