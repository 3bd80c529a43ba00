"""Content selection: which alert, building-block, module and static items go where.

Suppressed items stay in the result with a reason so the audit trail shows
what a clinical override removed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from smile_report.models import (
    ContentSelection,
    ContentType,
    DriverState,
    ScenarioSelection,
    ToneProfileId,
)
from smile_report.rules.models import any_condition

if TYPE_CHECKING:
    from smile_report.rules.models import ContentTrigger, RuleSet, SuppressionRule

log = logging.getLogger(__name__)

SECTION_SUPPRESSED = "Section suppressed by clinical override"
BLOCK_SUPPRESSED = "Block suppressed by clinical override"


def select_content(
    state: DriverState,
    scenarios: ScenarioSelection,
    tone: ToneProfileId,
    rules: RuleSet,
) -> list[ContentSelection]:
    """Select every content item for the report, in section order."""
    sel = rules.selection
    active_rules = [r for r in sel.suppression_rules if any_condition(r.conditions, state)]
    suppressed_sections = {s for r in active_rules for s in r.sections}

    selections: list[ContentSelection] = []

    for trigger in sel.alert_triggers:
        # Alerts are never suppressed; they carry the clinical override itself
        selections.extend(_from_trigger(trigger, state, tone, set(), []))

    selections.append(
        ContentSelection(
            content_id=scenarios.primary.scenario_id,
            type=ContentType.SCENARIO,
            target_section=sel.scenario_section,
            tone=tone,
            priority=1,
        )
    )

    for trigger in sel.block_triggers:
        selections.extend(_from_trigger(trigger, state, tone, suppressed_sections, active_rules))

    for candidate in scenarios.candidates:
        if candidate.scenario_id == rules.scoring.fallback_id:
            continue
        for block in sel.scenario_blocks:
            content_id = f"{block.prefix}{candidate.scenario_id}"
            selections.append(
                _make(content_id, ContentType.BUILDING_BLOCK, block.section, tone, block.priority,
                      suppressed_sections, active_rules)
            )

    for trigger in sel.module_triggers:
        selections.extend(_from_trigger(trigger, state, tone, suppressed_sections, []))

    for trigger in sel.static_selections:
        selections.extend(_from_trigger(trigger, state, tone, set(), []))

    selections.sort(key=lambda s: (s.target_section, s.priority))
    suppressed = sum(1 for s in selections if s.suppressed)
    log.info("Selected %d content items (%d suppressed)", len(selections), suppressed)
    return selections


def _from_trigger(
    trigger: ContentTrigger,
    state: DriverState,
    tone: ToneProfileId,
    suppressed_sections: set[int],
    active_rules: list[SuppressionRule],
) -> list[ContentSelection]:
    if not any_condition(trigger.conditions, state):
        return []
    item_tone = trigger.tone_override or tone
    return [
        _make(trigger.content_id, trigger.type, section, item_tone, trigger.priority,
              suppressed_sections, active_rules)
        for section in trigger.sections
    ]


def _make(
    content_id: str,
    content_type: ContentType,
    section: int,
    tone: ToneProfileId,
    priority: int,
    suppressed_sections: set[int],
    active_rules: list[SuppressionRule],
) -> ContentSelection:
    reason: str | None = None
    if section in suppressed_sections:
        reason = SECTION_SUPPRESSED
    elif any(r.suppresses_block(content_id) for r in active_rules):
        reason = BLOCK_SUPPRESSED
    return ContentSelection(
        content_id=content_id,
        type=content_type,
        target_section=section,
        tone=tone,
        priority=priority,
        suppressed=reason is not None,
        suppression_reason=reason,
    )
