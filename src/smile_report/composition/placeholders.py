"""``{{NAME}}`` placeholder resolution.

Lookup order: intake metadata (through the alias table), answers by question
id, calculated values derived from drivers, then caller-supplied custom
values. A name that none of them supply is left in the text verbatim and
reported; there is no default substitution.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from smile_report.models import DriverState, IntakeAnswers
    from smile_report.rules.models import PlaceholderRules

PLACEHOLDER_PATTERN = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}")


@dataclass
class PlaceholderResult:
    content: str
    resolved: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)


def extract_placeholders(text: str) -> list[str]:
    """Distinct placeholder names in first-seen order."""
    return list(dict.fromkeys(PLACEHOLDER_PATTERN.findall(text)))


def calculated_values(state: DriverState, rules: PlaceholderRules) -> dict[str, str]:
    """Placeholder values looked up from driver values via the calculated table."""
    values: dict[str, str] = {}
    for driver_field, table in rules.calculated.items():
        try:
            current = state.value(driver_field)
        except KeyError:
            continue
        values.update(table.get(str(current), {}))
    return values


class PlaceholderResolver:
    """Resolves placeholders for one report; build a new one per intake."""

    def __init__(
        self,
        intake: IntakeAnswers,
        rules: PlaceholderRules,
        *,
        calculated: Mapping[str, str] | None = None,
        custom: Mapping[str, str] | None = None,
    ) -> None:
        self._intake = intake
        self._rules = rules
        self._calculated = dict(calculated or {})
        self._custom = dict(custom or {})
        self._answers = {a.question_id.upper(): intake.answer_string(a.question_id) for a in intake.answers}

    def lookup(self, name: str) -> str | None:
        key = self._rules.aliases.get(name, name.lower())
        value = self._intake.metadata.get(key)
        if value:
            return value
        value = self._answers.get(name)
        if value:
            return value
        if name in self._calculated:
            return self._calculated[name]
        return self._custom.get(name)

    def resolve(self, text: str) -> PlaceholderResult:
        result = PlaceholderResult(content=text)

        def _replace(match: re.Match[str]) -> str:
            name = match.group(1)
            value = self.lookup(name)
            if value is None:
                if name not in result.unresolved:
                    result.unresolved.append(name)
                return match.group(0)
            result.resolved.append(name)
            return value

        result.content = PLACEHOLDER_PATTERN.sub(_replace, text)
        return result
