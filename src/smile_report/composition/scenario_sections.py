"""Split markdown scenario content into named subsections."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from smile_report.rules.models import CompositionRules

_FRONT_MATTER = re.compile(r"^---\s*\n.*?\n---\s*\n", re.DOTALL)
_HEADER = re.compile(
    r"^#{1,3}\s*(?:Section\s*\d+[:.])?\s*(.+?)(?:\s*\*\[\d+\s*words\]\*)?\s*$",
    re.MULTILINE | re.IGNORECASE,
)
_WORD_MARKER = re.compile(r"\*\[\d+\s*words\]\*")


def strip_front_matter(text: str) -> str:
    return _FRONT_MATTER.sub("", text, count=1).strip()


def section_key_for(header: str, rules: CompositionRules) -> str | None:
    """First pattern contained in the lowercased header wins."""
    lowered = header.strip().lower()
    for pattern, key in rules.scenario_section_patterns:
        if pattern in lowered:
            return key
    return None


def parse_scenario_sections(text: str, rules: CompositionRules) -> dict[str, str]:
    """Map subsection key → body text.

    Headers that match no pattern are skipped along with their body. Several
    headers mapping to the same key (``Option 1``, ``Option 2``) are joined
    with a blank line.
    """
    body = strip_front_matter(text)
    headers = list(_HEADER.finditer(body))
    sections: dict[str, str] = {}

    for i, match in enumerate(headers):
        key = section_key_for(match.group(1), rules)
        if key is None:
            continue
        end = headers[i + 1].start() if i + 1 < len(headers) else len(body)
        content = _WORD_MARKER.sub("", body[match.end():end]).strip()
        if not content:
            continue
        if key in sections:
            sections[key] = f"{sections[key]}\n\n{content}"
        else:
            sections[key] = content
    return sections
