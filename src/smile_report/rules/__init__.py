"""Rule tables: tone rules, scoring tables, section composition and content triggers."""

from __future__ import annotations

from smile_report.rules.loader import default_ruleset, load_ruleset, parse_ruleset
from smile_report.rules.models import RuleSet

__all__ = ["RuleSet", "default_ruleset", "load_ruleset", "parse_ruleset"]
