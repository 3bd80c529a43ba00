"""Keyword-overlap source retriever over an in-memory snippet list."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Iterable

import yaml

from smile_report.content.models import SourceSnippet
from smile_report.exceptions import ContentStoreError

log = logging.getLogger(__name__)

_TOKEN = re.compile(r"[a-z0-9]+")
_STOPWORDS = frozenset({"a", "an", "and", "for", "in", "of", "on", "or", "the", "to", "with"})


def _terms(text: str) -> set[str]:
    return {t for t in _TOKEN.findall(text.lower()) if t not in _STOPWORDS}


class StaticSourceRetriever:
    """Scores each snippet by the share of query terms it contains."""

    def __init__(self, snippets: Iterable[SourceSnippet] = ()) -> None:
        self._snippets = list(snippets)
        self._terms = [_terms(f"{s.title} {s.text}") for s in self._snippets]

    @classmethod
    def from_file(cls, path: Path) -> StaticSourceRetriever:
        """Load a YAML/JSON file with a top-level ``sources`` list."""
        if not path.exists():
            raise ContentStoreError(f"Sources file not found: {path}")
        raw_text = path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw_text) if path.suffix in (".yaml", ".yml") else json.loads(raw_text)
        items = data.get("sources", []) if isinstance(data, dict) else data
        return cls(SourceSnippet(**item) for item in items)

    async def get_relevant_sources(
        self,
        query: str,
        *,
        limit: int = 15,
        score_threshold: float = 0.1,
    ) -> list[SourceSnippet]:
        wanted = _terms(query)
        if not wanted:
            return []
        ranked: list[SourceSnippet] = []
        for snippet, terms in zip(self._snippets, self._terms):
            score = round(len(wanted & terms) / len(wanted), 4)
            if score >= score_threshold:
                ranked.append(snippet.model_copy(update={"score": score}))
        ranked.sort(key=lambda s: (-s.score, s.source_id))
        log.debug("Retrieved %d sources for %r", min(len(ranked), limit), query)
        return ranked[:limit]
