"""In-memory content store: dict-backed, loadable from a YAML or JSON file."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from smile_report.content.models import ContentDocument, ContentVariant, content_type_for
from smile_report.exceptions import ContentStoreError
from smile_report.models import ContentCheckResult, ContentGap, ContentType, ToneProfileId

log = logging.getLogger(__name__)


class MemoryContentStore:
    """Stores content documents in a plain dict.

    Lookups walk the tone fallback chain inside the requested language first,
    then repeat the walk in the default language.
    """

    def __init__(
        self,
        documents: Iterable[ContentDocument] = (),
        *,
        default_language: str = "en",
        fallback_chains: Mapping[ToneProfileId, tuple[ToneProfileId, ...]] | None = None,
    ) -> None:
        self._docs: dict[str, ContentDocument] = {d.content_id: d for d in documents}
        self._default_language = default_language
        self._fallback_chains = dict(fallback_chains or {})
        self._lock = asyncio.Lock()

    @classmethod
    def from_file(
        cls,
        path: Path,
        *,
        default_language: str = "en",
        fallback_chains: Mapping[ToneProfileId, tuple[ToneProfileId, ...]] | None = None,
    ) -> MemoryContentStore:
        """Load documents from a YAML/JSON file with a top-level ``content`` list."""
        if not path.exists():
            raise ContentStoreError(f"Content file not found: {path}")
        raw_text = path.read_text(encoding="utf-8")
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(raw_text) or {}
        else:
            data = json.loads(raw_text)
        items = data.get("content", []) if isinstance(data, dict) else data
        docs = [_parse_document(item) for item in items]
        log.info("Loaded %d content documents from %s", len(docs), path)
        return cls(docs, default_language=default_language, fallback_chains=fallback_chains)

    def save(self, path: Path) -> None:
        """Write all documents (including generated variants) back to disk."""
        payload = {"content": [d.model_dump(mode="json") for d in self._docs.values()]}
        if path.suffix in (".yaml", ".yml"):
            text = yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
        else:
            text = json.dumps(payload, indent=2, ensure_ascii=False)
        path.write_text(text, encoding="utf-8")

    # ── IContentStore ───────────────────────────────────────────────

    async def get(self, content_id: str, tone: ToneProfileId, language: str) -> str | None:
        doc = self._docs.get(content_id)
        if doc is None:
            return None
        for lang in self._language_chain(language):
            for candidate in self._tone_chain(tone):
                variant = doc.variant(lang, candidate)
                if variant is not None and variant.content:
                    if (lang, candidate) != (language, tone):
                        log.debug(
                            "Content %s served from fallback %s/%s (asked %s/%s)",
                            content_id, lang, candidate.value, language, tone.value,
                        )
                    return variant.content
        return None

    async def get_manifest(self, content_id: str) -> ContentDocument | None:
        return self._docs.get(content_id)

    async def exists(self, content_id: str) -> bool:
        return content_id in self._docs

    async def list_by_type(self, content_type: ContentType) -> list[str]:
        return sorted(d.content_id for d in self._docs.values() if d.type == content_type)

    async def check_availability(
        self,
        scenario_ids: list[str],
        language: str,
        tone: ToneProfileId,
    ) -> ContentCheckResult:
        available: list[str] = []
        missing: list[ContentGap] = []
        for content_id in scenario_ids:
            doc = self._docs.get(content_id)
            variant = doc.variant(language, tone) if doc is not None else None
            if variant is not None and variant.content:
                available.append(content_id)
                continue
            missing.append(
                ContentGap(
                    content_id=content_id,
                    scenario_id=content_id,
                    content_type=doc.type if doc is not None else content_type_for(content_id),
                    name=doc.name if doc is not None and doc.name else content_id,
                    description=doc.description if doc is not None else "",
                    sections=tuple(doc.target_sections) if doc is not None else (),
                    language=language,
                    tone=tone,
                )
            )
        return ContentCheckResult(total_required=len(scenario_ids), available=available, missing=missing)

    async def upsert_variant(
        self,
        content_id: str,
        language: str,
        tone: ToneProfileId,
        variant: ContentVariant,
    ) -> None:
        async with self._lock:
            doc = self._docs.get(content_id)
            if doc is None:
                doc = ContentDocument(content_id=content_id, type=content_type_for(content_id), name=content_id)
                self._docs[content_id] = doc
            doc.variants.setdefault(language, {})[tone] = variant
        log.debug("Upserted %s/%s/%s", content_id, language, tone.value)

    # ── Internal ────────────────────────────────────────────────────

    def _tone_chain(self, tone: ToneProfileId) -> list[ToneProfileId]:
        chain = [tone]
        for fallback in self._fallback_chains.get(tone, ()):
            if fallback not in chain:
                chain.append(fallback)
        return chain

    def _language_chain(self, language: str) -> list[str]:
        if language == self._default_language:
            return [language]
        return [language, self._default_language]


def _parse_document(item: dict[str, Any]) -> ContentDocument:
    """Accept ``variants[lang][tone]`` as either a string or a variant mapping."""
    variants: dict[str, dict[ToneProfileId, ContentVariant]] = {}
    for lang, by_tone in (item.get("variants") or {}).items():
        variants[lang] = {}
        for tone, value in by_tone.items():
            if isinstance(value, str):
                value = {"content": value, "word_count": len(value.split())}
            variants[lang][ToneProfileId(tone)] = ContentVariant(**value)
    content_id = item["content_id"]
    return ContentDocument(
        content_id=content_id,
        type=ContentType(item["type"]) if "type" in item else content_type_for(content_id),
        name=item.get("name", ""),
        description=item.get("description", ""),
        target_sections=list(item.get("target_sections", [])),
        variants=variants,
    )
