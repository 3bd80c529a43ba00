"""Tests for the in-memory content store."""

from __future__ import annotations

import json

import pytest
import yaml

from smile_report.content.memory_store import MemoryContentStore
from smile_report.content.models import ContentVariant
from smile_report.content.protocols import IContentStore
from smile_report.exceptions import ContentStoreError
from smile_report.models import ContentType, ToneProfileId
from tests.fakes.fake_content import document

TP01 = ToneProfileId.NEUTRAL_INFORMATIVE
TP02 = ToneProfileId.EMPATHIC_NEUTRAL
TP04 = ToneProfileId.STABILITY_FRAME


@pytest.fixture
def store(rules) -> MemoryContentStore:
    doc = document("S01", "Neutral English.", TP01)
    doc.variants["nl"] = {TP02: ContentVariant(content="Empathisch Nederlands.")}
    return MemoryContentStore(
        [doc, document("TM_X", "Module.", TP04)],
        fallback_chains=rules.tone_fallback_chains,
    )


def test_satisfies_protocol(store):
    assert isinstance(store, IContentStore)


@pytest.mark.asyncio
class TestGet:
    async def test_exact_variant(self, store):
        assert await store.get("TM_X", TP04, "en") == "Module."

    async def test_tone_fallback_chain(self, store):
        assert await store.get("S01", TP04, "en") == "Neutral English."

    async def test_requested_language_walked_first(self, store):
        assert await store.get("S01", TP04, "nl") == "Empathisch Nederlands."

    async def test_default_language_fallback(self, store):
        assert await store.get("S01", TP01, "nl") == "Neutral English."

    async def test_missing_everywhere(self, store):
        assert await store.get("S99", TP01, "en") is None
        assert await store.get("TM_X", TP01, "en") is None


@pytest.mark.asyncio
class TestCheckAvailability:
    async def test_exact_variants_only(self, store):
        result = await store.check_availability(["S01", "S02"], "en", TP04)
        assert result.total_required == 2
        assert result.available == []
        assert [g.content_id for g in result.missing] == ["S01", "S02"]

    async def test_gap_metadata(self, store):
        result = await store.check_availability(["S01", "TM_NEW"], "en", TP01)
        assert result.available == ["S01"]
        gap = result.missing[0]
        assert gap.content_type is ContentType.MODULE
        assert gap.language == "en"
        assert gap.tone is TP01


@pytest.mark.asyncio
class TestUpsert:
    async def test_creates_variant_and_document(self, store):
        await store.upsert_variant("S05", "en", TP04, ContentVariant(content="Generated.", generated_by="llm"))
        assert await store.exists("S05")
        assert await store.get("S05", TP04, "en") == "Generated."
        manifest = await store.get_manifest("S05")
        assert manifest.type is ContentType.SCENARIO

    async def test_never_removes_other_variants(self, store):
        await store.upsert_variant("S01", "en", TP04, ContentVariant(content="Calm."))
        assert await store.get("S01", TP01, "en") == "Neutral English."
        assert await store.get("S01", TP04, "en") == "Calm."

    async def test_list_by_type(self, store):
        assert await store.list_by_type(ContentType.MODULE) == ["TM_X"]


class TestFiles:
    def test_from_yaml_with_string_variants(self, tmp_path):
        path = tmp_path / "content.yaml"
        path.write_text(
            yaml.safe_dump(
                {"content": [{"content_id": "S01", "name": "Single", "variants": {"en": {"TP-01": "Plain text here."}}}]}
            ),
            encoding="utf-8",
        )
        store = MemoryContentStore.from_file(path)
        doc = store._docs["S01"]
        assert doc.variant("en", TP01).word_count == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(ContentStoreError):
            MemoryContentStore.from_file(tmp_path / "nope.yaml")

    @pytest.mark.asyncio
    async def test_save_keeps_generated_variants(self, tmp_path, store):
        await store.upsert_variant("S07", "en", TP01, ContentVariant(content="New.", needs_review=True))
        path = tmp_path / "out.json"
        store.save(path)

        data = json.loads(path.read_text(encoding="utf-8"))
        saved = {d["content_id"]: d for d in data["content"]}
        assert saved["S07"]["variants"]["en"]["TP-01"]["needs_review"] is True

        reloaded = MemoryContentStore.from_file(path)
        assert await reloaded.get("S07", TP01, "en") == "New."
