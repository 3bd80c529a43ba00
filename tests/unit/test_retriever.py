"""Tests for the keyword-overlap source retriever."""

from __future__ import annotations

import pytest
import yaml

from smile_report.content.models import SourceSnippet
from smile_report.content.protocols import ISourceRetriever
from smile_report.content.retriever import StaticSourceRetriever
from smile_report.exceptions import ContentStoreError


@pytest.fixture
def retriever() -> StaticSourceRetriever:
    return StaticSourceRetriever(
        [
            SourceSnippet(source_id="b", title="Dental implant", text="An implant replaces a missing tooth root."),
            SourceSnippet(source_id="a", title="Bridge", text="A bridge spans a missing tooth."),
            SourceSnippet(source_id="c", title="Whitening", text="Bleaching lightens enamel."),
        ]
    )


def test_satisfies_protocol(retriever):
    assert isinstance(retriever, ISourceRetriever)


@pytest.mark.asyncio
class TestGetRelevantSources:
    async def test_ranked_by_overlap_then_id(self, retriever):
        results = await retriever.get_relevant_sources("missing tooth implant")
        assert [r.source_id for r in results] == ["b", "a"]
        assert results[0].score == 1.0
        assert results[1].score == 0.6667

    async def test_threshold(self, retriever):
        results = await retriever.get_relevant_sources("missing tooth implant", score_threshold=0.9)
        assert [r.source_id for r in results] == ["b"]

    async def test_limit(self, retriever):
        results = await retriever.get_relevant_sources("missing tooth", limit=1)
        assert [r.source_id for r in results] == ["a"]

    async def test_stopword_only_query(self, retriever):
        assert await retriever.get_relevant_sources("the and of") == []


def test_from_file(tmp_path):
    path = tmp_path / "sources.yaml"
    path.write_text(yaml.safe_dump({"sources": [{"source_id": "x", "text": "Implant care."}]}), encoding="utf-8")
    assert StaticSourceRetriever.from_file(path)._snippets[0].source_id == "x"


def test_from_missing_file(tmp_path):
    with pytest.raises(ContentStoreError):
        StaticSourceRetriever.from_file(tmp_path / "missing.yaml")
