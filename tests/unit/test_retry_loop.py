"""Tests for the generation-retry loop using fake generator/verifier/retriever."""

from __future__ import annotations

import asyncio

import pytest

from smile_report.content.memory_store import MemoryContentStore
from smile_report.core.config import GenerationConfig
from smile_report.exceptions import RetryableError
from smile_report.generation.models import Claim, ClaimVerdict, GapStatus
from smile_report.generation.retry import CANCELLED, NO_SOURCES, GenerationRetryLoop
from smile_report.models import ContentGap, PhaseStatus, ToneProfileId
from smile_report.providers.llm import LLMVerifier
from tests.fakes.fake_generation import FakeGenerator, FakeRetriever, FakeVerifier
from tests.fakes.fake_llm import FakeLLMClient

TP04 = ToneProfileId.STABILITY_FRAME


def _gap(content_id: str = "S05") -> ContentGap:
    return ContentGap(
        content_id=content_id,
        scenario_id=content_id,
        name="Single implant",
        description="Replacing one missing tooth",
        sections=(5, 6),
        language="en",
        tone=TP04,
    )


def _loop(
    *,
    generator: FakeGenerator | None = None,
    verifier: FakeVerifier | None = None,
    retriever: FakeRetriever | None = None,
    store: MemoryContentStore | None = None,
    **config,
) -> GenerationRetryLoop:
    return GenerationRetryLoop(
        generator or FakeGenerator(),
        verifier or FakeVerifier(),
        retriever or FakeRetriever(),
        store or MemoryContentStore(),
        GenerationConfig(**config),
    )


class _FailsAfterFirst(FakeGenerator):
    async def generate(self, content_id, *args, **kwargs):
        if self.calls:
            self.calls.append({"content_id": content_id})
            raise RetryableError("boom")
        return await super().generate(content_id, *args, **kwargs)


async def _variant(store: MemoryContentStore, content_id: str = "S05"):
    doc = await store.get_manifest(content_id)
    assert doc is not None
    return doc.variant("en", TP04)


@pytest.mark.asyncio
class TestResolveGap:
    async def test_passes_on_first_attempt(self):
        store = MemoryContentStore()
        generator = FakeGenerator()
        outcome = await _loop(generator=generator, store=store).resolve_gap(_gap())

        assert outcome.status is GapStatus.PASSED
        assert outcome.attempts == 1
        assert outcome.confidence == 0.9
        assert outcome.states == ["pending", "generating", "verifying", "passed", "done"]
        assert len(generator.calls) == 1
        assert generator.calls[0]["target_sections"] == (5, 6)
        assert await store.get("S05", TP04, "en") == "Calm, factual overview for S05."

        variant = await _variant(store)
        assert variant.generated_by == "llm"
        assert variant.needs_review is False
        assert variant.citations == ["SRC-1"]

    async def test_retries_until_threshold_met(self):
        generator = FakeGenerator()
        verifier = FakeVerifier([0.4, 0.85])
        outcome = await _loop(generator=generator, verifier=verifier, max_fact_check_attempts=3).resolve_gap(_gap())

        assert outcome.status is GapStatus.PASSED
        assert outcome.attempts == 2
        assert len(generator.calls) == 2
        assert "retrying" in outcome.states

    async def test_budget_exhausted_persists_with_warning(self):
        store = MemoryContentStore()
        generator = FakeGenerator()
        outcome = await _loop(
            generator=generator,
            verifier=FakeVerifier(0.4),
            store=store,
            max_fact_check_attempts=3,
        ).resolve_gap(_gap())

        assert len(generator.calls) == 3
        assert outcome.status is GapStatus.PERSISTED_WITH_WARNING
        assert outcome.persisted
        assert outcome.confidence == 0.4
        assert outcome.states[-2:] == ["failed_final", "done"]

        variant = await _variant(store)
        assert variant.needs_review is True
        assert variant.fact_check_confidence == 0.4

    async def test_threshold_is_inclusive(self):
        outcome = await _loop(verifier=FakeVerifier(0.7), confidence_threshold=0.7).resolve_gap(_gap())
        assert outcome.status is GapStatus.PASSED

    async def test_no_sources_fails_without_generating(self):
        store = MemoryContentStore()
        generator = FakeGenerator()
        outcome = await _loop(generator=generator, retriever=FakeRetriever([]), store=store).resolve_gap(_gap())

        assert outcome.status is GapStatus.FAILED
        assert outcome.reason == NO_SOURCES
        assert not outcome.persisted
        assert generator.calls == []
        assert await store.get("S05", TP04, "en") is None

    async def test_retriever_receives_configured_limits(self):
        retriever = FakeRetriever()
        await _loop(retriever=retriever, source_limit=5, source_score_threshold=0.25).resolve_gap(_gap())
        call = retriever.calls[0]
        assert call["limit"] == 5
        assert call["score_threshold"] == 0.25
        assert "Single implant" in call["query"]

    async def test_llm_error_counts_as_failed_attempt(self):
        generator = FakeGenerator(errors=[RetryableError("rate limited")])
        outcome = await _loop(generator=generator).resolve_gap(_gap())

        assert outcome.status is GapStatus.PASSED
        assert outcome.attempts == 2
        assert outcome.states[:3] == ["pending", "generating", "retrying"]

    async def test_every_attempt_errors(self):
        store = MemoryContentStore()
        generator = FakeGenerator(errors=[RetryableError("a"), RetryableError("b")])
        outcome = await _loop(generator=generator, store=store).resolve_gap(_gap())

        assert outcome.status is GapStatus.FAILED
        assert outcome.reason == "generation failed on every attempt"
        assert outcome.attempts == 2
        assert await store.get_manifest("S05") is None

    async def test_final_attempt_error_keeps_earlier_draft(self):
        store = MemoryContentStore()
        outcome = await _loop(generator=_FailsAfterFirst(), verifier=FakeVerifier(0.3), store=store).resolve_gap(_gap())

        assert outcome.status is GapStatus.PERSISTED_WITH_WARNING
        assert outcome.confidence == 0.0
        assert (await _variant(store)).content == "Calm, factual overview for S05."

    async def test_unparseable_verifier_reply_counts_as_failed_attempt(self):
        client = FakeLLMClient({"overall_confidence": None})
        outcomes = await _loop(verifier=LLMVerifier(client)).resolve_gaps([_gap("S05"), _gap("S06")])

        assert [o.status for o in outcomes] == [GapStatus.PERSISTED_WITH_WARNING] * 2
        assert all(o.confidence == 0.0 and o.attempts == 2 for o in outcomes)
        assert len(client.calls) == 4

    async def test_blank_content_is_rejected(self):
        outcome = await _loop(generator=FakeGenerator(content="   "), max_fact_check_attempts=1).resolve_gap(_gap())
        assert outcome.status is GapStatus.FAILED

    async def test_generator_timeout(self):
        generator = FakeGenerator(delay=0.5)
        outcome = await _loop(generator=generator, call_timeout=0.01, max_fact_check_attempts=1).resolve_gap(_gap())

        assert outcome.status is GapStatus.FAILED
        assert len(generator.calls) == 1

    async def test_unverified_claims_become_issues(self):
        claims = [
            Claim(text="Implants last forever.", verdict=ClaimVerdict.UNSUPPORTED),
            Claim(text="Implants replace roots.", verdict=ClaimVerdict.VERIFIED),
            Claim(text="Bridges need no preparation.", verdict=ClaimVerdict.CONTRADICTED),
        ]
        outcome = await _loop(verifier=FakeVerifier(0.9, claims=claims)).resolve_gap(_gap())

        assert [i.claim for i in outcome.issues] == ["Implants last forever.", "Bridges need no preparation."]
        assert outcome.issues[0].severity == "medium"
        assert outcome.issues[0].suggestion == "Consider adding source citation"
        assert outcome.issues[1].severity == "high"


@pytest.mark.asyncio
class TestResolveGaps:
    async def test_empty(self):
        assert await _loop().resolve_gaps([]) == []

    async def test_order_preserved_under_concurrency(self):
        gaps = [_gap(cid) for cid in ("S05", "S06", "S07", "S08")]
        outcomes = await _loop(max_concurrent_gaps=2).resolve_gaps(gaps)
        assert [o.gap.content_id for o in outcomes] == ["S05", "S06", "S07", "S08"]
        assert all(o.status is GapStatus.PASSED for o in outcomes)

    async def test_cancel_stops_new_gaps(self):
        generator = FakeGenerator()
        loop = _loop(generator=generator)
        loop.cancel()
        outcomes = await loop.resolve_gaps([_gap("S05"), _gap("S06")])

        assert loop.cancelled
        assert all(o.status is GapStatus.FAILED and o.reason == CANCELLED for o in outcomes)
        assert generator.calls == []

    async def test_progress_events(self):
        events = []
        await _loop().resolve_gaps([_gap()], on_progress=events.append)

        assert events
        assert {e.phase for e in events} == {6}
        assert {e.phase_name for e in events} == {"content_generation"}
        assert events[-1].status is PhaseStatus.COMPLETED
        assert events[-1].metrics["state"] == "done"
        assert all(e.status is PhaseStatus.IN_PROGRESS for e in events[:-1])

    async def test_failed_gap_reports_error_status(self):
        events = []
        await _loop(retriever=FakeRetriever([])).resolve_gaps([_gap()], on_progress=events.append)
        assert events[-1].status is PhaseStatus.ERROR
        assert events[-1].metrics["reason"] == NO_SOURCES

    async def test_concurrent_calls_keep_their_own_progress(self):
        loop = _loop(generator=FakeGenerator(delay=0.01))
        events_a, events_b = [], []

        await asyncio.gather(
            loop.resolve_gaps([_gap("S05"), _gap("S06")], on_progress=events_a.append),
            loop.resolve_gaps([_gap("S07")], on_progress=events_b.append),
        )

        assert {e.metrics["content_id"] for e in events_a} == {"S05", "S06"}
        assert {e.metrics["content_id"] for e in events_b} == {"S07"}
        assert sum(1 for e in events_a if e.status is PhaseStatus.COMPLETED) == 2
