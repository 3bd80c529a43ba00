"""Tests for the LLM-backed generator, verifier and evaluator adapters."""

from __future__ import annotations

import pytest

from smile_report.content.models import SourceSnippet
from smile_report.core.config import EvaluatorConfig, GenerationConfig
from smile_report.exceptions import EvaluatorConfigError, JSONParseError
from smile_report.generation.models import ClaimVerdict
from smile_report.generation.protocols import IGenerator, IVerifier
from smile_report.models import ContentType, ToneProfileId
from smile_report.providers.llm import (
    LLMEvaluator,
    LLMGenerator,
    LLMVerifier,
    build_evaluator,
    format_sources,
)
from smile_report.qa.models import EvaluationContext
from smile_report.qa.protocols import IEvaluator
from tests.fakes.fake_llm import FakeLLMClient

TP04 = ToneProfileId.STABILITY_FRAME

SOURCES = [
    SourceSnippet(source_id="SRC-1", title="Implants", text="An implant replaces the root.", score=0.9),
    SourceSnippet(source_id="SRC-2", text="Bridges rest on neighbouring teeth.", score=0.5),
]


def test_format_sources():
    text = format_sources(SOURCES)
    assert text.startswith("[SRC-1] Implants\nAn implant replaces the root.")
    assert "[SRC-2] \nBridges" in text


class TestLLMGenerator:
    @pytest.mark.asyncio
    async def test_prompt_carries_tone_and_banned_words(self, rules):
        client = FakeLLMClient({"content": "A calm overview of implants.", "citations": ["SRC-1"]})
        generator = LLMGenerator(client, rules, GenerationConfig(word_count_target=250))
        assert isinstance(generator, IGenerator)

        result = await generator.generate("S05", ContentType.SCENARIO, "en", TP04, SOURCES, (5, 6))

        assert result.content == "A calm overview of implants."
        assert result.citations == ["SRC-1"]
        assert result.word_count == 5
        prompt = client.calls[0]["prompt"]
        assert "Stability-Frame" in prompt
        assert "surgery" in prompt
        assert "5, 6" in prompt
        assert "250" in prompt
        assert "[SRC-2]" in prompt

    @pytest.mark.asyncio
    async def test_non_object_response(self, rules):
        generator = LLMGenerator(FakeLLMClient(["not", "an", "object"]), rules, GenerationConfig())
        with pytest.raises(JSONParseError):
            await generator.generate("S05", ContentType.SCENARIO, "en", TP04, SOURCES, ())


class TestLLMVerifier:
    @pytest.mark.asyncio
    async def test_normalises_response(self):
        client = FakeLLMClient(
            {
                "overall_confidence": 1.4,
                "claims": [{"text": "Implants last forever.", "verdict": "UNSUPPORTED"}],
            }
        )
        verifier = LLMVerifier(client)
        assert isinstance(verifier, IVerifier)

        result = await verifier.check("S05", "Implants last forever.", SOURCES)

        assert result.overall_confidence == 1.0
        assert result.claims[0].verdict is ClaimVerdict.UNSUPPORTED
        assert "Paraphrases count as supported" in client.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_strict_mode_prompt(self):
        client = FakeLLMClient({"overall_confidence": 0.8})
        await LLMVerifier(client).check("S05", "text", SOURCES, strict_mode=True)
        assert "Strict mode" in client.calls[0]["prompt"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("confidence", [None, "high"])
    async def test_non_numeric_confidence(self, confidence):
        client = FakeLLMClient({"overall_confidence": confidence})
        with pytest.raises(JSONParseError, match="overall_confidence"):
            await LLMVerifier(client).check("S05", "text", SOURCES)

    @pytest.mark.asyncio
    async def test_malformed_claims(self):
        client = FakeLLMClient({"overall_confidence": 0.8, "claims": [{"verdict": "maybe"}]})
        with pytest.raises(JSONParseError):
            await LLMVerifier(client).check("S05", "text", SOURCES)


class TestLLMEvaluator:
    @pytest.mark.asyncio
    async def test_uses_evaluator_model_and_key(self):
        client = FakeLLMClient({"score": 8, "confidence": 0.7, "feedback": "Clear.", "issues": ["minor"]})
        config = EvaluatorConfig(model="anthropic/claude-sonnet-4-20250514", temperature=0.1, max_retries=1)
        evaluator = LLMEvaluator(client, config, api_key="eval-key")
        assert isinstance(evaluator, IEvaluator)

        context = EvaluationContext(
            dimension="personalization",
            session_id="s",
            tone=TP04,
            scenario_id="S02",
            report_text="## Personal Summary (Section 2)\nAnna, ...",
        )
        score = await evaluator.evaluate(context)

        assert score.dimension == "personalization"
        assert score.score == 8.0
        assert score.issues == ["minor"]
        call = client.calls[0]
        assert call["model"] == "anthropic/claude-sonnet-4-20250514"
        assert call["api_key"] == "eval-key"
        assert call["temperature"] == 0.1
        assert call["max_retries"] == 1
        assert "PERSONALIZATION" in call["prompt"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, field",
        [({"score": None}, "score"), ({"score": 7, "confidence": None}, "confidence"), ({"score": "n/a"}, "score")],
    )
    async def test_non_numeric_fields(self, payload, field):
        evaluator = LLMEvaluator(FakeLLMClient(payload), EvaluatorConfig(), api_key="k")
        context = EvaluationContext(
            dimension="quality", session_id="s", tone=TP04, scenario_id="S02", report_text="## Summary"
        )
        with pytest.raises(JSONParseError, match=field):
            await evaluator.evaluate(context)


class TestBuildEvaluator:
    def test_disabled(self):
        assert build_evaluator(FakeLLMClient(), EvaluatorConfig(enabled=False)) is None

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("SMILE_TEST_EVAL_KEY", raising=False)
        with pytest.raises(EvaluatorConfigError, match="SMILE_TEST_EVAL_KEY"):
            build_evaluator(FakeLLMClient(), EvaluatorConfig(api_key_env="SMILE_TEST_EVAL_KEY"))

    def test_key_present(self, monkeypatch):
        monkeypatch.setenv("SMILE_TEST_EVAL_KEY", "sk-test")
        evaluator = build_evaluator(FakeLLMClient(), EvaluatorConfig(api_key_env="SMILE_TEST_EVAL_KEY"))
        assert isinstance(evaluator, LLMEvaluator)
        assert evaluator.model_name == "openai/gpt-4o-mini"
