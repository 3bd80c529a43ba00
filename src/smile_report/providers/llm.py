"""LLM-backed generator, verifier and evaluator."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from smile_report.composition.composer import count_words
from smile_report.content.models import SourceSnippet
from smile_report.exceptions import EvaluatorConfigError, JSONParseError
from smile_report.generation.models import GeneratedContent, VerificationResult
from smile_report.models import ContentType, ToneProfileId
from smile_report.providers import prompts
from smile_report.qa.models import DimensionScore, EvaluationContext

if TYPE_CHECKING:
    from smile_report.core.config import EvaluatorConfig, GenerationConfig
    from smile_report.providers.llm_client import LLMClient
    from smile_report.rules.models import RuleSet

log = logging.getLogger(__name__)


def format_sources(sources: list[SourceSnippet]) -> str:
    return "\n\n".join(f"[{s.source_id}] {s.title}\n{s.text}".strip() for s in sources)


def _require_mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise JSONParseError(f"Expected a JSON object for {what}, got {type(data).__name__}")
    return data


def _as_float(data: dict[str, Any], key: str, default: float, what: str) -> float:
    value = data.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise JSONParseError(f"Non-numeric {key} in {what} response: {value!r}") from exc


class LLMGenerator:
    """Drafts content in the gap's tone, with banned words taken from the rule set."""

    def __init__(self, client: LLMClient, rules: RuleSet, config: GenerationConfig) -> None:
        self._client = client
        self._rules = rules
        self._config = config

    async def generate(
        self,
        content_id: str,
        content_type: ContentType,
        language: str,
        tone: ToneProfileId,
        source_material: list[SourceSnippet],
        target_sections: tuple[int, ...],
    ) -> GeneratedContent:
        profile = self._rules.tone_profile(tone)
        prompt = prompts.GENERATION_PROMPT.format(
            content_id=content_id,
            content_type=content_type.value,
            language=language,
            target_sections=", ".join(str(s) for s in target_sections) or "any",
            word_count_target=self._config.word_count_target,
            tone_name=profile.name,
            tone_description=profile.description,
            banned_phrases=", ".join(profile.banned_phrases) or "none",
            source_material=format_sources(source_material),
        )
        data = _require_mapping(
            await self._client.complete_json(prompt, system_prompt=prompts.GENERATION_SYSTEM_PROMPT),
            "generation",
        )
        content = str(data.get("content", ""))
        return GeneratedContent(
            content=content,
            citations=[str(c) for c in data.get("citations", [])],
            word_count=count_words(content),
        )


class LLMVerifier:
    def __init__(self, client: LLMClient) -> None:
        self._client = client

    async def check(
        self,
        content_id: str,
        content: str,
        source_documents: list[SourceSnippet],
        strict_mode: bool = False,
    ) -> VerificationResult:
        prompt = prompts.VERIFICATION_PROMPT.format(
            strictness=prompts.STRICT_MODE if strict_mode else prompts.LENIENT_MODE,
            content_id=content_id,
            content=content,
            source_material=format_sources(source_documents),
        )
        data = _require_mapping(
            await self._client.complete_json(prompt, system_prompt=prompts.VERIFICATION_SYSTEM_PROMPT),
            "verification",
        )
        data["overall_confidence"] = min(max(_as_float(data, "overall_confidence", 0.0, "verification"), 0.0), 1.0)
        for claim in data.get("claims", []):
            if isinstance(claim, dict) and isinstance(claim.get("verdict"), str):
                claim["verdict"] = claim["verdict"].lower()
        try:
            return VerificationResult.model_validate(data)
        except ValidationError as exc:
            raise JSONParseError(f"Malformed verification response: {exc}") from exc


class LLMEvaluator:
    """One completion per report dimension, using the evaluator's own model and key."""

    def __init__(self, client: LLMClient, config: EvaluatorConfig, *, api_key: str) -> None:
        self._client = client
        self._config = config
        self._api_key = api_key
        self.model_name = config.model

    async def evaluate(self, context: EvaluationContext) -> DimensionScore:
        prompt = prompts.EVALUATION_PROMPT.format(
            criteria=prompts.DIMENSION_CRITERIA[context.dimension],
            language=context.language,
            tone=context.tone.value,
            tone_name=context.tone_name,
            scenario_id=context.scenario_id,
            confidence=context.confidence,
            tags=", ".join(context.tags) or "none",
            safety_flags=", ".join(context.safety_flags) or "none",
            total_word_count=context.total_word_count,
            report_text=context.report_text,
        )
        data = _require_mapping(
            await self._client.complete_json(
                prompt,
                system_prompt=prompts.EVALUATION_SYSTEM_PROMPT,
                model=self._config.model,
                temperature=self._config.temperature,
                api_key=self._api_key,
                max_retries=self._config.max_retries,
            ),
            "evaluation",
        )
        return DimensionScore(
            dimension=context.dimension,
            score=_as_float(data, "score", 0.0, "evaluation"),
            confidence=_as_float(data, "confidence", 1.0, "evaluation"),
            feedback=str(data.get("feedback", "")),
            issues=[str(i) for i in data.get("issues", [])],
        )


def build_evaluator(client: LLMClient, config: EvaluatorConfig) -> LLMEvaluator | None:
    """Evaluator for the configured model, or None when evaluation is disabled.

    Raises ``EvaluatorConfigError`` when evaluation is enabled but the API key
    variable named by ``api_key_env`` is unset.
    """
    if not config.enabled:
        return None
    api_key = os.environ.get(config.api_key_env, "")
    if not api_key:
        raise EvaluatorConfigError(
            f"Evaluation is enabled but {config.api_key_env} is not set "
            "(set it or SMILE_EVALUATOR_ENABLED=false)"
        )
    log.info("Report evaluator using %s", config.model)
    return LLMEvaluator(client, config, api_key=api_key)
