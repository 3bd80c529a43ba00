"""Wire pipeline components from ``AppSettings``. Shared by the CLI and the API."""

from __future__ import annotations

import logging
from pathlib import Path

from smile_report.content.memory_store import MemoryContentStore
from smile_report.content.protocols import IContentStore, ISourceRetriever
from smile_report.content.retriever import StaticSourceRetriever
from smile_report.core.config import AppSettings
from smile_report.generation.retry import GenerationRetryLoop
from smile_report.pipeline import ReportPipeline
from smile_report.providers.llm import LLMGenerator, LLMVerifier, build_evaluator
from smile_report.providers.llm_client import LLMClient
from smile_report.qa.evaluator import QualityEvaluator
from smile_report.qa.gate import QAGate
from smile_report.rules.loader import default_ruleset, load_ruleset
from smile_report.rules.models import RuleSet

log = logging.getLogger(__name__)


def load_rules(path: Path | None = None) -> RuleSet:
    return load_ruleset(path) if path is not None else default_ruleset()


def load_store(settings: AppSettings, rules: RuleSet, path: Path | None = None) -> MemoryContentStore:
    content_file = path or settings.content.content_file
    if content_file is None:
        log.warning("No content file configured; starting with an empty content store")
        return MemoryContentStore(
            default_language=settings.content.default_language,
            fallback_chains=rules.tone_fallback_chains,
        )
    return MemoryContentStore.from_file(
        content_file,
        default_language=settings.content.default_language,
        fallback_chains=rules.tone_fallback_chains,
    )


def load_retriever(settings: AppSettings, path: Path | None = None) -> StaticSourceRetriever | None:
    sources_file = path or settings.content.sources_file
    return StaticSourceRetriever.from_file(sources_file) if sources_file is not None else None


def build_pipeline(
    settings: AppSettings,
    *,
    rules: RuleSet | None = None,
    store: IContentStore | None = None,
    retriever: ISourceRetriever | None = None,
) -> ReportPipeline:
    """Assemble a pipeline; gap generation is enabled only when a retriever exists."""
    rules = rules or load_rules(settings.content.rules_file)
    store = store or load_store(settings, rules)
    retriever = retriever or load_retriever(settings)
    client = LLMClient(settings.llm)

    retry_loop = None
    if retriever is not None:
        retry_loop = GenerationRetryLoop(
            LLMGenerator(client, rules, settings.generation),
            LLMVerifier(client),
            retriever,
            store,
            settings.generation,
        )

    evaluator = QualityEvaluator(
        settings.evaluator,
        build_evaluator(client, settings.evaluator),
        rules=rules,
        language=settings.content.default_language,
    )
    return ReportPipeline(
        rules,
        store,
        evaluator,
        retry_loop=retry_loop,
        gate=QAGate(rules),
        config=settings.generation,
        default_language=settings.content.default_language,
    )
