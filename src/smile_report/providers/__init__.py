"""LLM provider: LiteLLM client and the generator, verifier and evaluator built on it."""

from __future__ import annotations

from smile_report.providers.llm import LLMEvaluator, LLMGenerator, LLMVerifier, build_evaluator
from smile_report.providers.llm_client import LLMClient

__all__ = ["LLMClient", "LLMEvaluator", "LLMGenerator", "LLMVerifier", "build_evaluator"]
