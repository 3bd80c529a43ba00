"""Nested pydantic-settings configuration for the application.

Each concern owns a sub-config with its own env prefix, so
``AppSettings().generation.confidence_threshold`` can be overridden with
``SMILE_GENERATION_CONFIDENCE_THRESHOLD=0.8``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class LLMConfig(BaseSettings):
    """LLM backend configuration used by the generator and verifier.

    Env vars use ``SMILE_LLM_`` prefix::

        export SMILE_LLM_MODEL=anthropic/claude-sonnet-4-20250514
        export SMILE_LLM_API_KEY=sk-...
    """

    model_config = {"env_prefix": "SMILE_LLM_"}

    model: str = "openai/gpt-4o-mini"
    base_url: str | None = None
    api_key: str = "no-key"
    temperature: float = 0.0
    timeout: float = 120.0
    max_retries: int = Field(default=3, ge=1)
    retry_max_delay: float = 30.0
    retry_jitter_factor: float = 0.5


class GenerationConfig(BaseSettings):
    """Generation-retry loop configuration.

    Env vars use ``SMILE_GENERATION_`` prefix.
    """

    model_config = {"env_prefix": "SMILE_GENERATION_"}

    max_fact_check_attempts: int = Field(default=2, ge=1)
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    call_timeout: float = Field(default=90.0, gt=0.0)
    max_concurrent_gaps: int = Field(default=4, ge=1)
    source_limit: int = Field(default=15, ge=1)
    source_score_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    word_count_target: int = 300
    fail_on_missing_content: bool = False


class EvaluatorThresholds(BaseModel):
    """Score thresholds on the 1-10 scale."""

    block_below: float = 4.0
    flag_below: float = 7.0
    dimension_block_below: float = 3.0
    dimension_flag_below: float = 5.0


class EvaluatorWeights(BaseModel):
    """Per-dimension weights for the overall score."""

    quality: float = 0.3
    clinical_accuracy: float = 0.4
    personalization: float = 0.3


class EvaluatorConfig(BaseSettings):
    """Quality evaluator configuration.

    Env vars use ``SMILE_EVALUATOR_`` prefix. Nested tables accept JSON::

        export SMILE_EVALUATOR_SAMPLING_RATE=0.25
        export SMILE_EVALUATOR_THRESHOLDS='{"flag_below": 6.5}'
    """

    model_config = {"env_prefix": "SMILE_EVALUATOR_"}

    enabled: bool = True
    model: str = "openai/gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY"
    timeout: float = Field(default=60.0, gt=0.0)
    max_retries: int = Field(default=2, ge=1)
    temperature: float = 0.0
    thresholds: EvaluatorThresholds = EvaluatorThresholds()
    weights: EvaluatorWeights = EvaluatorWeights()
    skip_on_high_confidence: bool = False
    sampling_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    fallback_on_error: Literal["FLAG", "BLOCK", "PASS"] = "FLAG"


class ContentConfig(BaseSettings):
    """Content store and rule-set locations.

    Env vars use ``SMILE_CONTENT_`` prefix.
    """

    model_config = {"env_prefix": "SMILE_CONTENT_"}

    default_language: str = "en"
    supported_languages: list[str] = Field(default_factory=lambda: ["en", "nl"])
    content_file: Path | None = None
    sources_file: Path | None = None
    rules_file: Path | None = None


class ObservabilityConfig(BaseSettings):
    """Logging configuration.

    Env vars use ``SMILE_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "SMILE_OBSERVABILITY_"}

    log_level: str = "INFO"
    log_format: Literal["auto", "json", "console"] = "auto"


class APIConfig(BaseSettings):
    """FastAPI application metadata.

    Env vars use ``SMILE_API_`` prefix.
    """

    model_config = {"env_prefix": "SMILE_API_"}

    title: str = "smile-report"
    description: str = "Questionnaire to narrative dental report pipeline"
    host: str = "127.0.0.1"
    port: int = 8000


class AppSettings(BaseSettings):
    """Top-level application settings aggregating all sub-configs.

    Each sub-config reads its own ``SMILE_<GROUP>_*`` env vars.
    """

    llm: LLMConfig = LLMConfig()
    generation: GenerationConfig = GenerationConfig()
    evaluator: EvaluatorConfig = EvaluatorConfig()
    content: ContentConfig = ContentConfig()
    observability: ObservabilityConfig = ObservabilityConfig()
    api: APIConfig = APIConfig()
