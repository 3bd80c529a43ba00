"""Exception hierarchy for smile-report."""

from __future__ import annotations


class SmileReportError(Exception):
    """Base exception for all smile-report errors."""


class RulesError(SmileReportError):
    """Raised when a rules file is missing or malformed."""


class ContentStoreError(SmileReportError):
    """Raised when a content store operation fails."""


class MissingContentError(SmileReportError):
    """Raised when required content could not be found or generated.

    Carries the content ids and the language/tone combination so the
    caller can act on it (author, regenerate, or switch language).
    """

    def __init__(self, content_ids: list[str], language: str, tone: str) -> None:
        self.content_ids = list(content_ids)
        self.language = language
        self.tone = tone
        super().__init__(
            f"Missing content for {', '.join(self.content_ids)} "
            f"(language={language}, tone={tone})"
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "content_ids": self.content_ids,
            "language": self.language,
            "tone": self.tone,
        }


class GenerationError(SmileReportError):
    """Raised when content generation fails for a gap."""


class IllegalTransitionError(GenerationError):
    """Raised when a gap state machine receives an event its state cannot accept."""


class EvaluatorConfigError(SmileReportError):
    """Raised when the quality evaluator is required but not configured."""


class LLMClientError(SmileReportError):
    """Raised when LLM API calls fail after exhausting retries."""


class RetryableError(LLMClientError):
    """Rate limits, timeouts and 5xx responses that should be retried."""


class NonRetryableError(LLMClientError):
    """Auth errors and bad requests (4xx other than 429); fail immediately."""


class JSONParseError(LLMClientError):
    """Raised when an LLM response cannot be parsed into the expected JSON."""
