"""Async LLM client routed through LiteLLM.

Model ids carry the LiteLLM provider prefix (``openai/``, ``anthropic/``,
``bedrock/``). Retryable failures back off exponentially with jitter;
authentication and bad-request errors fail immediately.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from typing import Any

from litellm import acompletion
from litellm.exceptions import AuthenticationError, BadRequestError, NotFoundError

from smile_report.core.config import LLMConfig
from smile_report.exceptions import JSONParseError, NonRetryableError, RetryableError

log = logging.getLogger(__name__)

_NON_RETRYABLE = (AuthenticationError, BadRequestError, NotFoundError)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


class LLMClient:
    """Chat completions with retry, shared by the generator, verifier and evaluator."""

    def __init__(self, config: LLMConfig) -> None:
        self._config = config

    @property
    def model(self) -> str:
        return self._config.model

    @staticmethod
    def _is_retryable(exc: Exception) -> bool:
        return not isinstance(exc, _NON_RETRYABLE)

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        api_key: str | None = None,
        max_retries: int | None = None,
    ) -> str:
        """Single completion; returns the message content."""
        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": model or self._config.model,
            "messages": messages,
            "temperature": self._config.temperature if temperature is None else temperature,
            "timeout": self._config.timeout,
            "api_key": api_key or self._config.api_key,
        }
        if self._config.base_url:
            kwargs["api_base"] = self._config.base_url

        attempts = max_retries or self._config.max_retries
        last_error: Exception | None = None
        for attempt in range(attempts):
            try:
                response = await acompletion(**kwargs)
                return response.choices[0].message.content or ""
            except Exception as e:
                last_error = e
                if not self._is_retryable(e):
                    raise NonRetryableError(f"Non-retryable LLM error: {e}") from e

                base_wait = min(2**attempt, self._config.retry_max_delay)
                wait = base_wait + random.uniform(0, base_wait * self._config.retry_jitter_factor)
                log.warning("LLM retry %d/%d: %s (wait=%.1fs)", attempt + 1, attempts, e, wait)
                if attempt < attempts - 1:
                    await asyncio.sleep(wait)

        raise RetryableError(f"LLM API failed after {attempts} retries: {last_error}") from last_error

    async def complete_json(self, prompt: str, **kwargs: Any) -> Any:
        return self.extract_json(await self.complete(prompt, **kwargs))

    # ── JSON extraction (static) ─────────────────────────────────────

    @staticmethod
    def extract_json(content: str) -> Any:
        """Parse JSON from a response that may wrap it in fences or prose.

        Tries a fenced block, then the whole text, then the first balanced
        ``{...}`` or ``[...]``. Raises ``JSONParseError`` when none parse.
        """
        candidates: list[str] = []
        fence = re.search(r"```(?:json)?\s*(.*?)```", content, re.DOTALL)
        if fence:
            candidates.append(fence.group(1))
        candidates.append(content)
        for open_ch, close_ch in (("{", "}"), ("[", "]")):
            block = _balanced(content, open_ch, close_ch)
            if block:
                candidates.append(block)

        for candidate in candidates:
            parsed = _try_parse(candidate)
            if parsed is not None:
                return parsed

        log.error("Failed to parse JSON from LLM response (%d chars): %.200s", len(content), content)
        raise JSONParseError("LLM response did not contain valid JSON")


def _try_parse(text: str) -> Any | None:
    text = text.strip()
    if not text:
        return None
    for candidate in (text, _TRAILING_COMMA.sub(r"\1", text)):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def _balanced(content: str, open_ch: str, close_ch: str) -> str | None:
    """First balanced bracket span, ignoring brackets inside strings."""
    start = content.find(open_ch)
    if start == -1:
        return None
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(content)):
        ch = content[i]
        if escape:
            escape = False
        elif ch == "\\":
            escape = True
        elif ch == '"':
            in_string = not in_string
        elif in_string:
            continue
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return content[start : i + 1]
    return None
