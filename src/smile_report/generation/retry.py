"""Generation-retry loop: fill content gaps with fact-checked generated text.

Gaps resolve concurrently (bounded by a semaphore); attempts for one gap are
strictly sequential. Each attempt retrieves sources, generates, verifies and
either persists (confidence at or above threshold) or retries. The last
attempt persists regardless, flagged for review.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, TypeVar

from smile_report.composition.composer import count_words
from smile_report.content.models import ContentVariant, SourceSnippet
from smile_report.exceptions import ContentStoreError, LLMClientError
from smile_report.generation.models import (
    ClaimVerdict,
    FactCheckIssue,
    GapOutcome,
    GapStatus,
    GeneratedContent,
    VerificationResult,
)
from smile_report.generation.states import (
    Abort,
    Checked,
    ContentGenerated,
    Done,
    Failed,
    GapState,
    Pending,
    Persisted,
    StartAttempt,
    transition,
)
from smile_report.hooks.progress import ProgressCallback, emit_progress
from smile_report.hooks.run_tracker import record_event
from smile_report.models import ContentGap, PhaseStatus, ProgressEvent

if TYPE_CHECKING:
    from smile_report.content.protocols import IContentStore, ISourceRetriever
    from smile_report.core.config import GenerationConfig
    from smile_report.generation.protocols import IGenerator, IVerifier

log = logging.getLogger(__name__)

T = TypeVar("T")

NO_SOURCES = "no relevant source material"
CANCELLED = "cancelled"
GENERATION_PHASE = 6
GENERATION_PHASE_NAME = "content_generation"


class _GapRun:
    """Mutable bookkeeping for one gap while its attempts run."""

    def __init__(self, gap: ContentGap, on_progress: ProgressCallback | None) -> None:
        self.gap = gap
        self.on_progress = on_progress
        self.state: GapState = Pending()
        self.history: list[str] = [self.state.name]
        self.attempts = 0
        self.best: tuple[GeneratedContent, VerificationResult | None] | None = None
        self.last_confidence: float = 0.0


class GenerationRetryLoop:
    def __init__(
        self,
        generator: IGenerator,
        verifier: IVerifier,
        retriever: ISourceRetriever,
        store: IContentStore,
        config: GenerationConfig,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._generator = generator
        self._verifier = verifier
        self._retriever = retriever
        self._store = store
        self._config = config
        self._on_progress = on_progress
        self._cancelled = False

    def cancel(self) -> None:
        """Stop starting new gaps. Gaps already running finish normally."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def resolve_gaps(
        self,
        gaps: list[ContentGap],
        *,
        on_progress: ProgressCallback | None = None,
    ) -> list[GapOutcome]:
        """Resolve every gap; outcomes are returned in input order.

        ``on_progress`` applies to this call only and overrides the callback
        given at construction.
        """
        if not gaps:
            return []

        sem = asyncio.Semaphore(self._config.max_concurrent_gaps)

        async def _bounded(gap: ContentGap) -> GapOutcome:
            async with sem:
                return await self.resolve_gap(gap, on_progress=on_progress)

        log.info("Resolving %d content gaps", len(gaps))
        return list(await asyncio.gather(*[_bounded(g) for g in gaps]))

    async def resolve_gap(self, gap: ContentGap, *, on_progress: ProgressCallback | None = None) -> GapOutcome:
        run = _GapRun(gap, on_progress or self._on_progress)
        if self._cancelled:
            await self._advance(run, Abort(CANCELLED))
            return self._outcome(run)

        max_attempts = self._config.max_fact_check_attempts
        while True:
            run.attempts += 1
            await self._advance(run, StartAttempt())
            final_attempt = run.attempts >= max_attempts

            sources = await self._retrieve(gap)
            if not sources:
                await self._advance(run, Abort(NO_SOURCES))
                return self._outcome(run)

            generated = await self._guarded(
                self._generator.generate(
                    gap.content_id,
                    gap.content_type,
                    gap.language,
                    gap.tone,
                    sources,
                    gap.sections,
                ),
                f"generate {gap.content_id}",
            )
            if generated is None or not generated.content.strip():
                await self._advance(run, Checked(confidence=0.0, accepted=False, final_attempt=final_attempt))
                run.last_confidence = 0.0
            else:
                await self._advance(run, ContentGenerated())
                verification = await self._guarded(
                    self._verifier.check(gap.content_id, generated.content, sources, strict_mode=False),
                    f"verify {gap.content_id}",
                )
                confidence = verification.overall_confidence if verification is not None else 0.0
                run.last_confidence = confidence
                run.best = (generated, verification)
                accepted = confidence >= self._config.confidence_threshold
                await self._advance(
                    run, Checked(confidence=confidence, accepted=accepted, final_attempt=final_attempt)
                )

            if run.state.name in ("passed", "failed_final"):
                break

        if run.best is None:
            await self._advance(run, Abort("generation failed on every attempt"))
            return self._outcome(run)

        with_warning = run.state.name == "failed_final"
        generated, verification = run.best
        try:
            await self._store.upsert_variant(
                gap.content_id,
                gap.language,
                gap.tone,
                ContentVariant(
                    content=generated.content,
                    word_count=generated.word_count or count_words(generated.content),
                    citations=list(generated.citations),
                    generated_by="llm",
                    fact_check_confidence=verification.overall_confidence if verification else 0.0,
                    needs_review=with_warning,
                ),
            )
        except ContentStoreError as exc:
            await self._advance(run, Abort(f"persist failed: {exc}"))
            return self._outcome(run)

        if with_warning:
            log.warning(
                "Persisted %s below threshold after %d attempts (confidence=%.2f)",
                gap.content_id, run.attempts, run.last_confidence,
            )
        await self._advance(run, Persisted())
        return self._outcome(run)

    # ── Internal ────────────────────────────────────────────────────

    async def _retrieve(self, gap: ContentGap) -> list[SourceSnippet]:
        query = f"{gap.name} {gap.content_type.value} {gap.description}"
        try:
            return await asyncio.wait_for(
                self._retriever.get_relevant_sources(
                    query,
                    limit=self._config.source_limit,
                    score_threshold=self._config.source_score_threshold,
                ),
                timeout=self._config.call_timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Source retrieval timed out for %s", gap.content_id)
            return []

    async def _guarded(self, call: Awaitable[T], label: str) -> T | None:
        """Await ``call`` under the call timeout; timeouts and LLM errors yield None."""
        try:
            return await asyncio.wait_for(call, timeout=self._config.call_timeout)
        except asyncio.TimeoutError:
            log.warning("%s timed out after %.0fs", label, self._config.call_timeout)
        except LLMClientError as exc:
            log.warning("%s failed: %s", label, exc)
        return None

    async def _advance(self, run: _GapRun, event: Any) -> None:
        run.state = transition(run.state, event)
        run.history.append(run.state.name)
        data: dict[str, Any] = {"content_id": run.gap.content_id, "state": run.state.name, "attempt": run.attempts}
        for attr in ("confidence", "reason"):
            if hasattr(run.state, attr):
                data[attr] = getattr(run.state, attr)
        record_event("generation", run.state.name, **data)

        if isinstance(run.state, (Done, Failed)):
            status = PhaseStatus.COMPLETED if isinstance(run.state, Done) else PhaseStatus.ERROR
        else:
            status = PhaseStatus.IN_PROGRESS
        await emit_progress(
            run.on_progress,
            ProgressEvent(
                phase=GENERATION_PHASE,
                phase_name=GENERATION_PHASE_NAME,
                status=status,
                message=f"{run.gap.content_id}: {run.state.name}",
                metrics=data,
            ),
        )

    def _outcome(self, run: _GapRun) -> GapOutcome:
        state = run.state
        issues: list[FactCheckIssue] = []
        if run.best is not None and run.best[1] is not None and isinstance(state, Done):
            issues = [
                FactCheckIssue.from_claim(run.gap.content_id, claim)
                for claim in run.best[1].claims
                if claim.verdict is not ClaimVerdict.VERIFIED
            ]

        if isinstance(state, Failed):
            return GapOutcome(
                gap=run.gap,
                status=GapStatus.FAILED,
                attempts=run.attempts,
                reason=state.reason,
                states=run.history,
            )
        status = GapStatus.PERSISTED_WITH_WARNING if state.persisted_with_warning else GapStatus.PASSED
        return GapOutcome(
            gap=run.gap,
            status=status,
            attempts=run.attempts,
            confidence=run.last_confidence,
            issues=issues,
            states=run.history,
        )
