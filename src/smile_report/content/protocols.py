"""Content store and source retriever protocols."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from smile_report.content.models import ContentDocument, ContentVariant, SourceSnippet
from smile_report.models import ContentCheckResult, ContentType, ToneProfileId


@runtime_checkable
class IContentStore(Protocol):
    """Read-mostly content gateway with tone and language fallback."""

    async def get(self, content_id: str, tone: ToneProfileId, language: str) -> str | None:
        """Return content for the first variant found along the fallback chains."""
        ...

    async def get_manifest(self, content_id: str) -> ContentDocument | None:
        """Return the document (metadata and variants) or None."""
        ...

    async def exists(self, content_id: str) -> bool:
        ...

    async def list_by_type(self, content_type: ContentType) -> list[str]:
        ...

    async def check_availability(
        self,
        scenario_ids: list[str],
        language: str,
        tone: ToneProfileId,
    ) -> ContentCheckResult:
        """Exact-variant availability; fallbacks do not count as available."""
        ...

    async def upsert_variant(
        self,
        content_id: str,
        language: str,
        tone: ToneProfileId,
        variant: ContentVariant,
    ) -> None:
        """Create or replace the variant for (content_id, language, tone). Never deletes."""
        ...


@runtime_checkable
class ISourceRetriever(Protocol):
    """Ranked retrieval of clinical source material."""

    async def get_relevant_sources(
        self,
        query: str,
        *,
        limit: int = 15,
        score_threshold: float = 0.1,
    ) -> list[SourceSnippet]:
        ...
