"""Generator and verifier protocols."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from smile_report.content.models import SourceSnippet
from smile_report.generation.models import GeneratedContent, VerificationResult
from smile_report.models import ContentType, ToneProfileId


@runtime_checkable
class IGenerator(Protocol):
    """Drafts content for a gap from retrieved source material."""

    async def generate(
        self,
        content_id: str,
        content_type: ContentType,
        language: str,
        tone: ToneProfileId,
        source_material: list[SourceSnippet],
        target_sections: tuple[int, ...],
    ) -> GeneratedContent:
        ...


@runtime_checkable
class IVerifier(Protocol):
    """Checks generated content claim by claim against source documents."""

    async def check(
        self,
        content_id: str,
        content: str,
        source_documents: list[SourceSnippet],
        strict_mode: bool = False,
    ) -> VerificationResult:
        ...
