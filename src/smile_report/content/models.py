"""Content store models: documents with per-language, per-tone variants."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from smile_report.models import ContentType, ToneProfileId


class ContentVariant(BaseModel):
    """One rendering of a content item in a language and tone."""

    content: str
    word_count: int = 0
    citations: list[str] = Field(default_factory=list)
    generated_by: str = "author"
    fact_check_confidence: Optional[float] = None
    needs_review: bool = False


class ContentDocument(BaseModel):
    """A content item and all its variants, keyed ``variants[language][tone]``."""

    content_id: str
    type: ContentType
    name: str = ""
    description: str = ""
    target_sections: list[int] = Field(default_factory=list)
    variants: dict[str, dict[ToneProfileId, ContentVariant]] = Field(default_factory=dict)

    def variant(self, language: str, tone: ToneProfileId) -> ContentVariant | None:
        return self.variants.get(language, {}).get(tone)


class SourceSnippet(BaseModel):
    """A ranked piece of clinical source material for grounded generation."""

    source_id: str
    text: str
    title: str = ""
    score: float = 0.0


def content_type_for(content_id: str) -> ContentType:
    """Infer a content type from its id prefix. Longer prefixes are checked first."""
    if content_id.startswith("STATIC_"):
        return ContentType.STATIC
    if content_id.startswith("TM_"):
        return ContentType.MODULE
    if content_id.startswith("A_"):
        return ContentType.ALERT_BLOCK
    if content_id.startswith("B_"):
        return ContentType.BUILDING_BLOCK
    return ContentType.SCENARIO
