"""Content store gateway and source retrieval."""

from __future__ import annotations

from smile_report.content.memory_store import MemoryContentStore
from smile_report.content.models import ContentDocument, ContentVariant, SourceSnippet
from smile_report.content.protocols import IContentStore, ISourceRetriever
from smile_report.content.retriever import StaticSourceRetriever

__all__ = [
    "ContentDocument",
    "ContentVariant",
    "IContentStore",
    "ISourceRetriever",
    "MemoryContentStore",
    "SourceSnippet",
    "StaticSourceRetriever",
]
