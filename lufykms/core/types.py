"""
Core Types and Data Structures

Defines the fundamental types used throughout the retrieval core.
These are intentionally simple and serializable.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Document(BaseModel):
    """
    A stored document.

    Metadata always carries a ``timestamp`` once persisted through
    the knowledge store. Documents without an embedding are invisible
    to similarity search.
    """

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


class SearchResult(BaseModel):
    """A document scored against a query. Never persisted."""

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity: float


class HighlightedResult(SearchResult):
    """Search result with the sentences that mention the query."""

    highlights: list[str] = Field(default_factory=list)


class SearchOptions(BaseModel):
    """
    Per-request search options.

    Unknown keys are rejected. Ranges are checked by the search engine,
    which also reports type errors as InvalidOptionsError.
    """

    model_config = ConfigDict(extra="forbid")

    limit: int | None = None
    min_similarity: float | None = None
    include_metadata: bool | None = None


class Chunk(BaseModel):
    """A bounded slice of a larger text, produced only for embedding."""

    content: str
    index: int
    start_offset: int
    end_offset: int


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and the monotonic time it was stored."""

    value: T
    inserted_at: float


class HealthStatus(BaseModel):
    """Subsystem connectivity report."""

    storage: bool = False
    embedding: bool = False
    search: bool = False
    total_documents: int = 0


class StorageStats(BaseModel):
    """Aggregate corpus statistics."""

    total_documents: int = 0
    total_size: int = 0
    by_source: dict[str, int] = Field(default_factory=dict)
    by_mime_type: dict[str, int] = Field(default_factory=dict)


class CacheStats(BaseModel):
    """Retrieval cache counters."""

    document_entries: int = 0
    query_entries: int = 0
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
