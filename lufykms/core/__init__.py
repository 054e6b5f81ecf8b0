"""
Core Module

Contains fundamental types, exceptions and interfaces used across
all other modules of the retrieval core.

The interfaces module defines the protocols that external stores,
embedding backends and rankers must satisfy.
"""

from lufykms.core.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    DocumentNotFoundError,
    EmbeddingBackendError,
    EmbeddingError,
    EmbeddingTimeoutError,
    EmptyContentError,
    EmptyInputError,
    InvalidOptionsError,
    InvalidQueryError,
    KnowledgeBaseError,
    StorageError,
    ValidationError,
    VectorMathError,
)
from lufykms.core.interfaces import DocumentStore, EmbeddingBackend, EmbeddingCache, Ranker
from lufykms.core.types import (
    CacheEntry,
    CacheStats,
    Chunk,
    Document,
    HealthStatus,
    HighlightedResult,
    SearchOptions,
    SearchResult,
    StorageStats,
)

__all__ = [
    # Types
    "CacheEntry",
    "CacheStats",
    "Chunk",
    "Document",
    "HealthStatus",
    "HighlightedResult",
    "SearchOptions",
    "SearchResult",
    "StorageStats",
    # Exceptions
    "ConfigurationError",
    "DimensionMismatchError",
    "DocumentNotFoundError",
    "EmbeddingBackendError",
    "EmbeddingError",
    "EmbeddingTimeoutError",
    "EmptyContentError",
    "EmptyInputError",
    "InvalidOptionsError",
    "InvalidQueryError",
    "KnowledgeBaseError",
    "StorageError",
    "ValidationError",
    "VectorMathError",
    # Interfaces
    "DocumentStore",
    "EmbeddingBackend",
    "EmbeddingCache",
    "Ranker",
]
