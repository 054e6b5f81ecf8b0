"""
Exception Hierarchy

Defines all exceptions raised by the retrieval core.
Exceptions are organized by concern and include context for debugging.

Design decisions:
- All exceptions inherit from KnowledgeBaseError for easy catching
- Exceptions carry structured context, not just messages
- Error codes enable programmatic handling
"""

from typing import Any


class KnowledgeBaseError(Exception):
    """
    Base exception for all knowledge base errors.

    Provides structured error information including:
    - Human-readable message
    - Machine-readable error code
    - Additional context for debugging
    """

    error_code: str = "KNOWLEDGE_BASE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.error_code
        self.context = context or {}
        self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for callers that report errors as data."""
        return {
            "error": self.code,
            "message": self.message,
            "context": self.context,
        }


# ============================================================
# Configuration Errors
# ============================================================


class ConfigurationError(KnowledgeBaseError):
    """Error in configuration or settings."""

    error_code = "CONFIGURATION_ERROR"


# ============================================================
# Validation Errors (fail fast, never retried)
# ============================================================


class ValidationError(KnowledgeBaseError):
    """Base error for rejected input."""

    error_code = "VALIDATION_ERROR"


class InvalidQueryError(ValidationError):
    """Search query is empty or too long."""

    error_code = "INVALID_QUERY"


class InvalidOptionsError(ValidationError):
    """Search or chunking options are out of range."""

    error_code = "INVALID_OPTIONS"


class EmptyContentError(ValidationError):
    """Document content is blank."""

    error_code = "EMPTY_CONTENT"


# ============================================================
# Vector Math Errors
# ============================================================


class VectorMathError(KnowledgeBaseError):
    """Base error for vector math misuse."""

    error_code = "VECTOR_MATH_ERROR"


class DimensionMismatchError(VectorMathError):
    """Vectors do not share a dimension."""

    error_code = "DIMENSION_MISMATCH"

    def __init__(
        self,
        message: str,
        *,
        expected: int | None = None,
        actual: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual


class EmptyInputError(VectorMathError):
    """Operation requires at least one vector."""

    error_code = "EMPTY_INPUT"


# ============================================================
# Embedding Errors
# ============================================================


class EmbeddingError(KnowledgeBaseError):
    """Base error for embedding generation."""

    error_code = "EMBEDDING_ERROR"


class EmbeddingBackendError(EmbeddingError):
    """Embedding backend failed after all retries."""

    error_code = "EMBEDDING_BACKEND_ERROR"

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 0,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class EmbeddingTimeoutError(EmbeddingBackendError):
    """Final embedding attempt exceeded the per-call timeout."""

    error_code = "EMBEDDING_TIMEOUT"


# ============================================================
# Storage Errors
# ============================================================


class StorageError(KnowledgeBaseError):
    """External document store failure."""

    error_code = "STORAGE_ERROR"


class DocumentNotFoundError(KnowledgeBaseError):
    """Mutation references an unknown document id."""

    error_code = "DOCUMENT_NOT_FOUND"

    def __init__(self, message: str, *, document_id: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.document_id = document_id
