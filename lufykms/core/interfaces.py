"""
Core Interfaces and Protocols

Defines the contracts between the retrieval core and its collaborators.
Concrete backends satisfy these structurally and are selected by
constructor injection.

Design decisions:
- Protocol-based for structural subtyping
- One narrow interface per capability
- Connectivity checks are part of each contract, not probed at runtime
"""

from typing import Protocol, runtime_checkable

from lufykms.core.types import Document


# =============================================================================
# DOCUMENT STORE PROTOCOL
# =============================================================================


@runtime_checkable
class DocumentStore(Protocol):
    """
    Persistence contract for documents.

    Implemented by: InMemoryDocumentStore, RedisDocumentStore
    Used by: KnowledgeStore, SearchEngine

    No transactional guarantees beyond per-call atomicity.
    """

    async def save(self, document: Document) -> str:
        """Insert or replace a document, returning its id."""
        ...

    async def get(self, document_id: str) -> Document | None:
        """Fetch a document, or None if absent."""
        ...

    async def list_all(self) -> list[Document]:
        """Return every stored document."""
        ...

    async def delete(self, document_id: str) -> None:
        """Remove a document. Unknown ids are ignored."""
        ...

    async def clear_all(self) -> int:
        """Remove all documents, returning how many were removed."""
        ...

    async def check_connection(self) -> bool:
        """Probe backend connectivity."""
        ...


# =============================================================================
# EMBEDDING BACKEND PROTOCOL
# =============================================================================


@runtime_checkable
class EmbeddingBackend(Protocol):
    """
    Raw text-to-vector call.

    Implemented by: OpenAIEmbeddingBackend, LocalEmbeddingBackend,
    HashEmbeddingBackend
    Used by: EmbeddingEngine

    Callers guarantee ``text`` fits the configured per-call size.
    """

    @property
    def model(self) -> str:
        """Backend model identifier."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...

    async def check_connection(self) -> bool:
        """Probe backend connectivity."""
        ...


# =============================================================================
# RANKER PROTOCOL
# =============================================================================


@runtime_checkable
class Ranker(Protocol):
    """
    Scores a document vector against a query vector.

    Implemented by: CosineRanker
    Used by: SearchEngine
    """

    def score(self, query_vector: list[float], document_vector: list[float]) -> float:
        """Higher is more similar. May raise VectorMathError."""
        ...


# =============================================================================
# EMBEDDING CACHE PROTOCOL
# =============================================================================


@runtime_checkable
class EmbeddingCache(Protocol):
    """
    Content-hash keyed vector cache.

    Implemented by: LRUEmbeddingCache
    Used by: EmbeddingEngine
    """

    def get(self, key: str) -> list[float] | None: ...

    def set(self, key: str, value: list[float]) -> None: ...

    def delete(self, key: str) -> bool: ...

    def clear(self) -> None: ...

    def __contains__(self, key: object) -> bool: ...

    def __len__(self) -> int: ...
