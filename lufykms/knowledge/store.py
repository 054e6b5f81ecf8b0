"""
Knowledge Store

Ingestion and lifecycle facade over the document store, the
embedding engine and the search engine.

Design decisions:
- Embeddings are computed before a document is persisted
- Every mutation invalidates both retrieval cache levels (coarse)
- Health checks downgrade every failure to False and never raise
"""

import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from lufykms.config.settings import Settings
from lufykms.core.exceptions import DocumentNotFoundError, EmptyContentError
from lufykms.core.interfaces import DocumentStore
from lufykms.core.types import (
    Document,
    HealthStatus,
    SearchOptions,
    SearchResult,
    StorageStats,
)
from lufykms.knowledge.embeddings import EmbeddingEngine
from lufykms.knowledge.search import SearchEngine
from lufykms.observability.logging import StructuredLogger, get_logger


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class KnowledgeStore:
    """
    Entry point for adding, updating, removing and searching documents.

    Usage:
        store = KnowledgeStore(document_store, embedding_engine, search_engine)
        doc_id = await store.add_document("Refunds take 5 days.", {"source": "faq"})
        results = await store.search("how long do refunds take")
    """

    def __init__(
        self,
        document_store: DocumentStore,
        embedding_engine: EmbeddingEngine,
        search_engine: SearchEngine,
        settings: Settings | None = None,
        logger: StructuredLogger | None = None,
    ):
        self._store = document_store
        self._embeddings = embedding_engine
        self._search = search_engine
        self._settings = settings or Settings()
        self._logger = logger or get_logger("lufykms.store")

    @property
    def config(self) -> Settings:
        return self._settings

    @property
    def search_engine(self) -> SearchEngine:
        return self._search

    # =========================================================================
    # Mutations
    # =========================================================================

    async def add_document(self, content: str, metadata: dict[str, Any] | None = None) -> str:
        """
        Embed and persist a new document.

        Args:
            content: Document text, must not be blank
            metadata: Free-form fields. ``timestamp`` is filled in when absent.

        Returns:
            The generated document id

        Raises:
            EmptyContentError: Blank content
            EmbeddingError: Embedding failed; nothing is persisted
            StorageError: Persistence failed
        """
        if not content or not content.strip():
            raise EmptyContentError("Document content cannot be empty")

        embedding = await self._embeddings.generate_embedding(content)

        now = _utcnow_iso()
        merged = dict(metadata or {})
        if not merged.get("timestamp"):
            merged["timestamp"] = now
        merged.setdefault("created_at", now)

        document = Document(
            id=str(uuid4()),
            content=content,
            metadata=merged,
            embedding=embedding,
        )
        document_id = await self._store.save(document)

        self._search.invalidate_cache(reason="add")
        self._logger.info("Document added", document_id=document_id, chars=len(content))
        return document_id

    async def update_document(
        self,
        document_id: str,
        content: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """
        Replace content and/or merge metadata.

        The embedding is regenerated only when the content actually changes.

        Raises:
            DocumentNotFoundError: Unknown id
            EmptyContentError: Content given but blank
        """
        existing = await self._store.get(document_id)
        if existing is None:
            raise DocumentNotFoundError(
                f"Document not found: {document_id}",
                document_id=document_id,
            )

        if content is not None and not content.strip():
            raise EmptyContentError(
                "Document content cannot be empty",
                context={"document_id": document_id},
            )

        new_content = existing.content if content is None else content
        embedding = existing.embedding
        if new_content != existing.content:
            self._logger.debug("Regenerating embedding", document_id=document_id)
            embedding = await self._embeddings.generate_embedding(new_content)

        updated = Document(
            id=document_id,
            content=new_content,
            metadata={**existing.metadata, **(metadata or {}), "updated_at": _utcnow_iso()},
            embedding=embedding,
        )
        await self._store.save(updated)

        self._search.invalidate_cache(reason="update")
        self._logger.info("Document updated", document_id=document_id)

    async def delete_document(self, document_id: str) -> None:
        await self._store.delete(document_id)
        self._search.invalidate_cache(reason="delete")
        self._logger.info("Document deleted", document_id=document_id)

    async def clear_all_documents(self) -> int:
        """Remove every document. Returns the number removed."""
        deleted = await self._store.clear_all()
        self._search.invalidate_cache(reason="clear")
        self._logger.info("Cleared all documents", deleted=deleted)
        return deleted

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_document(self, document_id: str) -> Document | None:
        return await self._store.get(document_id)

    async def get_all_documents(self) -> list[Document]:
        return await self._store.list_all()

    async def search(
        self,
        query: str,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Search with configured defaults for any option left unset."""
        if isinstance(options, SearchOptions):
            overrides = options.model_dump(exclude_none=True)
        else:
            overrides = {k: v for k, v in (options or {}).items() if v is not None}

        effective = {
            "limit": self._settings.search.default_limit,
            "min_similarity": self._settings.search.min_similarity_threshold,
            "include_metadata": True,
            **overrides,
        }

        # Validated by the engine, so bad overrides raise InvalidOptionsError
        return await self._search.search_similar(query, effective)

    async def find_by_metadata(self, filters: dict[str, Any]) -> list[Document]:
        """Documents whose metadata equals every given field."""
        documents = await self._store.list_all()
        return [
            d
            for d in documents
            if all(d.metadata.get(key) == value for key, value in filters.items())
        ]

    async def get_storage_stats(self) -> StorageStats:
        documents = await self._store.list_all()
        by_source = Counter(str(d.metadata.get("source") or "unknown") for d in documents)
        by_mime_type = Counter(str(d.metadata.get("mime_type") or "unknown") for d in documents)

        return StorageStats(
            total_documents=len(documents),
            total_size=sum(len(d.content) for d in documents),
            by_source=dict(by_source),
            by_mime_type=dict(by_mime_type),
        )

    # =========================================================================
    # Health
    # =========================================================================

    async def get_health_status(self) -> HealthStatus:
        """Probe storage and the embedding backend concurrently."""
        storage_ok, embedding_ok, documents = await asyncio.gather(
            self._store.check_connection(),
            self._embeddings.check_connection(),
            self._store.list_all(),
            return_exceptions=True,
        )

        storage = storage_ok is True
        status = HealthStatus(
            storage=storage,
            embedding=embedding_ok is True,
            # Search is available whenever storage is
            search=storage,
            total_documents=len(documents) if isinstance(documents, list) else 0,
        )

        for name, result in (
            ("storage", storage_ok),
            ("embedding", embedding_ok),
            ("listing", documents),
        ):
            if isinstance(result, Exception):
                self._logger.warning("Health probe failed", probe=name, reason=str(result))

        return status
