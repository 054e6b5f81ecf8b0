"""
Search Engine

Similarity search over the stored corpus.

Design decisions:
- Exhaustive linear scan; no ANN index
- Two cache levels: the document snapshot and per-query results
- Pluggable scoring through the Ranker protocol (cosine by default)
- Per-document scoring errors are logged and skipped, never fatal
- Results stay sorted by similarity, ties keep corpus order
"""

import hashlib
import json
import re
import time
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from lufykms.config.settings import SearchSettings
from lufykms.core.exceptions import InvalidOptionsError, InvalidQueryError, VectorMathError
from lufykms.core.interfaces import DocumentStore, Ranker
from lufykms.core.types import (
    CacheStats,
    Document,
    HighlightedResult,
    SearchOptions,
    SearchResult,
)
from lufykms.knowledge.cache import RetrievalCache
from lufykms.knowledge.embeddings import EmbeddingEngine
from lufykms.knowledge.similarity import CosineRanker
from lufykms.observability.logging import StructuredLogger, get_logger
from lufykms.observability.metrics import MetricsCollector, get_metrics_collector

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_WHITESPACE = re.compile(r"\s+")

MAX_HIGHLIGHTS = 3
FILTER_CANDIDATES = 100


class SearchEngine:
    """
    Vector similarity search with multi-level caching.

    Usage:
        engine = SearchEngine(document_store, embedding_engine)
        results = await engine.search_similar("refund policy", {"limit": 3})
    """

    def __init__(
        self,
        document_store: DocumentStore,
        embedding_engine: EmbeddingEngine,
        cache: RetrievalCache | None = None,
        ranker: Ranker | None = None,
        settings: SearchSettings | None = None,
        min_similarity_threshold: float | None = None,
        logger: StructuredLogger | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._store = document_store
        self._embeddings = embedding_engine
        self._cache = cache if cache is not None else RetrievalCache()
        self._ranker = ranker or CosineRanker()
        self._settings = settings or SearchSettings()
        self._logger = logger or get_logger("lufykms.search")
        self._metrics = metrics or get_metrics_collector()

        if min_similarity_threshold is None:
            min_similarity_threshold = self._settings.min_similarity_threshold
        self.min_similarity_threshold = min_similarity_threshold

    @property
    def cache(self) -> RetrievalCache:
        return self._cache

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_query(self, query: str) -> None:
        if not query or not query.strip():
            raise InvalidQueryError("Search query cannot be empty")

        max_length = self._settings.max_query_length
        if len(query) > max_length:
            raise InvalidQueryError(
                f"Search query is too long (max {max_length:,} characters)",
                context={"length": len(query), "max_length": max_length},
            )

    def validate_options(self, options: SearchOptions) -> None:
        max_limit = self._settings.max_limit
        if options.limit is not None and not 1 <= options.limit <= max_limit:
            raise InvalidOptionsError(
                f"Search limit must be between 1 and {max_limit}",
                context={"limit": options.limit},
            )

        if options.min_similarity is not None and not 0.0 <= options.min_similarity <= 1.0:
            raise InvalidOptionsError(
                "Minimum similarity must be between 0 and 1",
                context={"min_similarity": options.min_similarity},
            )

    @staticmethod
    def _coerce_options(options: SearchOptions | dict[str, Any] | None) -> SearchOptions:
        if options is None:
            return SearchOptions()
        if isinstance(options, SearchOptions):
            return options
        try:
            return SearchOptions.model_validate(options)
        except PydanticValidationError as e:
            raise InvalidOptionsError(
                "Invalid search options",
                context={"errors": [error["msg"] for error in e.errors()]},
                cause=e,
            )

    def create_search_cache_key(self, query: str, options: SearchOptions) -> str:
        """Normalized query plus the effective option set."""
        limit = options.limit if options.limit is not None else self._settings.default_limit
        options_key = json.dumps(
            {
                "limit": limit,
                "minSimilarity": (
                    options.min_similarity
                    if options.min_similarity is not None
                    else self.min_similarity_threshold
                ),
                "includeMetadata": options.include_metadata is not False,
            },
            sort_keys=True,
        )
        return f"search_{query.lower().strip()}_{options_key}"

    # =========================================================================
    # Search
    # =========================================================================

    async def search_similar(
        self,
        query: str,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """
        Rank stored documents against ``query``.

        Args:
            query: Free-text query, at most 10,000 characters
            options: limit (1-100, default 5), min_similarity (0-1),
                include_metadata (default True)

        Returns:
            Results sorted by descending similarity

        Raises:
            InvalidQueryError: Blank or oversized query
            InvalidOptionsError: Out-of-range options
            EmbeddingError: Query embedding failed
            StorageError: Document listing failed
        """
        opts = self._coerce_options(options)
        self.validate_query(query)
        self.validate_options(opts)

        start = time.perf_counter()
        cache_key = self.create_search_cache_key(query, opts)
        query_hash = hashlib.md5(cache_key.encode("utf-8")).hexdigest()[:12]

        with self._logger.context(operation="search", query_hash=query_hash):
            cached = self._cache.get_query(cache_key)
            if cached is not None:
                self._metrics.counter("search_requests_total").inc(cache="hit")
                self._logger.debug("Using cached search results", results=len(cached))
                return [r.model_copy(deep=True) for r in cached]

            self._metrics.counter("search_requests_total").inc(cache="miss")

            # Captured before any I/O so a concurrent invalidation wins
            generation = self._cache.generation

            query_embedding = await self._embeddings.generate_embedding(query)
            documents = await self._get_documents_with_cache(generation)

            scored = self.calculate_similarities(query_embedding, documents)
            results = self.apply_search_options(scored, opts)

            self._cache.set_query(cache_key, results, generation=generation)

            elapsed = time.perf_counter() - start
            self._metrics.histogram("search_latency_seconds").observe(elapsed)
            self._logger.info(
                "Search completed",
                searched=len(documents),
                results=len(results),
                best_similarity=round(results[0].similarity, 4) if results else None,
                duration_ms=round(elapsed * 1000, 1),
            )

        return [r.model_copy(deep=True) for r in results]

    async def _get_documents_with_cache(self, generation: int | None = None) -> list[Document]:
        cached = self._cache.get_documents()
        if cached is not None:
            self._logger.debug("Using cached documents", documents=len(cached))
            return cached

        documents = await self._store.list_all()
        with_embeddings = [d for d in documents if d.has_embedding]

        self._cache.set_documents(with_embeddings, generation=generation)
        self._metrics.gauge("documents_total").set(len(with_embeddings))
        self._logger.debug(
            "Loaded document snapshot",
            documents=len(documents),
            with_embeddings=len(with_embeddings),
        )
        return with_embeddings

    def calculate_similarities(
        self,
        query_embedding: list[float],
        documents: list[Document],
    ) -> list[SearchResult]:
        """Score documents, keeping those at or above the base floor."""
        results = []

        for document in documents:
            if not document.embedding:
                continue

            try:
                similarity = self._ranker.score(query_embedding, document.embedding)
            except VectorMathError as e:
                self._logger.warning(
                    "Skipping document during scoring",
                    document_id=document.id,
                    reason=str(e),
                )
                continue

            if similarity >= self.min_similarity_threshold:
                results.append(
                    SearchResult(
                        id=document.id,
                        content=document.content,
                        metadata=dict(document.metadata),
                        similarity=similarity,
                    )
                )

        return results

    def apply_search_options(
        self,
        results: list[SearchResult],
        options: SearchOptions,
    ) -> list[SearchResult]:
        filtered = list(results)

        if options.min_similarity is not None:
            filtered = [r for r in filtered if r.similarity >= options.min_similarity]

        # list.sort is stable, so equal scores keep corpus order
        filtered.sort(key=lambda r: r.similarity, reverse=True)

        limit = options.limit if options.limit is not None else self._settings.default_limit
        filtered = filtered[:limit]

        if options.include_metadata is False:
            filtered = [r.model_copy(update={"metadata": {}}) for r in filtered]

        return filtered

    # =========================================================================
    # Search helpers
    # =========================================================================

    async def search_with_highlights(
        self,
        query: str,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> list[HighlightedResult]:
        results = await self.search_similar(query, options)
        return [
            HighlightedResult(
                **result.model_dump(),
                highlights=self.extract_highlights(result.content, query),
            )
            for result in results
        ]

    @staticmethod
    def extract_highlights(content: str, query: str) -> list[str]:
        """Up to three sentences mentioning a query word longer than 2 chars."""
        words = [w for w in _WHITESPACE.split(query.lower()) if len(w) > 2]
        highlights = []

        for sentence in _SENTENCE_SPLIT.split(content):
            lowered = sentence.lower()
            if any(word in lowered for word in words):
                highlights.append(sentence.strip())
                if len(highlights) >= MAX_HIGHLIGHTS:
                    break

        return highlights

    async def get_search_suggestions(self, partial_query: str, limit: int = 5) -> list[str]:
        """Corpus words that extend ``partial_query``, in first-seen order."""
        if len(partial_query) < 2:
            return []

        prefix = partial_query.lower()
        documents = await self._get_documents_with_cache(self._cache.generation)
        suggestions: dict[str, None] = {}

        for document in documents:
            for word in _WHITESPACE.split(document.content.lower()):
                if word.startswith(prefix) and len(word) > len(prefix):
                    suggestions.setdefault(word, None)
                    if len(suggestions) >= limit:
                        return list(suggestions)

        return list(suggestions)

    async def search_with_metadata_filter(
        self,
        query: str,
        metadata_filter: dict[str, Any],
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Search a wide candidate set, then keep exact metadata matches."""
        opts = self._coerce_options(options)
        self.validate_options(opts)

        candidates = await self.search_similar(
            query,
            opts.model_copy(
                update={
                    "limit": min(FILTER_CANDIDATES, self._settings.max_limit),
                    "include_metadata": True,
                }
            ),
        )
        matches = [
            r
            for r in candidates
            if all(r.metadata.get(key) == value for key, value in metadata_filter.items())
        ]

        limit = opts.limit if opts.limit is not None else self._settings.default_limit
        matches = matches[:limit]

        if opts.include_metadata is False:
            matches = [r.model_copy(update={"metadata": {}}) for r in matches]
        return matches

    @staticmethod
    def create_search_summary(
        query: str,
        results: list[SearchResult],
        total_searched: int,
    ) -> str:
        if not results:
            return (
                f'No relevant documents found for "{query}" '
                f"(searched {total_searched} documents)"
            )

        best = results[0]
        average = sum(r.similarity for r in results) / len(results)

        return " | ".join(
            [
                f'Found {len(results)} relevant documents for "{query}"',
                f"Best match: {best.similarity:.3f} similarity",
                f"Average similarity: {average:.3f}",
                f"Searched {total_searched} total documents",
            ]
        )

    # =========================================================================
    # Cache management
    # =========================================================================

    def invalidate_cache(self, reason: str = "mutation") -> None:
        """Drop the document snapshot and every cached query."""
        self._cache.invalidate()
        self._metrics.counter("cache_invalidations_total").inc(reason=reason)
        self._logger.debug("Invalidated retrieval cache", reason=reason)

    def clear_cache(self) -> None:
        self.invalidate_cache(reason="manual")

    def get_cache_stats(self) -> CacheStats:
        return self._cache.stats()
