"""
Retrieval Cache

Two independent TTL caches used by search:
- Document snapshot: one entry, all documents that carry an embedding
- Query results: one entry per (normalized query, option set)

Design decisions:
- Lazy expiry: stale entries are dropped on read, no background sweep
- Coarse invalidation: any mutation clears both levels
- A generation counter stops a load that started before an
  invalidation from repopulating the cache after it
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

from lufykms.core.types import CacheEntry, CacheStats, Document, SearchResult

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 30 * 60

DOCUMENTS_KEY = "all_documents"


class TTLCache(Generic[T]):
    """
    Keyed cache whose entries expire ``ttl`` seconds after insertion.

    With ``max_entries`` set, inserting beyond the bound evicts the
    oldest entries first.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def _is_fresh(self, entry: CacheEntry[T]) -> bool:
        return self._clock() - entry.inserted_at < self.ttl

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if not self._is_fresh(entry):
            # Stale entries behave as absent
            self._entries.pop(key, None)
            self.misses += 1
            return None

        self.hits += 1
        return entry.value

    def set(self, key: str, value: T) -> None:
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value=value, inserted_at=self._clock())

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and self._is_fresh(entry)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RetrievalCache:
    """
    Document snapshot cache plus query result cache.

    Mutated by SearchEngine, invalidated by the KnowledgeStore facade.
    """

    def __init__(
        self,
        document_ttl: float = DEFAULT_TTL_SECONDS,
        query_ttl: float = DEFAULT_TTL_SECONDS,
        max_query_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.documents: TTLCache[list[Document]] = TTLCache(ttl=document_ttl, clock=clock)
        self.queries: TTLCache[list[SearchResult]] = TTLCache(
            ttl=query_ttl,
            max_entries=max_query_entries,
            clock=clock,
        )
        self._generation = 0

    @property
    def generation(self) -> int:
        """Incremented on every invalidation."""
        return self._generation

    def get_documents(self) -> list[Document] | None:
        return self.documents.get(DOCUMENTS_KEY)

    def set_documents(self, documents: list[Document], generation: int | None = None) -> bool:
        """
        Store the snapshot unless an invalidation happened since ``generation``.

        Returns whether the snapshot was stored.
        """
        if generation is not None and generation != self._generation:
            return False
        self.documents.set(DOCUMENTS_KEY, documents)
        return True

    def get_query(self, key: str) -> list[SearchResult] | None:
        return self.queries.get(key)

    def set_query(
        self,
        key: str,
        results: list[SearchResult],
        generation: int | None = None,
    ) -> bool:
        if generation is not None and generation != self._generation:
            return False
        self.queries.set(key, results)
        return True

    def invalidate(self) -> None:
        """Clear both levels."""
        self._generation += 1
        self.documents.clear()
        self.queries.clear()

    def stats(self) -> CacheStats:
        return CacheStats(
            document_entries=len(self.documents),
            query_entries=len(self.queries),
            hits=self.documents.hits + self.queries.hits,
            misses=self.documents.misses + self.queries.misses,
        )
