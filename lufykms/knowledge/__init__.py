"""
Knowledge Module

Chunking, embedding, caching, search and ingestion.
"""

from lufykms.knowledge.backends import (
    HashEmbeddingBackend,
    LocalEmbeddingBackend,
    OpenAIEmbeddingBackend,
)
from lufykms.knowledge.cache import RetrievalCache, TTLCache
from lufykms.knowledge.chunking import (
    estimate_optimal_chunk_size,
    split_into_chunks,
    split_into_detailed_chunks,
)
from lufykms.knowledge.embeddings import (
    EmbeddingEngine,
    LRUEmbeddingCache,
    RateLimitedPipeline,
    RetryPolicy,
)
from lufykms.knowledge.search import SearchEngine
from lufykms.knowledge.similarity import (
    CosineRanker,
    average_embeddings,
    cosine_similarity,
    euclidean_distance,
    manhattan_distance,
    normalize,
    weighted_average_embeddings,
)
from lufykms.knowledge.storage import InMemoryDocumentStore, RedisDocumentStore
from lufykms.knowledge.store import KnowledgeStore

__all__ = [
    # Backends
    "HashEmbeddingBackend",
    "LocalEmbeddingBackend",
    "OpenAIEmbeddingBackend",
    # Cache
    "RetrievalCache",
    "TTLCache",
    # Chunking
    "estimate_optimal_chunk_size",
    "split_into_chunks",
    "split_into_detailed_chunks",
    # Embeddings
    "EmbeddingEngine",
    "LRUEmbeddingCache",
    "RateLimitedPipeline",
    "RetryPolicy",
    # Search
    "SearchEngine",
    # Similarity
    "CosineRanker",
    "average_embeddings",
    "cosine_similarity",
    "euclidean_distance",
    "manhattan_distance",
    "normalize",
    "weighted_average_embeddings",
    # Storage
    "InMemoryDocumentStore",
    "RedisDocumentStore",
    "KnowledgeStore",
]
