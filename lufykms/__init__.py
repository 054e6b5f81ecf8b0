"""
LufyKMS — Document Retrieval Core

Embedding-backed knowledge base with multi-level caching:
- Chunking: Bounded segments on natural text boundaries
- Embeddings: Cached, retried, rate-limited backend calls
- Search: Exhaustive cosine ranking over a cached corpus snapshot
- Ingestion: Facade that keeps caches coherent with the store

Copyright (c) 2024 LufyKMS Contributors
"""

__version__ = "0.1.0"
__author__ = "LufyKMS Team"
