"""
Knowledge Store Factory

Assembles a KnowledgeStore and its collaborators from Settings.
Components can also be constructed by hand for full control.
"""

import os

from lufykms.config.settings import EmbeddingSettings, Settings, StorageSettings
from lufykms.core.exceptions import ConfigurationError
from lufykms.core.interfaces import DocumentStore, EmbeddingBackend
from lufykms.knowledge.cache import RetrievalCache
from lufykms.knowledge.embeddings import EmbeddingEngine, LRUEmbeddingCache
from lufykms.knowledge.search import SearchEngine
from lufykms.knowledge.store import KnowledgeStore
from lufykms.observability.logging import configure_logging
from lufykms.observability.metrics import MetricsCollector, get_metrics_collector

# Used when EMBEDDING_MODEL is unset
DEFAULT_MODELS = {
    "openai": "text-embedding-3-small",
    "local": "all-MiniLM-L6-v2",
    "hash": "hash-embedding-v1",
}


def create_embedding_backend(settings: EmbeddingSettings) -> EmbeddingBackend:
    """Build the backend named by ``settings.provider``."""
    model = settings.model or DEFAULT_MODELS.get(settings.provider)

    if settings.provider == "openai":
        from lufykms.knowledge.backends import OpenAIEmbeddingBackend

        api_key = settings.api_key.get_secret_value() if settings.api_key else None
        if not api_key and not os.environ.get("OPENAI_API_KEY"):
            raise ConfigurationError(
                "OpenAI embedding provider requires EMBEDDING_API_KEY or OPENAI_API_KEY",
                context={"provider": settings.provider},
            )

        return OpenAIEmbeddingBackend(
            api_key=api_key,
            model=model,
            dimensions=(
                settings.dimension if "dimension" in settings.model_fields_set else None
            ),
            base_url=settings.base_url,
        )

    if settings.provider == "local":
        from lufykms.knowledge.backends import LocalEmbeddingBackend

        return LocalEmbeddingBackend(model_name=model)

    if settings.provider == "hash":
        from lufykms.knowledge.backends import HashEmbeddingBackend

        return HashEmbeddingBackend(dimension=settings.dimension, model=model)

    raise ConfigurationError(
        f"Unknown embedding provider: {settings.provider}",
        context={"provider": settings.provider},
    )


def create_document_store(settings: StorageSettings) -> DocumentStore:
    """Build the document store named by ``settings.provider``."""
    if settings.provider == "memory":
        from lufykms.knowledge.storage import InMemoryDocumentStore

        return InMemoryDocumentStore(collection=settings.collection)

    if settings.provider == "redis":
        from lufykms.knowledge.storage import RedisDocumentStore

        return RedisDocumentStore(
            redis_url=settings.redis_url,
            key_prefix=settings.key_prefix,
        )

    raise ConfigurationError(
        f"Unknown storage provider: {settings.provider}",
        context={"provider": settings.provider},
    )


def create_knowledge_store(
    settings: Settings | None = None,
    *,
    document_store: DocumentStore | None = None,
    backend: EmbeddingBackend | None = None,
) -> KnowledgeStore:
    """
    Create a fully wired KnowledgeStore.

    Args:
        settings: Configuration, defaults to ``get_settings()``
        document_store: Override the configured store
        backend: Override the configured embedding backend

    Returns:
        KnowledgeStore sharing one RetrievalCache with its SearchEngine
    """
    if settings is None:
        from lufykms.config import get_settings

        settings = get_settings()

    obs = settings.observability
    root_logger = configure_logging(
        level=obs.log_level,
        json_output=obs.log_format == "json",
    )

    # Disabled metrics still need a sink; keep it out of the global registry
    metrics = get_metrics_collector() if obs.enable_metrics else MetricsCollector()

    store = document_store or create_document_store(settings.storage)
    embedding_engine = EmbeddingEngine(
        backend=backend or create_embedding_backend(settings.embedding),
        cache=LRUEmbeddingCache(settings.embedding.cache_size),
        settings=settings.embedding,
        logger=root_logger.child("lufykms.embeddings"),
        metrics=metrics,
    )

    cache = RetrievalCache(
        document_ttl=settings.cache.document_ttl,
        query_ttl=settings.cache.search_ttl,
        max_query_entries=settings.cache.max_query_entries,
    )
    search_engine = SearchEngine(
        document_store=store,
        embedding_engine=embedding_engine,
        cache=cache,
        settings=settings.search,
        logger=root_logger.child("lufykms.search"),
        metrics=metrics,
    )

    return KnowledgeStore(
        document_store=store,
        embedding_engine=embedding_engine,
        search_engine=search_engine,
        settings=settings,
        logger=root_logger.child("lufykms.store"),
    )
