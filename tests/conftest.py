"""
Test Configuration

Shared fixtures and test utilities for the retrieval core.
"""

import pytest

from lufykms.config.settings import EmbeddingSettings, SearchSettings, Settings
from lufykms.knowledge.cache import RetrievalCache
from lufykms.knowledge.embeddings import EmbeddingEngine, RateLimitedPipeline, RetryPolicy
from lufykms.knowledge.search import SearchEngine
from lufykms.knowledge.storage import InMemoryDocumentStore
from lufykms.knowledge.store import KnowledgeStore
from lufykms.observability.logging import BufferHandler, LogLevel, StructuredLogger
from lufykms.observability.metrics import MetricsCollector

# Each keyword owns one axis, so similarity reflects shared keywords
VOCABULARY = ("python", "redis", "cache", "search", "vector", "cooking", "garden", "music")


def keyword_vector(text: str) -> list[float]:
    lowered = text.lower()
    return [float(lowered.count(word)) for word in VOCABULARY]


class FakeEmbeddingBackend:
    """Counting backend with deterministic keyword vectors."""

    def __init__(self, model: str = "fake-embedding"):
        self._model = model
        self.calls: list[str] = []
        self.failures: list[Exception] = []
        self.healthy = True

    @property
    def model(self) -> str:
        return self._model

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.failures:
            raise self.failures.pop(0)
        return keyword_vector(text)

    async def check_connection(self) -> bool:
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return self.healthy

    @property
    def call_count(self) -> int:
        return len(self.calls)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: multi-component tests")


@pytest.fixture
def log_buffer() -> BufferHandler:
    return BufferHandler(level=LogLevel.DEBUG)


@pytest.fixture
def logger(log_buffer) -> StructuredLogger:
    return StructuredLogger(name="lufykms.test", level=LogLevel.DEBUG, handlers=[log_buffer])


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeEmbeddingBackend:
    return FakeEmbeddingBackend()


@pytest.fixture
def embedding_settings() -> EmbeddingSettings:
    return EmbeddingSettings(provider="hash", max_chars_per_chunk=200, chunk_delay=0.1)


@pytest.fixture
def embedding_engine(backend, embedding_settings, fake_sleep, logger, metrics) -> EmbeddingEngine:
    return EmbeddingEngine(
        backend=backend,
        settings=embedding_settings,
        retry_policy=RetryPolicy.from_settings(embedding_settings, sleep=fake_sleep, logger=logger),
        pipeline=RateLimitedPipeline(delay=embedding_settings.chunk_delay, sleep=fake_sleep),
        logger=logger,
        metrics=metrics,
    )


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def retrieval_cache(clock) -> RetrievalCache:
    return RetrievalCache(document_ttl=1800, query_ttl=1800, clock=clock)


@pytest.fixture
def search_engine(
    document_store, embedding_engine, retrieval_cache, logger, metrics
) -> SearchEngine:
    return SearchEngine(
        document_store=document_store,
        embedding_engine=embedding_engine,
        cache=retrieval_cache,
        settings=SearchSettings(),
        logger=logger,
        metrics=metrics,
    )


@pytest.fixture
def knowledge_store(document_store, embedding_engine, search_engine, logger) -> KnowledgeStore:
    return KnowledgeStore(
        document_store=document_store,
        embedding_engine=embedding_engine,
        search_engine=search_engine,
        settings=Settings(),
        logger=logger,
    )
