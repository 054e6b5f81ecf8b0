"""
Embedding Engine

Turn text into a fixed-dimension vector through an external backend.

Design decisions:
- Content-hash cache in front of the backend (LRU-bounded)
- Oversized text is chunked and the chunk vectors are averaged
- Chunk calls run through a single-worker, fixed-spacing pipeline
- Every backend call is retried with exponential backoff and a per-call timeout
- Failures propagate; nothing is cached for a failed call
"""

import asyncio
import hashlib
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from lufykms.config.settings import EmbeddingSettings
from lufykms.core.exceptions import (
    EmbeddingBackendError,
    EmbeddingTimeoutError,
    ValidationError,
)
from lufykms.core.interfaces import EmbeddingBackend, EmbeddingCache
from lufykms.knowledge.chunking import split_into_chunks
from lufykms.knowledge.similarity import average_embeddings
from lufykms.observability.logging import StructuredLogger, get_logger
from lufykms.observability.metrics import MetricsCollector, get_metrics_collector

T = TypeVar("T")
R = TypeVar("R")

Sleep = Callable[[float], Awaitable[None]]


class LRUEmbeddingCache:
    """
    Bounded embedding cache with least-recently-used eviction.

    Reads refresh recency. Writes beyond ``max_size`` evict the
    least recently used entries.
    """

    def __init__(self, max_size: int = 100):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._entries: OrderedDict[str, list[float]] = OrderedDict()
        self.evictions = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: str) -> list[float] | None:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def set(self, key: str, value: list[float]) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        self._prune()

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def _prune(self) -> None:
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)
            self.evictions += 1

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class RetryPolicy:
    """
    Retry with exponential backoff and a per-attempt timeout.

    A timeout counts as a failed attempt. After the final attempt
    the failure surfaces as EmbeddingTimeoutError (if it timed out)
    or EmbeddingBackendError, chained to the underlying error.
    Validation errors are never retried.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        backoff_factor: float = 1.5,
        timeout: float = 30.0,
        sleep: Sleep | None = None,
        logger: StructuredLogger | None = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.backoff_factor = backoff_factor
        self.timeout = timeout
        self._sleep = sleep or asyncio.sleep
        self._logger = logger or get_logger("lufykms.retry")

    @classmethod
    def from_settings(cls, settings: EmbeddingSettings, **kwargs) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_base_delay,
            backoff_factor=settings.retry_backoff,
            timeout=settings.request_timeout,
            **kwargs,
        )

    def delays(self) -> list[float]:
        """Waits inserted between attempts, in order."""
        return [self.base_delay * self.backoff_factor**i for i in range(self.max_attempts - 1)]

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        delay = self.base_delay
        last_error: Exception | None = None
        timed_out = False

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.wait_for(operation(), timeout=self.timeout)
            except ValidationError:
                raise
            except (asyncio.TimeoutError, TimeoutError) as e:
                last_error = e
                timed_out = True
            except Exception as e:
                last_error = e
                timed_out = False

            self._logger.warning(
                "Embedding attempt failed",
                attempt=attempt,
                max_attempts=self.max_attempts,
                timed_out=timed_out,
                reason=str(last_error) or type(last_error).__name__,
            )

            if attempt < self.max_attempts:
                await self._sleep(delay)
                delay *= self.backoff_factor

        if timed_out:
            raise EmbeddingTimeoutError(
                f"Embedding request timed out after {self.timeout}s",
                attempts=self.max_attempts,
                context={"timeout": self.timeout},
                cause=last_error,
            )
        raise EmbeddingBackendError(
            f"Embedding request failed after {self.max_attempts} attempts: {last_error}",
            attempts=self.max_attempts,
            cause=last_error,
        )


class RateLimitedPipeline:
    """
    Single-worker pipeline.

    Items are processed strictly one after another, with a fixed
    delay between consecutive items. The first failure aborts the run.
    """

    def __init__(self, delay: float = 0.1, sleep: Sleep | None = None):
        self.delay = delay
        self._sleep = sleep or asyncio.sleep

    async def run(self, items: Iterable[T], worker: Callable[[T], Awaitable[R]]) -> list[R]:
        results: list[R] = []
        for i, item in enumerate(items):
            if i and self.delay > 0:
                await self._sleep(self.delay)
            results.append(await worker(item))
        return results


class EmbeddingEngine:
    """
    Cached, chunk-aware embedding generation.

    Usage:
        engine = EmbeddingEngine(backend=OpenAIEmbeddingBackend())
        vector = await engine.generate_embedding("some text")
    """

    def __init__(
        self,
        backend: EmbeddingBackend,
        cache: EmbeddingCache | None = None,
        settings: EmbeddingSettings | None = None,
        retry_policy: RetryPolicy | None = None,
        pipeline: RateLimitedPipeline | None = None,
        logger: StructuredLogger | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._settings = settings or EmbeddingSettings()
        self._backend = backend
        self._cache = cache if cache is not None else LRUEmbeddingCache(self._settings.cache_size)
        self._logger = logger or get_logger("lufykms.embeddings")
        self._metrics = metrics or get_metrics_collector()
        self._retry = retry_policy or RetryPolicy.from_settings(
            self._settings, logger=self._logger
        )
        self._pipeline = pipeline or RateLimitedPipeline(delay=self._settings.chunk_delay)

    @property
    def model(self) -> str:
        return self._backend.model

    @property
    def max_chars_per_chunk(self) -> int:
        return self._settings.max_chars_per_chunk

    @property
    def cache(self) -> EmbeddingCache:
        return self._cache

    @staticmethod
    def cache_key(text: str) -> str:
        """Stable content hash used as the cache key."""
        return hashlib.md5(text.encode("utf-8")).hexdigest()

    async def generate_embedding(self, text: str) -> list[float]:
        """
        Embed ``text``, consulting the cache first.

        Text longer than ``max_chars_per_chunk`` is split and the
        chunk vectors are averaged. Only the aggregate is cached.

        Raises:
            EmbeddingBackendError: Backend failed after all retries
            EmbeddingTimeoutError: Final attempt exceeded the timeout
        """
        key = self.cache_key(text)

        cached = self._cache.get(key)
        if cached is not None:
            self._metrics.counter("embedding_cache_events_total").inc(result="hit")
            self._logger.debug("Using cached embedding", chars=len(text))
            return list(cached)

        self._metrics.counter("embedding_cache_events_total").inc(result="miss")
        start = time.perf_counter()

        try:
            if len(text) <= self.max_chars_per_chunk:
                embedding = await self._embed_single(text)
            else:
                embedding = await self._embed_chunked(text)
        except Exception as e:
            self._logger.error("Embedding generation failed", error=e, chars=len(text))
            raise

        elapsed = time.perf_counter() - start
        self._metrics.histogram("embedding_latency_seconds").observe(elapsed)
        self._logger.info(
            "Embedding generated",
            chars=len(text),
            dimension=len(embedding),
            duration_ms=round(elapsed * 1000, 1),
        )

        self._cache.set(key, embedding)
        return list(embedding)

    async def _embed_single(self, text: str) -> list[float]:
        try:
            embedding = await self._retry.call(lambda: self._backend.embed(text))
        except Exception:
            self._metrics.counter("embedding_requests_total").inc(status="error")
            raise
        self._metrics.counter("embedding_requests_total").inc(status="success")
        return list(embedding)

    async def _embed_chunked(self, text: str) -> list[float]:
        chunks = split_into_chunks(text, self.max_chars_per_chunk)
        self._logger.info(
            "Large text split into chunks",
            chars=len(text),
            chunks=len(chunks),
        )

        embeddings = await self._pipeline.run(chunks, self._embed_single)
        return average_embeddings(embeddings)

    async def check_connection(self) -> bool:
        """Backend connectivity probe. Never raises."""
        try:
            return await self._backend.check_connection()
        except Exception as e:
            self._logger.warning("Embedding backend probe failed", reason=str(e))
            return False

    async def validate_connection(self) -> bool:
        """Round-trip a real embedding through the backend. Never raises."""
        try:
            await self._embed_single("test")
            return True
        except Exception as e:
            self._logger.warning("Embedding backend validation failed", reason=str(e))
            return False

    async def get_embedding_dimension(self) -> int:
        """Dimension reported by a live call, or the configured one on failure."""
        try:
            return len(await self._embed_single("test"))
        except Exception as e:
            self._logger.warning("Falling back to configured dimension", reason=str(e))
            return self._settings.dimension
