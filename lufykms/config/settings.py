"""
Settings Management

Provides centralized, type-safe configuration using Pydantic.
Supports environment variables, .env files, and hierarchical config.

Design decisions:
- Using pydantic-settings for validation and type coercion
- Immutable settings after initialization (frozen model)
- One settings group per concern: embedding, search, cache, storage, observability
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmbeddingSettings(BaseSettings):
    """Embedding backend and engine configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    # Provider selection (hash = offline, deterministic, no API key required)
    provider: Literal["openai", "local", "hash"] = "hash"
    model: str | None = Field(default=None, description="Backend model, provider default if unset")
    api_key: SecretStr | None = Field(default=None)
    base_url: str | None = Field(default=None)
    # Sent to OpenAI only when set explicitly; otherwise the hash backend size
    dimension: int = Field(default=768, ge=1)

    # Engine settings
    max_chars_per_chunk: int = Field(default=8000, ge=1)
    cache_size: int = Field(default=100, ge=1, description="Max embedding cache entries")
    chunk_delay: float = Field(default=0.1, ge=0, description="Seconds between chunk calls")

    # Retry policy
    max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_backoff: float = Field(default=1.5, ge=1.0)
    request_timeout: float = Field(default=30.0, gt=0)


class SearchSettings(BaseSettings):
    """Search and ranking configuration."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    min_similarity_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    default_limit: int = Field(default=5, ge=1, le=100)
    max_limit: int = Field(default=100, ge=1)
    max_query_length: int = Field(default=10000, ge=1)


class CacheSettings(BaseSettings):
    """Retrieval cache configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    document_ttl: float = Field(default=3600.0, gt=0, description="Document snapshot TTL (s)")
    search_ttl: float = Field(default=1800.0, gt=0, description="Query result TTL (s)")
    max_query_entries: int | None = Field(default=None, ge=1)


class StorageSettings(BaseSettings):
    """Document store configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    provider: Literal["memory", "redis"] = "memory"
    collection: str = Field(default="knowledge_base")

    # Redis settings
    redis_url: str = Field(default="redis://localhost:6379/0")
    key_prefix: str = Field(default="lufykms:document:")


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(env_prefix="OBS_")

    enable_metrics: bool = Field(default=True)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    """
    Master settings aggregator.

    This is the single source of truth for all configuration.
    Sub-settings are composed here to maintain clear boundaries.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,  # Immutable after creation
    )

    # Application metadata
    app_name: str = Field(default="LufyKMS")
    app_version: str = Field(default="0.1.0")
    environment: Literal["development", "staging", "production"] = "development"

    # Component settings (composed)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure only one settings instance exists.
    This is safe because settings are frozen/immutable.
    """
    return Settings()
