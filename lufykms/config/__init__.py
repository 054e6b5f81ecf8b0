"""
Configuration Module

Centralized configuration management for the retrieval core.
"""

from lufykms.config.settings import (
    CacheSettings,
    EmbeddingSettings,
    ObservabilitySettings,
    SearchSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "CacheSettings",
    "EmbeddingSettings",
    "ObservabilitySettings",
    "SearchSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
