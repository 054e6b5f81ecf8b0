"""
Embedding Backends

Concrete implementations of the EmbeddingBackend protocol.
Each backend makes exactly one raw call per ``embed``; caching,
chunking and retries belong to EmbeddingEngine.
"""

import asyncio
import hashlib
import math
import re
from typing import Any

_TOKEN_PATTERN = re.compile(r"\w+")


class OpenAIEmbeddingBackend:
    """
    OpenAI embedding backend.

    Uses text-embedding-3-small/large models.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,  # Optional dimension reduction
        base_url: str | None = None,
    ):
        self._model = model
        self._dimensions = dimensions
        self._api_key = api_key
        self._base_url = base_url
        self._client = None

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI

            kwargs: dict[str, Any] = {}
            if self._api_key:
                kwargs["api_key"] = self._api_key
            if self._base_url:
                kwargs["base_url"] = self._base_url

            self._client = AsyncOpenAI(**kwargs)
        return self._client

    @property
    def model(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int | None:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": self._model,
            "input": text,
        }
        if self._dimensions:
            kwargs["dimensions"] = self._dimensions

        response = await client.embeddings.create(**kwargs)
        return list(response.data[0].embedding)

    async def check_connection(self) -> bool:
        try:
            await self._get_client().models.retrieve(self._model)
            return True
        except Exception:
            return False


class LocalEmbeddingBackend:
    """
    Local embedding backend using sentence-transformers.

    Runs on CPU/GPU locally, no API calls needed.
    Encoding happens in a worker thread to keep the event loop free.
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        device: str = "cpu",
    ):
        self._model_name = model_name
        self._device = device
        self._model = None

    def _get_model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self._model_name, device=self._device)
        return self._model

    @property
    def model(self) -> str:
        return self._model_name

    async def embed(self, text: str) -> list[float]:
        model = await asyncio.to_thread(self._get_model)
        embedding = await asyncio.to_thread(model.encode, text, convert_to_numpy=True)
        return embedding.tolist()

    async def check_connection(self) -> bool:
        try:
            await asyncio.to_thread(self._get_model)
            return True
        except Exception:
            return False


class HashEmbeddingBackend:
    """
    Deterministic offline backend.

    Hashes each lowercase word token into a signed bucket and
    L2-normalizes the result, so texts sharing vocabulary score
    higher under cosine similarity. Makes no network calls.

    Safe for unit tests, CI and demos without API keys.
    """

    def __init__(self, dimension: int = 768, model: str = "hash-embedding-v1"):
        if dimension < 1:
            raise ValueError("dimension must be at least 1")
        self._dimension = dimension
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    def _bucket(self, token: str) -> tuple[int, float]:
        digest = hashlib.md5(token.encode("utf-8")).digest()
        index = int.from_bytes(digest[:4], "big") % self._dimension
        sign = 1.0 if digest[4] & 1 else -1.0
        return index, sign

    async def embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for token in _TOKEN_PATTERN.findall(text.lower()):
            index, sign = self._bucket(token)
            vector[index] += sign

        norm = math.sqrt(sum(x * x for x in vector))
        if norm == 0:
            return vector
        return [x / norm for x in vector]

    async def check_connection(self) -> bool:
        return True
