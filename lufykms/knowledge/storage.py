"""
Document Stores

Persistence backends satisfying the DocumentStore protocol.

Design decisions:
- Stores persist documents as given; ids and timestamps are the facade's job
- Redis keeps one JSON value per document under a key prefix
- Backend failures surface as StorageError
"""

from lufykms.core.exceptions import StorageError
from lufykms.core.types import Document


class InMemoryDocumentStore:
    """
    Dict-backed store for development and testing.

    Preserves insertion order; re-saving an id replaces it in place.
    Not suitable for production as documents are lost on restart.
    """

    def __init__(self, collection: str = "knowledge_base"):
        self.collection = collection
        self._documents: dict[str, Document] = {}

    async def save(self, document: Document) -> str:
        self._documents[document.id] = document.model_copy(deep=True)
        return document.id

    async def get(self, document_id: str) -> Document | None:
        document = self._documents.get(document_id)
        return document.model_copy(deep=True) if document else None

    async def list_all(self) -> list[Document]:
        return [d.model_copy(deep=True) for d in self._documents.values()]

    async def delete(self, document_id: str) -> None:
        self._documents.pop(document_id, None)

    async def clear_all(self) -> int:
        count = len(self._documents)
        self._documents.clear()
        return count

    async def check_connection(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._documents)


class RedisDocumentStore:
    """
    Redis-based document storage.

    Documents are stored as JSON strings under ``{key_prefix}{id}``.
    Listing uses SCAN so it does not block the server.
    """

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "lufykms:document:",
        client=None,
    ):
        self._redis_url = redis_url
        self._key_prefix = key_prefix
        self._client = client

    async def _get_client(self):
        """Lazy initialization of Redis client."""
        if self._client is None:
            import redis.asyncio as redis

            self._client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._client

    def _make_key(self, document_id: str) -> str:
        return f"{self._key_prefix}{document_id}"

    async def _keys(self, client) -> list[str]:
        return [key async for key in client.scan_iter(match=f"{self._key_prefix}*")]

    async def save(self, document: Document) -> str:
        try:
            client = await self._get_client()
            await client.set(self._make_key(document.id), document.model_dump_json())
        except Exception as e:
            raise StorageError(
                f"Failed to save document {document.id}",
                context={"document_id": document.id},
                cause=e,
            )
        return document.id

    async def get(self, document_id: str) -> Document | None:
        try:
            client = await self._get_client()
            data = await client.get(self._make_key(document_id))
        except Exception as e:
            raise StorageError(
                f"Failed to get document {document_id}",
                context={"document_id": document_id},
                cause=e,
            )
        return Document.model_validate_json(data) if data else None

    async def list_all(self) -> list[Document]:
        try:
            client = await self._get_client()
            keys = sorted(await self._keys(client))
            values = await client.mget(keys) if keys else []
        except Exception as e:
            raise StorageError("Failed to list documents", cause=e)
        return [Document.model_validate_json(v) for v in values if v]

    async def delete(self, document_id: str) -> None:
        try:
            client = await self._get_client()
            await client.delete(self._make_key(document_id))
        except Exception as e:
            raise StorageError(
                f"Failed to delete document {document_id}",
                context={"document_id": document_id},
                cause=e,
            )

    async def clear_all(self) -> int:
        try:
            client = await self._get_client()
            keys = await self._keys(client)
            if not keys:
                return 0
            return int(await client.delete(*keys))
        except Exception as e:
            raise StorageError("Failed to clear documents", cause=e)

    async def check_connection(self) -> bool:
        try:
            client = await self._get_client()
            return bool(await client.ping())
        except Exception:
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
