"""Base storage class and helpers.

Contains client lifecycle, collection management, and the conversion
between pydantic models and Qdrant payloads.
"""

from __future__ import annotations

import hashlib
from typing import Any, TypeVar

from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient, models

from timetracker.config import settings
from timetracker.exceptions import StorageError

ModelT = TypeVar("ModelT", bound=BaseModel)

# Logical name -> collection suffix
COLLECTION_NAMES = {
    "webhooks": "webhooks",
    "webhook_deliveries": "webhook_deliveries",
    "time_entries": "time_entries",
}

# Payload fields indexed per collection
INDEXED_FIELDS: dict[str, dict[str, models.PayloadSchemaType]] = {
    "webhooks": {
        "is_active": models.PayloadSchemaType.BOOL,
        "events": models.PayloadSchemaType.KEYWORD,
        "idx_name": models.PayloadSchemaType.KEYWORD,
    },
    "webhook_deliveries": {
        "webhook_id": models.PayloadSchemaType.KEYWORD,
        "status": models.PayloadSchemaType.KEYWORD,
        "idx_next_retry": models.PayloadSchemaType.FLOAT,
        "idx_created": models.PayloadSchemaType.FLOAT,
    },
    "time_entries": {
        "idx_project_id": models.PayloadSchemaType.KEYWORD,
        "idx_start": models.PayloadSchemaType.FLOAT,
    },
}

# Records are looked up by payload, never by similarity. Every point carries
# the same one-dimensional placeholder vector.
PLACEHOLDER_VECTOR = [0.0]

# Derived payload keys (used only for filtering) start with this prefix.
INDEX_KEY_PREFIX = "idx_"

SCROLL_PAGE_SIZE = 256


class StorageBase:
    """Base class for time tracker storage.

    Provides:
    - Client initialization (embedded local store, in-memory, or server)
    - Collection creation and indexing
    - Point ID derivation and payload (de)serialization
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        path: str | None = None,
        prefix: str | None = None,
    ) -> None:
        """Initialize storage settings.

        Args:
            url: Qdrant server URL. Defaults to settings.qdrant_url.
            api_key: Qdrant API key. Defaults to settings.qdrant_api_key.
            path: Embedded store directory, or ":memory:". Used when no URL is set.
            prefix: Collection name prefix. Defaults to settings.collection_prefix.
        """
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._path = path or str(settings.resolved_qdrant_path)
        self._prefix = prefix or settings.collection_prefix
        self._client: AsyncQdrantClient | None = None
        self._collections_initialized = False

    @property
    def client(self) -> AsyncQdrantClient:
        """Get the Qdrant client, raising if not initialized."""
        if self._client is None:
            raise StorageError("Storage not initialized. Call initialize() first.")
        return self._client

    async def initialize(self) -> None:
        """Open the client and ensure collections exist."""
        if self._url:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        elif self._path == ":memory:":
            self._client = AsyncQdrantClient(location=":memory:")
        else:
            self._client = AsyncQdrantClient(path=self._path)
        self._collections_initialized = False
        await self._ensure_collections()

    async def close(self) -> None:
        """Close the client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._collections_initialized = False

    async def __aenter__(self) -> StorageBase:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    def _collection_name(self, name: str) -> str:
        """Get full collection name with prefix."""
        suffix = COLLECTION_NAMES.get(name, name)
        return f"{self._prefix}_{suffix}"

    @staticmethod
    def _key_to_point_id(key: str) -> str:
        """Convert a record key to a valid Qdrant point ID.

        Qdrant requires point IDs to be UUIDs or unsigned integers.
        The key is hashed into a deterministic UUID-format string.
        """
        h = hashlib.sha256(key.encode()).hexdigest()[:32]
        return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

    async def _ensure_collections(self) -> None:
        """Ensure all required collections exist with their payload indexes."""
        if self._collections_initialized:
            return

        collections = await self.client.get_collections()
        existing = {c.name for c in collections.collections}

        for name in COLLECTION_NAMES:
            collection_name = self._collection_name(name)
            if collection_name in existing:
                continue
            await self.client.create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(
                    size=len(PLACEHOLDER_VECTOR),
                    distance=models.Distance.EUCLID,
                ),
            )
            for field_name, schema in INDEXED_FIELDS.get(name, {}).items():
                await self.client.create_payload_index(
                    collection_name=collection_name,
                    field_name=field_name,
                    field_schema=schema,
                )

        self._collections_initialized = True

    async def _upsert(self, name: str, record_id: str, payload: dict[str, Any]) -> None:
        """Insert or replace one record."""
        await self.client.upsert(
            collection_name=self._collection_name(name),
            points=[
                models.PointStruct(
                    id=self._key_to_point_id(f"{name}/{record_id}"),
                    vector=PLACEHOLDER_VECTOR,
                    payload=payload,
                )
            ],
        )

    async def _retrieve(self, name: str, record_id: str) -> dict[str, Any] | None:
        """Fetch one record's payload by ID."""
        results = await self.client.retrieve(
            collection_name=self._collection_name(name),
            ids=[self._key_to_point_id(f"{name}/{record_id}")],
            with_payload=True,
        )
        if not results:
            return None
        return results[0].payload

    async def _delete_ids(self, name: str, record_ids: list[str]) -> None:
        """Delete records by ID."""
        await self.client.delete(
            collection_name=self._collection_name(name),
            points_selector=models.PointIdsList(
                points=[self._key_to_point_id(f"{name}/{rid}") for rid in record_ids],
            ),
        )

    async def _scroll_all(
        self,
        name: str,
        scroll_filter: models.Filter | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Page through a collection and return every matching payload."""
        payloads: list[dict[str, Any]] = []
        offset: Any = None

        while True:
            page, offset = await self.client.scroll(
                collection_name=self._collection_name(name),
                scroll_filter=scroll_filter,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            payloads.extend(p.payload for p in page if p.payload is not None)
            if offset is None or (limit is not None and len(payloads) >= limit):
                break

        return payloads if limit is None else payloads[:limit]

    async def _count(self, name: str, count_filter: models.Filter | None = None) -> int:
        """Count records matching a filter."""
        result = await self.client.count(
            collection_name=self._collection_name(name),
            count_filter=count_filter,
            exact=True,
        )
        return result.count

    @staticmethod
    def _model_to_payload(model: BaseModel, **index_fields: Any) -> dict[str, Any]:
        """Convert a model to a payload, adding derived ``idx_`` fields."""
        payload = model.model_dump(mode="json")
        for key, value in index_fields.items():
            if value is not None:
                payload[f"{INDEX_KEY_PREFIX}{key}"] = value
        return payload

    @staticmethod
    def _payload_to_model(payload: dict[str, Any], model_class: type[ModelT]) -> ModelT:
        """Convert a payload back to a model, dropping derived fields."""
        clean = {k: v for k, v in payload.items() if not k.startswith(INDEX_KEY_PREFIX)}
        return model_class.model_validate(clean)


def match(key: str, value: Any) -> models.FieldCondition:
    """Exact-match condition on a payload key."""
    return models.FieldCondition(key=key, match=models.MatchValue(value=value))
