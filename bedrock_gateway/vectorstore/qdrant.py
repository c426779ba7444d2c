"""Qdrant vector store."""

from typing import Any
from uuid import NAMESPACE_URL, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    PointVectors,
    VectorParams,
)

from bedrock_gateway.config import QdrantSettings, StorageSettings, get_settings
from bedrock_gateway.exceptions import ErrorCode, StorageError
from bedrock_gateway.logging_config import get_logger
from bedrock_gateway.vectorstore.models import (
    StorageStats,
    UpdateResult,
    VectorRecord,
    VectorSearchQuery,
    VectorSearchResult,
    VectorUpdate,
)
from bedrock_gateway.vectorstore.service import (
    NO_FIELDS_MESSAGE,
    NOT_FOUND_MESSAGE,
    VectorStore,
)

logger = get_logger(__name__)

# Payload keys; metadata is nested so filters address "metadata.<key>".
RECORD_ID_KEY = "record_id"
NAMESPACE_KEY = "namespace"
CONTENT_KEY = "content"
METADATA_KEY = "metadata"


def point_id(record_id: str) -> str:
    """Qdrant point id for a record id.

    Qdrant accepts only UUIDs and integers, so every id, UUID-shaped or
    not, maps to a stable UUIDv5. The original id is kept in the payload.
    """
    return str(uuid5(NAMESPACE_URL, record_id))


class QdrantVectorStore(VectorStore):
    """Single Qdrant collection; namespace is an indexed payload field."""

    backend_name = "qdrant"

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        storage: StorageSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        Args:
            settings: Qdrant configuration.
            storage: Collection dimension and default namespace.
            client: Existing client (for testing).
        """
        storage = storage or get_settings().storage
        super().__init__(storage.dimensions, storage.default_namespace)
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None
        self._collection = self._settings.collection_name

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    def _error(self, operation: str, error: Exception) -> StorageError:
        logger.error(f"Qdrant {operation} failed: {error}")
        return StorageError(
            f"Qdrant {operation} failed: {error}",
            code=ErrorCode.STORAGE_ERROR,
            details={"backend": self.backend_name, "collection": self._collection, "error": str(error)},
        )

    def _filter(self, namespace: str | None, conditions: dict[str, Any] | None = None) -> Filter:
        must = [
            FieldCondition(key=NAMESPACE_KEY, match=MatchValue(value=self._namespace(namespace)))
        ]
        for key, value in (conditions or {}).items():
            must.append(FieldCondition(key=f"{METADATA_KEY}.{key}", match=MatchValue(value=value)))
        return Filter(must=must)  # type: ignore[arg-type]

    async def initialize(self) -> None:
        """Create the collection and namespace index if missing."""
        client = await self._get_client()
        async with self._track("initialize"):
            try:
                if await client.collection_exists(self._collection):
                    return
                await client.create_collection(
                    collection_name=self._collection,
                    vectors_config=VectorParams(size=self.dimensions, distance=Distance.COSINE),
                )
                await client.create_payload_index(
                    collection_name=self._collection,
                    field_name=NAMESPACE_KEY,
                    field_schema=PayloadSchemaType.KEYWORD,
                )
            except Exception as e:
                raise self._error("initialize", e) from e
        logger.info(f"Created collection: {self._collection}", extra={"dimensions": self.dimensions})

    @staticmethod
    def _point(record: VectorRecord) -> PointStruct:
        return PointStruct(
            id=point_id(str(record.id)),
            vector=record.vector,
            payload={
                RECORD_ID_KEY: record.id,
                NAMESPACE_KEY: record.namespace,
                CONTENT_KEY: record.content,
                METADATA_KEY: record.metadata,
            },
        )

    async def insert(self, record: VectorRecord) -> str:
        return (await self.batch_insert([record]))[0]

    async def batch_insert(self, records: list[VectorRecord]) -> list[str]:
        prepared = [self._prepare(record)[0] for record in records]
        if not prepared:
            return []

        client = await self._get_client()
        async with self._track("upsert"):
            try:
                await client.upsert(
                    collection_name=self._collection,
                    points=[self._point(record) for record in prepared],
                    wait=True,
                )
            except Exception as e:
                raise self._error("upsert", e) from e

        logger.debug(f"Upserted {len(prepared)} records", extra={"collection": self._collection})
        return [str(record.id) for record in prepared]

    async def search(self, query: VectorSearchQuery) -> list[VectorSearchResult]:
        self._check_dimensions(query.vector, "query vector")
        client = await self._get_client()
        async with self._track("search"):
            try:
                results = await client.query_points(
                    collection_name=self._collection,
                    query=query.vector,
                    limit=query.limit,
                    query_filter=self._filter(query.namespace, query.filter),
                    with_payload=True,
                )
            except Exception as e:
                raise self._error("search", e) from e

        hits = []
        for point in results.points:
            payload = dict(point.payload) if point.payload else {}
            hits.append(
                VectorSearchResult(
                    id=str(payload.get(RECORD_ID_KEY, point.id)),
                    score=point.score if point.score is not None else 0.0,
                    metadata=(payload.get(METADATA_KEY) or {}) if query.include_metadata else None,
                    content=payload.get(CONTENT_KEY) if query.include_content else None,
                )
            )
        return hits

    def _to_record(self, point: Any) -> VectorRecord:
        payload = dict(point.payload) if point.payload else {}
        vector = point.vector if isinstance(point.vector, list) else []
        return VectorRecord(
            id=str(payload.get(RECORD_ID_KEY, point.id)),
            vector=vector,
            metadata=payload.get(METADATA_KEY) or {},
            content=payload.get(CONTENT_KEY),
            namespace=payload.get(NAMESPACE_KEY, self.default_namespace),
        )

    async def _fetch(self, record_ids: list[str]) -> list[VectorRecord]:
        """Records whose stored id is one of ``record_ids``, in any namespace."""
        client = await self._get_client()
        try:
            points = await client.retrieve(
                collection_name=self._collection,
                ids=[point_id(record_id) for record_id in record_ids],
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            raise self._error("retrieve", e) from e
        wanted = set(record_ids)
        return [
            record
            for record in (self._to_record(point) for point in points)
            if record.id in wanted
        ]

    async def _retrieve(self, record_ids: list[str], namespace: str | None) -> list[VectorRecord]:
        namespace = self._namespace(namespace)
        return [record for record in await self._fetch(record_ids) if record.namespace == namespace]

    async def update(self, update: VectorUpdate) -> UpdateResult:
        """Rewrite the changed payload keys and, if given, the vector."""
        changes = self._update_changes(update)
        if not changes:
            return self._not_updated(update, NO_FIELDS_MESSAGE)

        async with self._track("update"):
            if not await self._fetch([update.id]):
                return self._not_updated(update, NOT_FOUND_MESSAGE)

            pid = point_id(update.id)
            payload_keys = {
                "metadata": METADATA_KEY,
                "content": CONTENT_KEY,
                "namespace": NAMESPACE_KEY,
            }
            payload = {
                payload_keys[name]: value for name, value in changes.items() if name in payload_keys
            }
            client = await self._get_client()
            try:
                if update.vector is not None:
                    await client.update_vectors(
                        collection_name=self._collection,
                        points=[PointVectors(id=pid, vector=update.vector)],
                        wait=True,
                    )
                if payload:
                    await client.set_payload(
                        collection_name=self._collection,
                        payload=payload,
                        points=[pid],
                        wait=True,
                    )
            except Exception as e:
                raise self._error("update", e) from e
        return UpdateResult(id=update.id, success=True)

    async def get(self, record_id: str, namespace: str | None = None) -> VectorRecord | None:
        async with self._track("get"):
            found = await self._retrieve([record_id], namespace)
        return found[0] if found else None

    async def delete(self, record_id: str, namespace: str | None = None) -> bool:
        return await self.delete_batch([record_id], namespace) > 0

    async def delete_batch(self, record_ids: list[str], namespace: str | None = None) -> int:
        if not record_ids:
            return 0
        async with self._track("delete"):
            found = await self._retrieve(record_ids, namespace)
            if not found:
                return 0
            client = await self._get_client()
            try:
                await client.delete(
                    collection_name=self._collection,
                    points_selector=PointIdsList(
                        points=[point_id(str(record.id)) for record in found]  # type: ignore[misc]
                    ),
                    wait=True,
                )
            except Exception as e:
                raise self._error("delete", e) from e
        logger.debug(f"Deleted {len(found)} records", extra={"collection": self._collection})
        return len(found)

    async def stats(self, namespace: str | None = None) -> StorageStats:
        client = await self._get_client()
        async with self._track("stats"):
            try:
                count_filter = self._filter(namespace) if namespace is not None else None
                counted = await client.count(
                    collection_name=self._collection,
                    count_filter=count_filter,
                    exact=True,
                )
                facets = await client.facet(
                    collection_name=self._collection,
                    key=NAMESPACE_KEY,
                )
            except Exception as e:
                raise self._error("stats", e) from e
        return StorageStats(
            total_vectors=counted.count,
            namespaces=sorted(str(hit.value) for hit in facets.hits),
            dimensions=self.dimensions,
        )

    async def health_check(self) -> bool:
        try:
            client = await self._get_client()
            await client.get_collections()
        except Exception as e:
            logger.warning(f"Qdrant health check failed: {e}")
            return False
        return True

    async def list(self, namespace: str | None = None, limit: int = 100) -> list[VectorRecord]:
        client = await self._get_client()
        async with self._track("list"):
            try:
                points, _ = await client.scroll(
                    collection_name=self._collection,
                    scroll_filter=self._filter(namespace),
                    limit=limit,
                    with_payload=True,
                    with_vectors=True,
                )
            except Exception as e:
                raise self._error("list", e) from e
        return [self._to_record(point) for point in points]
