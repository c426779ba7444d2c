"""In-process vector store with exact cosine ranking."""

import math
from datetime import UTC, datetime
from typing import Any

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


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity; 0.0 when either vector has zero norm."""
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(x * x for x in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return math.fsum(x * y for x, y in zip(a, b, strict=True)) / (norm_a * norm_b)


def matches_filter(metadata: dict[str, Any], conditions: dict[str, Any] | None) -> bool:
    """Exact match on top-level metadata keys."""
    if not conditions:
        return True
    return all(key in metadata and metadata[key] == value for key, value in conditions.items())


class InMemoryVectorStore(VectorStore):
    """Dictionary-backed store for development and tests.

    Records live only as long as the process.
    """

    backend_name = "memory"

    def __init__(self, dimensions: int, default_namespace: str = "default") -> None:
        super().__init__(dimensions, default_namespace)
        self._records: dict[str, VectorRecord] = {}

    async def initialize(self) -> None:
        return None

    def _write(self, record: VectorRecord, generated: bool) -> str:
        while generated and record.id in self._records:
            record, generated = self._prepare(record.model_copy(update={"id": None}))

        record_id = str(record.id)
        now = datetime.now(UTC)
        existing = self._records.get(record_id)
        self._records[record_id] = record.model_copy(
            update={
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            }
        )
        return record_id

    async def insert(self, record: VectorRecord) -> str:
        async with self._track("insert"):
            prepared, generated = self._prepare(record)
            return self._write(prepared, generated)

    async def batch_insert(self, records: list[VectorRecord]) -> list[str]:
        async with self._track("batch_insert"):
            prepared = [self._prepare(record) for record in records]
            return [self._write(record, generated) for record, generated in prepared]

    async def search(self, query: VectorSearchQuery) -> list[VectorSearchResult]:
        async with self._track("search"):
            self._check_dimensions(query.vector, "query vector")
            namespace = self._namespace(query.namespace)

            scored = [
                (cosine_similarity(query.vector, record.vector), record)
                for record in self._records.values()
                if record.namespace == namespace and matches_filter(record.metadata, query.filter)
            ]
            scored.sort(key=lambda item: item[0], reverse=True)

            return [
                VectorSearchResult(
                    id=record.id or "",
                    score=score,
                    metadata=dict(record.metadata) if query.include_metadata else None,
                    content=record.content if query.include_content else None,
                )
                for score, record in scored[: query.limit]
            ]

    async def update(self, update: VectorUpdate) -> UpdateResult:
        async with self._track("update"):
            changes = self._update_changes(update)
            if not changes:
                return self._not_updated(update, NO_FIELDS_MESSAGE)
            record = self._records.get(update.id)
            if record is None:
                return self._not_updated(update, NOT_FOUND_MESSAGE)

            changes["updated_at"] = datetime.now(UTC)
            self._records[update.id] = record.model_copy(update=changes)
            return UpdateResult(id=update.id, success=True)

    async def get(self, record_id: str, namespace: str | None = None) -> VectorRecord | None:
        record = self._records.get(record_id)
        if record is None or record.namespace != self._namespace(namespace):
            return None
        return record

    def _remove(self, record_id: str, namespace: str | None) -> bool:
        record = self._records.get(record_id)
        if record is None or record.namespace != self._namespace(namespace):
            return False
        del self._records[record_id]
        return True

    async def delete(self, record_id: str, namespace: str | None = None) -> bool:
        async with self._track("delete"):
            return self._remove(record_id, namespace)

    async def delete_batch(self, record_ids: list[str], namespace: str | None = None) -> int:
        async with self._track("delete_batch"):
            return sum(1 for record_id in record_ids if self._remove(record_id, namespace))

    async def list(self, namespace: str | None = None, limit: int = 100) -> list[VectorRecord]:
        namespace = self._namespace(namespace)
        records = [r for r in self._records.values() if r.namespace == namespace]
        return records[:limit]

    async def stats(self, namespace: str | None = None) -> StorageStats:
        namespaces = sorted({record.namespace for record in self._records.values()})
        if namespace is None:
            total = len(self._records)
        else:
            total = sum(1 for record in self._records.values() if record.namespace == namespace)
        return StorageStats(
            total_vectors=total,
            namespaces=namespaces,
            dimensions=self.dimensions,
        )

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        logger.debug(f"Discarding {len(self._records)} in-memory records")
