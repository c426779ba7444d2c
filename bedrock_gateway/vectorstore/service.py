"""Vector store interface shared by every backend."""

import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from bedrock_gateway.exceptions import ErrorCode, StorageError
from bedrock_gateway.logging_config import get_logger
from bedrock_gateway.observability.metrics import track_vectorstore_operation
from bedrock_gateway.vectorstore.models import (
    StorageStats,
    UpdateResult,
    VectorRecord,
    VectorSearchQuery,
    VectorSearchResult,
    VectorUpdate,
)

NO_FIELDS_MESSAGE = "No fields to update"
NOT_FOUND_MESSAGE = "Record not found"

logger = get_logger(__name__)


class VectorStore(ABC):
    """Abstract base class for vector stores.

    One instance is built at startup and shared by all callers. Every
    collection has a fixed dimension; records and queries of any other
    length are rejected before the backend is touched. Searches only
    ever see records of the requested namespace.
    """

    backend_name = "abstract"

    def __init__(self, dimensions: int, default_namespace: str = "default") -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions
        self._default_namespace = default_namespace

    @property
    def dimensions(self) -> int:
        """Fixed vector dimension of the collection."""
        return self._dimensions

    @property
    def default_namespace(self) -> str:
        """Namespace used when a call names none."""
        return self._default_namespace

    def _namespace(self, namespace: str | None) -> str:
        return namespace or self._default_namespace

    def _check_dimensions(self, vector: list[float], what: str = "vector") -> None:
        if len(vector) != self._dimensions:
            raise StorageError(
                f"{what.capitalize()} has {len(vector)} dimensions, "
                f"collection expects {self._dimensions}",
                code=ErrorCode.DIMENSION_MISMATCH,
                details={
                    "expected": self._dimensions,
                    "actual": len(vector),
                    "backend": self.backend_name,
                },
            )

    def _prepare(self, record: VectorRecord) -> tuple[VectorRecord, bool]:
        """Validate a record and assign its id.

        Returns:
            The record to write and whether its id was generated.
        """
        self._check_dimensions(record.vector, "record vector")
        generated = record.id is None
        return (
            record.model_copy(
                update={
                    "id": record.id if not generated else str(uuid4()),
                    "namespace": record.namespace or self._default_namespace,
                }
            ),
            generated,
        )

    def _update_changes(self, update: VectorUpdate) -> dict[str, Any]:
        """Validated fields of an update; a new vector is dimension-checked first."""
        if update.vector is not None:
            self._check_dimensions(update.vector, "update vector")
        return update.changes()

    @staticmethod
    def _not_updated(update: VectorUpdate, message: str) -> UpdateResult:
        logger.debug(f"Record {update.id} not updated: {message}")
        return UpdateResult(id=update.id, success=False, message=message)

    @asynccontextmanager
    async def _track(self, operation: str) -> AsyncIterator[None]:
        start_time = time.perf_counter()
        try:
            yield
        except Exception:
            track_vectorstore_operation(
                self.backend_name, operation, time.perf_counter() - start_time, success=False
            )
            raise
        track_vectorstore_operation(
            self.backend_name, operation, time.perf_counter() - start_time
        )

    @abstractmethod
    async def initialize(self) -> None:
        """Create the collection, table and indexes if missing.

        Raises:
            StorageError: If the backend cannot be prepared.
        """
        ...

    @abstractmethod
    async def insert(self, record: VectorRecord) -> str:
        """Insert or update one record.

        A record without id gets a fresh one and never replaces an
        existing record. A record with an id is upserted; the last write
        wins.

        Args:
            record: Record to store.

        Returns:
            The record id.

        Raises:
            StorageError: On dimension mismatch or backend failure.
        """
        ...

    @abstractmethod
    async def batch_insert(self, records: list[VectorRecord]) -> list[str]:
        """Insert several records atomically where the backend allows.

        Every record is validated before any is written.

        Returns:
            Record ids in input order.

        Raises:
            StorageError: On dimension mismatch or backend failure.
        """
        ...

    @abstractmethod
    async def search(self, query: VectorSearchQuery) -> list[VectorSearchResult]:
        """Rank records of one namespace by cosine similarity.

        Args:
            query: Search parameters.

        Returns:
            At most ``query.limit`` results ordered by descending score.

        Raises:
            StorageError: On dimension mismatch or backend failure.
        """
        ...

    @abstractmethod
    async def update(self, update: VectorUpdate) -> UpdateResult:
        """Change some fields of a record, found by id in any namespace.

        Setting ``namespace`` moves the record. An update with no fields,
        or for an unknown id, changes nothing and reports why.

        Raises:
            StorageError: On dimension mismatch or backend failure.
        """
        ...

    @abstractmethod
    async def get(self, record_id: str, namespace: str | None = None) -> VectorRecord | None:
        """Fetch one record, or None if it is not in the namespace."""
        ...

    @abstractmethod
    async def delete(self, record_id: str, namespace: str | None = None) -> bool:
        """Delete one record.

        Returns:
            True if a record was deleted.
        """
        ...

    @abstractmethod
    async def delete_batch(self, record_ids: list[str], namespace: str | None = None) -> int:
        """Delete several records.

        Returns:
            Number of records deleted.
        """
        ...

    @abstractmethod
    async def list(self, namespace: str | None = None, limit: int = 100) -> list[VectorRecord]:
        """List records of a namespace."""
        ...

    @abstractmethod
    async def stats(self, namespace: str | None = None) -> StorageStats:
        """Count records, for one namespace or the whole store."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check that the backend is reachable."""
        ...

    async def close(self) -> None:
        """Release backend connections."""
        return None

    async def count(self, namespace: str | None = None) -> int:
        """Number of records in a namespace, or in the store when None."""
        return (await self.stats(namespace)).total_vectors
