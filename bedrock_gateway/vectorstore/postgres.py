"""PostgreSQL + pgvector vector store."""

import json
from typing import Any

import asyncpg
from pgvector.asyncpg import register_vector

from bedrock_gateway.config import PostgresSettings, StorageSettings, get_settings
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

_CONNECTION_ERRORS = (OSError, TimeoutError, asyncpg.InterfaceError)

# Scoped to the search transaction; pooled connections keep their defaults.
ITERATIVE_SCAN_SQL = "SET LOCAL hnsw.iterative_scan = relaxed_order"


def _storage_error(operation: str, error: Exception) -> StorageError:
    code = (
        ErrorCode.STORAGE_CONNECTION_ERROR
        if isinstance(error, _CONNECTION_ERRORS)
        else ErrorCode.STORAGE_ERROR
    )
    logger.error(f"Postgres {operation} failed: {error}")
    return StorageError(
        f"Postgres {operation} failed: {error}",
        code=code,
        details={"backend": "postgres", "operation": operation},
    )


def _affected_rows(status: str) -> int:
    """Row count from a command tag such as ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except ValueError:
        return 0


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )
    await register_vector(conn)


class PostgresVectorStore(VectorStore):
    """Relational store: one table, pgvector column, JSONB metadata.

    Schema::

        id TEXT PRIMARY KEY
        vector VECTOR(dimensions)
        metadata JSONB
        content TEXT NULL
        namespace TEXT
        created_at, updated_at TIMESTAMPTZ

    with a namespace index and an HNSW cosine index over the vector.
    """

    backend_name = "postgres"

    def __init__(
        self,
        settings: PostgresSettings | None = None,
        storage: StorageSettings | None = None,
        pool: asyncpg.Pool | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            settings: Postgres connection settings.
            storage: Collection dimension and default namespace.
            pool: Existing connection pool (for testing).
        """
        storage = storage or get_settings().storage
        super().__init__(storage.dimensions, storage.default_namespace)
        self._settings = settings or get_settings().postgres
        self._pool = pool
        self._owns_pool = pool is None
        self._table = self._settings.table_name

    async def _get_pool(self) -> asyncpg.Pool:
        """Get or create the connection pool.

        The vector extension must exist before connections register the
        vector codec, so it is created on a bootstrap connection first.
        """
        if self._pool is None:
            try:
                conn = await asyncpg.connect(dsn=self._settings.dsn)
                try:
                    await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
                finally:
                    await conn.close()

                self._pool = await asyncpg.create_pool(
                    dsn=self._settings.dsn,
                    min_size=self._settings.min_pool_size,
                    max_size=self._settings.max_pool_size,
                    init=_init_connection,
                )
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("connect", e) from e
            logger.info(
                f"Connected to Postgres at {self._settings.host}:{self._settings.port}",
                extra={"table": self._table},
            )
        return self._pool

    async def close(self) -> None:
        """Close the connection pool."""
        if self._owns_pool and self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def initialize(self) -> None:
        """Create the table and indexes if missing."""
        pool = await self._get_pool()
        t = self._table
        statements = [
            f"""
            CREATE TABLE IF NOT EXISTS {t} (
                id TEXT PRIMARY KEY,
                vector VECTOR({self.dimensions}) NOT NULL,
                metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                content TEXT,
                namespace TEXT NOT NULL DEFAULT 'default',
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """,
            f"CREATE INDEX IF NOT EXISTS {t}_namespace_idx ON {t} (namespace)",
            f"CREATE INDEX IF NOT EXISTS {t}_vector_idx ON {t} "
            "USING hnsw (vector vector_cosine_ops)",
        ]
        async with self._track("initialize"):
            try:
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        for statement in statements:
                            await conn.execute(statement)
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("initialize", e) from e
        logger.info(f"Initialized table {t}", extra={"dimensions": self.dimensions})

    def _insert_sql(self, generated: bool) -> str:
        sql = (
            f"INSERT INTO {self._table} (id, vector, metadata, content, namespace) "
            "VALUES ($1, $2, $3, $4, $5)"
        )
        if generated:
            return sql
        return (
            sql
            + " ON CONFLICT (id) DO UPDATE SET vector = EXCLUDED.vector, "
            "metadata = EXCLUDED.metadata, content = EXCLUDED.content, "
            "namespace = EXCLUDED.namespace, updated_at = now()"
        )

    @staticmethod
    def _row_args(record: VectorRecord) -> tuple[Any, ...]:
        return (record.id, record.vector, record.metadata, record.content, record.namespace)

    async def insert(self, record: VectorRecord) -> str:
        """Insert a record; generated ids use a plain INSERT, given ids upsert."""
        prepared, generated = self._prepare(record)
        pool = await self._get_pool()
        async with self._track("insert"):
            try:
                await pool.execute(self._insert_sql(generated), *self._row_args(prepared))
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("insert", e) from e
        return str(prepared.id)

    async def batch_insert(self, records: list[VectorRecord]) -> list[str]:
        """Insert records in a single transaction."""
        prepared = [self._prepare(record) for record in records]
        if not prepared:
            return []

        new_rows = [self._row_args(r) for r, generated in prepared if generated]
        upsert_rows = [self._row_args(r) for r, generated in prepared if not generated]

        pool = await self._get_pool()
        async with self._track("batch_insert"):
            try:
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        if new_rows:
                            await conn.executemany(self._insert_sql(True), new_rows)
                        if upsert_rows:
                            await conn.executemany(self._insert_sql(False), upsert_rows)
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("batch_insert", e) from e

        logger.debug(f"Inserted {len(prepared)} records", extra={"table": self._table})
        return [str(record.id) for record, _ in prepared]

    async def search(self, query: VectorSearchQuery) -> list[VectorSearchResult]:
        """Cosine search within a namespace, optionally filtered by metadata containment.

        The HNSW index spans every namespace, so the namespace and metadata
        conditions filter index candidates. An iterative index scan keeps
        reading candidates until ``limit`` rows pass the filter; without it
        a small namespace can come back short or empty. Iterative scans
        return rows in relaxed order, so the outer query sorts them again.
        Requires pgvector 0.8 or later.
        """
        self._check_dimensions(query.vector, "query vector")
        args: list[Any] = [query.vector, self._namespace(query.namespace)]
        where = "namespace = $2"
        if query.filter:
            args.append(query.filter)
            where += f" AND metadata @> ${len(args)}::jsonb"
        args.append(query.limit)

        sql = (
            "WITH candidates AS MATERIALIZED ("
            f"SELECT id, metadata, content, vector <=> $1 AS distance "
            f"FROM {self._table} WHERE {where} "
            f"ORDER BY vector <=> $1 LIMIT ${len(args)}"
            ") SELECT id, metadata, content, 1 - distance AS score "
            "FROM candidates ORDER BY distance"
        )

        pool = await self._get_pool()
        async with self._track("search"):
            try:
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        await conn.execute(ITERATIVE_SCAN_SQL)
                        rows = await conn.fetch(sql, *args)
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("search", e) from e

        return [
            VectorSearchResult(
                id=row["id"],
                score=float(row["score"]),
                metadata=row["metadata"] if query.include_metadata else None,
                content=row["content"] if query.include_content else None,
            )
            for row in rows
        ]

    async def update(self, update: VectorUpdate) -> UpdateResult:
        """Set only the given columns, plus ``updated_at``."""
        changes = self._update_changes(update)
        if not changes:
            return self._not_updated(update, NO_FIELDS_MESSAGE)

        assignments = [f"{column} = ${i}" for i, column in enumerate(changes, start=2)]
        assignments.append("updated_at = now()")
        sql = f"UPDATE {self._table} SET {', '.join(assignments)} WHERE id = $1"

        pool = await self._get_pool()
        async with self._track("update"):
            try:
                status = await pool.execute(sql, update.id, *changes.values())
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("update", e) from e

        if _affected_rows(status) == 0:
            return self._not_updated(update, NOT_FOUND_MESSAGE)
        return UpdateResult(id=update.id, success=True)

    @staticmethod
    def _to_record(row: asyncpg.Record) -> VectorRecord:
        return VectorRecord(
            id=row["id"],
            vector=[float(x) for x in row["vector"]],
            metadata=row["metadata"] or {},
            content=row["content"],
            namespace=row["namespace"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def get(self, record_id: str, namespace: str | None = None) -> VectorRecord | None:
        pool = await self._get_pool()
        async with self._track("get"):
            try:
                row = await pool.fetchrow(
                    f"SELECT * FROM {self._table} WHERE id = $1 AND namespace = $2",
                    record_id,
                    self._namespace(namespace),
                )
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("get", e) from e
        return self._to_record(row) if row is not None else None

    async def delete(self, record_id: str, namespace: str | None = None) -> bool:
        pool = await self._get_pool()
        async with self._track("delete"):
            try:
                status = await pool.execute(
                    f"DELETE FROM {self._table} WHERE id = $1 AND namespace = $2",
                    record_id,
                    self._namespace(namespace),
                )
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("delete", e) from e
        return _affected_rows(status) > 0

    async def delete_batch(self, record_ids: list[str], namespace: str | None = None) -> int:
        if not record_ids:
            return 0
        pool = await self._get_pool()
        async with self._track("delete_batch"):
            try:
                status = await pool.execute(
                    f"DELETE FROM {self._table} WHERE id = ANY($1::text[]) AND namespace = $2",
                    record_ids,
                    self._namespace(namespace),
                )
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("delete_batch", e) from e
        return _affected_rows(status)

    async def stats(self, namespace: str | None = None) -> StorageStats:
        pool = await self._get_pool()
        async with self._track("stats"):
            try:
                async with pool.acquire() as conn:
                    if namespace is None:
                        total = await conn.fetchval(f"SELECT count(*) FROM {self._table}")
                    else:
                        total = await conn.fetchval(
                            f"SELECT count(*) FROM {self._table} WHERE namespace = $1",
                            namespace,
                        )
                    rows = await conn.fetch(
                        f"SELECT DISTINCT namespace FROM {self._table} ORDER BY namespace"
                    )
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("stats", e) from e
        return StorageStats(
            total_vectors=int(total or 0),
            namespaces=[row["namespace"] for row in rows],
            dimensions=self.dimensions,
        )

    async def health_check(self) -> bool:
        try:
            pool = await self._get_pool()
            return await pool.fetchval("SELECT 1") == 1
        except (StorageError, asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
            logger.warning(f"Postgres health check failed: {e}")
            return False

    async def list(self, namespace: str | None = None, limit: int = 100) -> list[VectorRecord]:
        pool = await self._get_pool()
        async with self._track("list"):
            try:
                rows = await pool.fetch(
                    f"SELECT * FROM {self._table} WHERE namespace = $1 "
                    "ORDER BY created_at DESC LIMIT $2",
                    self._namespace(namespace),
                    limit,
                )
            except (asyncpg.PostgresError, *_CONNECTION_ERRORS) as e:
                raise _storage_error("list", e) from e
        return [self._to_record(row) for row in rows]
