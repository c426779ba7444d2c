"""Hosted vector services declared as backends but not implemented.

Configuration is validated at construction so a misconfigured
deployment fails at startup. Every data operation raises
UnsupportedOperationError, which callers can tell apart from a failed
operation.
"""

from typing import NoReturn

from bedrock_gateway.config import (
    PineconeSettings,
    StorageSettings,
    UpstashSettings,
    get_settings,
)
from bedrock_gateway.exceptions import ConfigError, ErrorCode, UnsupportedOperationError
from bedrock_gateway.logging_config import get_logger
from bedrock_gateway.vectorstore.models import (
    StorageStats,
    UpdateResult,
    VectorRecord,
    VectorSearchQuery,
    VectorSearchResult,
    VectorUpdate,
)
from bedrock_gateway.vectorstore.service import VectorStore

logger = get_logger(__name__)


class _UnsupportedVectorStore(VectorStore):
    def _unsupported(self, operation: str) -> NoReturn:
        raise UnsupportedOperationError(self.backend_name, operation)

    async def initialize(self) -> None:
        self._unsupported("initialize")

    async def insert(self, record: VectorRecord) -> str:
        self._unsupported("insert")

    async def batch_insert(self, records: list[VectorRecord]) -> list[str]:
        self._unsupported("batch_insert")

    async def search(self, query: VectorSearchQuery) -> list[VectorSearchResult]:
        self._unsupported("search")

    async def update(self, update: VectorUpdate) -> UpdateResult:
        self._unsupported("update")

    async def get(self, record_id: str, namespace: str | None = None) -> VectorRecord | None:
        self._unsupported("get")

    async def delete(self, record_id: str, namespace: str | None = None) -> bool:
        self._unsupported("delete")

    async def delete_batch(self, record_ids: list[str], namespace: str | None = None) -> int:
        self._unsupported("delete_batch")

    async def stats(self, namespace: str | None = None) -> StorageStats:
        self._unsupported("stats")

    async def health_check(self) -> bool:
        return False

    async def list(self, namespace: str | None = None, limit: int = 100) -> list[VectorRecord]:
        self._unsupported("list")


def _missing(backend: str, fields: list[str]) -> ConfigError:
    return ConfigError(
        f"{backend} backend is missing configuration: {', '.join(fields)}",
        code=ErrorCode.CONFIGURATION_ERROR,
        details={"backend": backend, "missing": fields},
    )


class PineconeVectorStore(_UnsupportedVectorStore):
    """Pinecone index placeholder."""

    backend_name = "pinecone"

    def __init__(
        self,
        settings: PineconeSettings | None = None,
        storage: StorageSettings | None = None,
    ) -> None:
        storage = storage or get_settings().storage
        super().__init__(storage.dimensions, storage.default_namespace)
        self._settings = settings or get_settings().pinecone

        missing = [
            name
            for name, value in (
                ("api_key", self._settings.api_key),
                ("environment", self._settings.environment),
                ("index_name", self._settings.index_name),
            )
            if not value
        ]
        if missing:
            raise _missing(self.backend_name, missing)
        logger.warning("Pinecone backend selected; data operations are not supported")


class UpstashVectorStore(_UnsupportedVectorStore):
    """Upstash Vector placeholder."""

    backend_name = "upstash"

    def __init__(
        self,
        settings: UpstashSettings | None = None,
        storage: StorageSettings | None = None,
    ) -> None:
        storage = storage or get_settings().storage
        super().__init__(storage.dimensions, storage.default_namespace)
        self._settings = settings or get_settings().upstash

        missing = [
            name
            for name, value in (("url", self._settings.url), ("token", self._settings.token))
            if not value
        ]
        if missing:
            raise _missing(self.backend_name, missing)
        logger.warning("Upstash backend selected; data operations are not supported")
