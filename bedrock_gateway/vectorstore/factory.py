"""Backend selection."""

from bedrock_gateway.config import Settings, StorageBackend
from bedrock_gateway.logging_config import get_logger
from bedrock_gateway.vectorstore.hosted import PineconeVectorStore, UpstashVectorStore
from bedrock_gateway.vectorstore.memory import InMemoryVectorStore
from bedrock_gateway.vectorstore.postgres import PostgresVectorStore
from bedrock_gateway.vectorstore.qdrant import QdrantVectorStore
from bedrock_gateway.vectorstore.service import VectorStore

logger = get_logger(__name__)


def create_vector_store(settings: Settings) -> VectorStore:
    """Build the single vector store configured for this process.

    Args:
        settings: Application settings.

    Returns:
        The configured backend; not yet initialized.

    Raises:
        ConfigError: If the selected backend is misconfigured.
    """
    storage = settings.storage
    backend = storage.backend
    logger.info(f"Using {backend.value} vector store", extra={"dimensions": storage.dimensions})

    if backend == StorageBackend.POSTGRES:
        return PostgresVectorStore(settings.postgres, storage)
    if backend == StorageBackend.QDRANT:
        return QdrantVectorStore(settings.qdrant, storage)
    if backend == StorageBackend.PINECONE:
        return PineconeVectorStore(settings.pinecone, storage)
    if backend == StorageBackend.UPSTASH:
        return UpstashVectorStore(settings.upstash, storage)
    return InMemoryVectorStore(storage.dimensions, storage.default_namespace)
