"""Vector store module."""

from bedrock_gateway.vectorstore.factory import create_vector_store
from bedrock_gateway.vectorstore.hosted import PineconeVectorStore, UpstashVectorStore
from bedrock_gateway.vectorstore.memory import InMemoryVectorStore
from bedrock_gateway.vectorstore.models import (
    StorageStats,
    UpdateResult,
    VectorRecord,
    VectorSearchQuery,
    VectorSearchResult,
    VectorUpdate,
)
from bedrock_gateway.vectorstore.postgres import PostgresVectorStore
from bedrock_gateway.vectorstore.qdrant import QdrantVectorStore
from bedrock_gateway.vectorstore.service import VectorStore

__all__ = [
    "InMemoryVectorStore",
    "PineconeVectorStore",
    "PostgresVectorStore",
    "QdrantVectorStore",
    "StorageStats",
    "UpdateResult",
    "UpstashVectorStore",
    "VectorRecord",
    "VectorSearchQuery",
    "VectorSearchResult",
    "VectorStore",
    "VectorUpdate",
    "create_vector_store",
]
