"""Vector store data models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class VectorRecord(BaseModel):
    """A stored, searchable unit.

    Attributes:
        id: Unique identifier; generated on insert when absent.
        vector: The embedding vector.
        metadata: JSON metadata stored with the vector.
        content: Optional source text.
        namespace: Logical partition the record belongs to.
        created_at: Set by the backend when known.
        updated_at: Set by the backend when known.
    """

    id: str | None = Field(default=None, description="Unique record identifier")
    vector: list[float] = Field(description="Embedding vector")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Metadata payload",
    )
    content: str | None = Field(default=None, description="Source text")
    namespace: str = Field(default="default", description="Namespace")
    created_at: datetime | None = Field(default=None, description="Creation time")
    updated_at: datetime | None = Field(default=None, description="Last update time")


class VectorUpdate(BaseModel):
    """Partial update of one record; only fields that are set change.

    Attributes:
        id: Record to update.
        vector: Replacement vector.
        metadata: Replacement metadata (replaces the whole mapping).
        content: Replacement content.
        namespace: Namespace to move the record to.
    """

    id: str = Field(description="Record identifier")
    vector: list[float] | None = Field(default=None, description="New vector")
    metadata: dict[str, Any] | None = Field(default=None, description="New metadata")
    content: str | None = Field(default=None, description="New content")
    namespace: str | None = Field(default=None, description="New namespace")

    def changes(self) -> dict[str, Any]:
        """Fields to write, keyed by record field name."""
        fields = {
            "vector": self.vector,
            "metadata": self.metadata,
            "content": self.content,
            "namespace": self.namespace,
        }
        return {name: value for name, value in fields.items() if value is not None}


class UpdateResult(BaseModel):
    """Outcome of an update."""

    id: str = Field(description="Record identifier")
    success: bool = Field(description="Whether a record was changed")
    message: str | None = Field(default=None, description="Why nothing changed")


class VectorSearchQuery(BaseModel):
    """A similarity request scoped to one namespace.

    Attributes:
        vector: Query vector.
        limit: Maximum results to return.
        namespace: Namespace to search; the store default when absent.
        filter: Exact-match conditions on top-level metadata keys.
        include_metadata: Return stored metadata with each hit.
        include_content: Return stored content with each hit.
    """

    vector: list[float] = Field(description="Query vector")
    limit: int = Field(default=10, gt=0, description="Maximum results")
    namespace: str | None = Field(default=None, description="Namespace")
    filter: dict[str, Any] | None = Field(default=None, description="Metadata filter")
    include_metadata: bool = Field(default=True, description="Return metadata")
    include_content: bool = Field(default=True, description="Return content")


class VectorSearchResult(BaseModel):
    """One ranked hit; higher score is more similar."""

    id: str = Field(description="Record identifier")
    score: float = Field(description="Cosine similarity")
    metadata: dict[str, Any] | None = Field(default=None, description="Record metadata")
    content: str | None = Field(default=None, description="Record content")


class StorageStats(BaseModel):
    """Record counts for a store or one namespace."""

    total_vectors: int = Field(description="Number of stored records")
    namespaces: list[str] = Field(default_factory=list, description="Known namespaces")
    dimensions: int = Field(description="Collection dimension")
