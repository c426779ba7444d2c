"""RAG pipeline data models."""

from pydantic import BaseModel, Field


class RagContext(BaseModel):
    """Evidence assembled for one generation, in ranked order.

    Attributes:
        contents: Retrieved record contents.
        source_ids: Record ids, parallel to contents.
        scores: Similarity scores, parallel to contents.
    """

    contents: list[str] = Field(default_factory=list, description="Retrieved contents")
    source_ids: list[str] = Field(default_factory=list, description="Source record ids")
    scores: list[float] = Field(default_factory=list, description="Similarity scores")

    @property
    def is_empty(self) -> bool:
        """True when retrieval found nothing usable."""
        return not self.contents


class SourceAttribution(BaseModel):
    """Attribution to a retrieved record.

    Attributes:
        id: Record identifier.
        score: Similarity score.
        content: Content snippet.
    """

    id: str = Field(description="Record identifier")
    score: float = Field(description="Similarity score")
    content: str = Field(description="Content snippet")


class RAGResponse(BaseModel):
    """Response from a RAG query.

    Attributes:
        answer: Generated answer.
        sources: Records the answer was grounded on.
        context: Context passed to generation.
        model: Generation model used.
        tokens_used: Total tokens reported by the model.
    """

    answer: str = Field(description="Generated answer")
    sources: list[SourceAttribution] = Field(
        default_factory=list,
        description="Source attributions",
    )
    context: RagContext = Field(default_factory=RagContext, description="Retrieved context")
    model: str = Field(description="Generation model used")
    tokens_used: int = Field(default=0, description="Total tokens consumed")
