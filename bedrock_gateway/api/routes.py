"""API routes for model invocation, RAG and vector operations."""

import json
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from bedrock_gateway.bedrock.client import BedrockClient
from bedrock_gateway.exceptions import GatewayError
from bedrock_gateway.logging_config import get_logger
from bedrock_gateway.providers.models import (
    EmbeddingRequest,
    EmbeddingResponse,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ModelCategory,
    ModelInfo,
    StreamChunk,
    TextGenerationRequest,
    TextGenerationResponse,
)
from bedrock_gateway.providers.profiles import supported_models
from bedrock_gateway.rag.models import RAGResponse
from bedrock_gateway.rag.pipeline import RAGOrchestrator
from bedrock_gateway.vectorstore.models import VectorSearchQuery, VectorSearchResult
from bedrock_gateway.vectorstore.service import VectorStore

logger = get_logger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"

router = APIRouter(prefix="/api/v1")


class RAGQueryRequest(BaseModel):
    """Request body for a RAG query."""

    query: str = Field(description="Question to answer")
    context_limit: int | None = Field(default=None, ge=1, le=50, description="Records to retrieve")
    gen_model: str | None = Field(default=None, description="Generation model")
    embed_model: str | None = Field(default=None, description="Embedding model")
    namespace: str | None = Field(default=None, description="Namespace to search")
    max_tokens: int | None = Field(default=None, description="Maximum tokens")
    temperature: float | None = Field(default=None, description="Temperature")
    filter: dict[str, Any] | None = Field(default=None, description="Metadata filter")


class IngestRequest(BaseModel):
    """Request body for storing a text."""

    content: str = Field(min_length=1, description="Text to embed and store")
    id: str | None = Field(default=None, description="Record id; generated when absent")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Record metadata")
    namespace: str | None = Field(default=None, description="Target namespace")
    embed_model: str | None = Field(default=None, description="Embedding model")


class IngestResponse(BaseModel):
    """Response from ingestion."""

    id: str = Field(description="Stored record id")
    namespace: str = Field(description="Namespace stored in")
    dimensions: int = Field(description="Vector length")


class DeleteResponse(BaseModel):
    """Response from a delete."""

    id: str = Field(description="Record id")
    deleted: bool = Field(description="Whether a record was removed")


def chunk_to_line(chunk: StreamChunk) -> str:
    """Serialize one stream chunk as an NDJSON line."""
    return chunk.model_dump_json() + "\n"


def _service(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        logger.warning(f"{label} not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": f"{label} not configured"},
        )
    return service


def get_bedrock(request: Request) -> BedrockClient:
    """Bedrock client stored on the application."""
    return _service(request, "bedrock", "Bedrock client")


def get_vector_store(request: Request) -> VectorStore:
    """Vector store stored on the application."""
    return _service(request, "vector_store", "Vector store")


def get_orchestrator(request: Request) -> RAGOrchestrator:
    """RAG orchestrator stored on the application."""
    return _service(request, "rag", "RAG pipeline")


@router.get("/models", response_model=list[ModelInfo], tags=["Models"])
async def list_models(category: ModelCategory | None = None) -> list[ModelInfo]:
    """List supported models."""
    return supported_models(category)


@router.post("/text/generate", response_model=TextGenerationResponse, tags=["Models"])
async def generate_text(body: TextGenerationRequest, request: Request) -> TextGenerationResponse:
    """Generate a complete text response."""
    return await get_bedrock(request).text.generate(body)


@router.post("/text/stream", tags=["Models"])
async def stream_text(body: TextGenerationRequest, request: Request) -> StreamingResponse:
    """Stream a text response as newline-delimited JSON chunks.

    Validation errors are returned as regular error responses; a failure
    after streaming has started ends the stream with an error line.
    """
    chunks = get_bedrock(request).text.generate_stream(body)

    async def lines() -> AsyncIterator[str]:
        try:
            async with aclosing(chunks) as stream:
                async for chunk in stream:
                    yield chunk_to_line(chunk)
        except GatewayError as e:
            logger.error(f"Stream failed: {e.message}", extra={"error_code": e.code.value})
            yield json.dumps(e.to_dict()) + "\n"

    return StreamingResponse(lines(), media_type=NDJSON_MEDIA_TYPE)


@router.post("/embeddings", response_model=EmbeddingResponse, tags=["Models"])
async def create_embedding(body: EmbeddingRequest, request: Request) -> EmbeddingResponse:
    """Embed a text."""
    return await get_bedrock(request).embeddings.embed(body)


@router.post("/images", response_model=ImageGenerationResponse, tags=["Models"])
async def generate_images(
    body: ImageGenerationRequest,
    request: Request,
) -> ImageGenerationResponse:
    """Generate images."""
    return await get_bedrock(request).images.generate(body)


@router.post("/rag/query", response_model=RAGResponse, tags=["RAG"])
async def rag_query(body: RAGQueryRequest, request: Request) -> RAGResponse:
    """Answer a question from stored context."""
    return await get_orchestrator(request).query(
        body.query,
        context_limit=body.context_limit,
        gen_model=body.gen_model,
        embed_model=body.embed_model,
        namespace=body.namespace,
        max_tokens=body.max_tokens,
        temperature=body.temperature,
        metadata_filter=body.filter,
    )


@router.post("/rag/ingest", response_model=IngestResponse, tags=["RAG"])
async def rag_ingest(body: IngestRequest, request: Request) -> IngestResponse:
    """Embed and store a text."""
    record = await get_orchestrator(request).embed_and_store(
        body.content,
        embed_model=body.embed_model,
        metadata=body.metadata,
        namespace=body.namespace,
        record_id=body.id,
    )
    return IngestResponse(
        id=str(record.id),
        namespace=record.namespace,
        dimensions=len(record.vector),
    )


@router.post("/vectors/search", response_model=list[VectorSearchResult], tags=["Vectors"])
async def search_vectors(body: VectorSearchQuery, request: Request) -> list[VectorSearchResult]:
    """Search stored vectors directly."""
    return await get_vector_store(request).search(body)


@router.delete("/vectors/{record_id}", response_model=DeleteResponse, tags=["Vectors"])
async def delete_vector(
    record_id: str,
    request: Request,
    namespace: str | None = None,
) -> DeleteResponse:
    """Delete a stored record."""
    deleted = await get_vector_store(request).delete(record_id, namespace)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": f"Record not found: {record_id}"},
        )
    return DeleteResponse(id=record_id, deleted=True)