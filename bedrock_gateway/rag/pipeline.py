"""RAG orchestrator: embed, retrieve, assemble context, generate."""

import time
from typing import Any

from bedrock_gateway.bedrock.client import BedrockClient
from bedrock_gateway.config import RAGSettings, get_settings
from bedrock_gateway.exceptions import ErrorCode, GatewayError, RequestError
from bedrock_gateway.logging_config import get_logger
from bedrock_gateway.observability.metrics import track_rag_query, track_retrieval_request
from bedrock_gateway.providers.models import EmbeddingRequest, TextGenerationRequest
from bedrock_gateway.rag.models import RagContext, RAGResponse, SourceAttribution
from bedrock_gateway.rag.prompts import RAGPromptTemplate
from bedrock_gateway.vectorstore.models import (
    VectorRecord,
    VectorSearchQuery,
    VectorSearchResult,
)
from bedrock_gateway.vectorstore.service import VectorStore

logger = get_logger(__name__)

SNIPPET_LENGTH = 200


class RAGOrchestrator:
    """Sequences embedding, retrieval and generation.

    Storage and model errors propagate unchanged; retrieval is mandatory.
    An empty retrieval is not an error: generation proceeds without
    context.
    """

    def __init__(
        self,
        client: BedrockClient,
        vector_store: VectorStore,
        settings: RAGSettings | None = None,
        prompt_template: RAGPromptTemplate | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Bedrock client for embeddings and generation.
            vector_store: The process-wide vector store.
            settings: RAG defaults.
            prompt_template: Prompt template for generation.
        """
        self._client = client
        self._store = vector_store
        self._settings = settings or get_settings().rag
        self._prompt_template = prompt_template or RAGPromptTemplate(
            max_context_chars=self._settings.max_context_chars,
        )

    async def _embed(self, text: str, embed_model: str | None, input_type: str) -> list[float]:
        response = await self._client.embeddings.embed(
            EmbeddingRequest(text=text, model_id=embed_model, input_type=input_type)
        )
        return response.embedding

    async def semantic_search(
        self,
        query: str,
        limit: int = 10,
        embed_model: str | None = None,
        namespace: str | None = None,
        include_content: bool = True,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[VectorSearchResult]:
        """Embed a query and return the nearest records.

        Raises:
            RequestError: If limit is not positive.
            StorageError: If the search fails.
        """
        if limit < 1:
            raise RequestError(
                "Search limit must be positive",
                code=ErrorCode.PARAMETER_OUT_OF_RANGE,
                details={"limit": limit},
            )
        vector = await self._embed(query, embed_model, "search_query")
        results = await self._store.search(
            VectorSearchQuery(
                vector=vector,
                limit=limit,
                namespace=namespace,
                filter=metadata_filter,
                include_content=include_content,
            )
        )
        track_retrieval_request(len(results), results[0].score if results else 0.0)
        return results

    async def retrieve(
        self,
        query: str,
        context_limit: int | None = None,
        embed_model: str | None = None,
        namespace: str | None = None,
        metadata_filter: dict[str, Any] | None = None,
    ) -> RagContext:
        """Retrieve ranked context for a query.

        Records without content carry no evidence and are skipped.
        """
        limit = context_limit if context_limit is not None else self._settings.context_limit
        results = await self.semantic_search(
            query,
            limit=limit,
            embed_model=embed_model,
            namespace=namespace,
            include_content=True,
            metadata_filter=metadata_filter,
        )

        context = RagContext()
        for result in results:
            if result.content:
                context.contents.append(result.content)
                context.source_ids.append(result.id)
                context.scores.append(result.score)
        return context

    async def query(
        self,
        query: str,
        context_limit: int | None = None,
        gen_model: str | None = None,
        embed_model: str | None = None,
        namespace: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        metadata_filter: dict[str, Any] | None = None,
    ) -> RAGResponse:
        """Answer a query from retrieved context.

        Args:
            query: User question.
            context_limit: Maximum records to retrieve.
            gen_model: Text generation model.
            embed_model: Embedding model; must match the stored vectors.
            namespace: Namespace to search.
            max_tokens: Generation token limit.
            temperature: Generation temperature.
            metadata_filter: Exact-match metadata conditions.

        Returns:
            RAGResponse with answer, sources and the context used.

        Raises:
            GatewayError: Any embedding, storage or generation failure.
        """
        start_time = time.perf_counter()
        logger.info(
            "Processing RAG query",
            extra={"question_length": len(query), "namespace": namespace},
        )

        try:
            context = await self.retrieve(
                query,
                context_limit=context_limit,
                embed_model=embed_model,
                namespace=namespace,
                metadata_filter=metadata_filter,
            )
            if context.is_empty:
                logger.warning(
                    "No context retrieved; generating without context",
                    extra={"namespace": namespace},
                )

            prompt = self._prompt_template.build_prompt(query, context.contents)
            generation = await self._client.text.generate(
                TextGenerationRequest(
                    prompt=prompt,
                    system_prompt=self._prompt_template.system_prompt,
                    model_id=gen_model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
            )
        except GatewayError:
            track_rag_query(time.perf_counter() - start_time, success=False)
            raise

        track_rag_query(time.perf_counter() - start_time)

        sources = [
            SourceAttribution(
                id=source_id,
                score=score,
                content=content[:SNIPPET_LENGTH] + "..." if len(content) > SNIPPET_LENGTH else content,
            )
            for source_id, score, content in zip(
                context.source_ids, context.scores, context.contents, strict=True
            )
        ]

        logger.info(
            "RAG query completed",
            extra={"sources_count": len(sources), "tokens_used": generation.total_tokens},
        )

        return RAGResponse(
            answer=generation.text,
            sources=sources,
            context=context,
            model=generation.model,
            tokens_used=generation.total_tokens,
        )

    async def generate_with_context(
        self,
        query: str,
        context_limit: int | None = None,
        gen_model: str | None = None,
        embed_model: str | None = None,
        namespace: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Answer a query from retrieved context, returning only the text."""
        response = await self.query(
            query,
            context_limit=context_limit,
            gen_model=gen_model,
            embed_model=embed_model,
            namespace=namespace,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return response.answer

    async def embed_and_store(
        self,
        text: str,
        embed_model: str | None = None,
        metadata: dict[str, Any] | None = None,
        namespace: str | None = None,
        record_id: str | None = None,
    ) -> VectorRecord:
        """Embed a text and store it with its content.

        Returns:
            The stored record, with its id.
        """
        vector = await self._embed(text, embed_model, "search_document")
        record = VectorRecord(
            id=record_id,
            vector=vector,
            metadata=metadata or {},
            content=text,
            namespace=namespace or self._store.default_namespace,
        )
        stored_id = await self._store.insert(record)
        logger.debug(f"Stored record {stored_id}", extra={"namespace": record.namespace})
        return record.model_copy(update={"id": stored_id})
