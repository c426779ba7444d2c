"""Tests for RAG pipeline module."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from bedrock_gateway.config import RAGSettings
from bedrock_gateway.exceptions import ErrorCode, RequestError, StorageError, TransportError
from bedrock_gateway.providers.models import EmbeddingResponse, TextGenerationResponse
from bedrock_gateway.rag.models import RagContext
from bedrock_gateway.rag.pipeline import RAGOrchestrator
from bedrock_gateway.rag.prompts import RAGPromptTemplate
from bedrock_gateway.vectorstore.memory import InMemoryVectorStore
from bedrock_gateway.vectorstore.models import VectorRecord

VECTOR = [0.6, 0.8, 0.0]


def _mock_client(answer: str = "An answer.") -> MagicMock:
    """Bedrock client double returning a fixed embedding and answer."""
    client = MagicMock()
    client.embeddings.embed = AsyncMock(
        return_value=EmbeddingResponse(embedding=VECTOR, model="amazon.titan-embed-text-v1")
    )
    client.text.generate = AsyncMock(
        return_value=TextGenerationResponse(
            text=answer,
            model="amazon.titan-text-express-v1",
            prompt_tokens=40,
            completion_tokens=10,
        )
    )
    return client


def _prompt_sent(client: MagicMock) -> str:
    return client.text.generate.call_args.args[0].prompt


class TestRAGPromptTemplate:
    """Tests for prompt assembly."""

    def test_context_precedes_question(self) -> None:
        """The context block comes before the question."""
        prompt = RAGPromptTemplate().build_prompt("What is it?", ["First.", "Second."])
        assert prompt.index("First.") < prompt.index("Second.") < prompt.index("What is it?")
        assert prompt.startswith("Context:")

    def test_no_context(self) -> None:
        """Without context only the question is asked."""
        prompt = RAGPromptTemplate().build_prompt("What is it?", [])
        assert prompt == "Question: What is it?\n\nAnswer:"

    def test_context_budget(self) -> None:
        """Context is truncated at the character budget."""
        template = RAGPromptTemplate(max_context_chars=12)
        context = template.format_context(["abcdefgh", "ijklmnop"])
        assert len(context) == 12
        assert context == "abcdefgh\n\nij"


class TestRAGOrchestrator:
    """Tests for the RAG orchestrator."""

    @pytest.mark.asyncio
    async def test_retrieved_document_precedes_question(self) -> None:
        """A matching document is retrieved and placed before the query."""
        store = InMemoryVectorStore(dimensions=3)
        await store.insert(
            VectorRecord(
                vector=VECTOR,
                content="Rust is a systems programming language",
                namespace="default",
            )
        )
        client = _mock_client("Rust is a language.")
        orchestrator = RAGOrchestrator(client, store, RAGSettings())

        answer = await orchestrator.generate_with_context("What is Rust?", 3)

        prompt = _prompt_sent(client)
        assert answer == "Rust is a language."
        assert "Rust is a systems programming language" in prompt
        assert prompt.index("Rust is a systems programming language") < prompt.index(
            "What is Rust?"
        )

    @pytest.mark.asyncio
    async def test_query_returns_sources(self) -> None:
        """Sources carry ids, scores and truncated snippets."""
        store = InMemoryVectorStore(dimensions=3)
        long_content = "x" * 300
        record_id = await store.insert(VectorRecord(vector=VECTOR, content=long_content))
        orchestrator = RAGOrchestrator(_mock_client(), store, RAGSettings())

        response = await orchestrator.query("question")

        assert response.tokens_used == 50
        assert response.model == "amazon.titan-text-express-v1"
        assert response.sources[0].id == record_id
        assert response.sources[0].score == pytest.approx(1.0)
        assert response.sources[0].content == "x" * 200 + "..."
        assert response.context.contents == [long_content]

    @pytest.mark.asyncio
    async def test_other_namespace_not_used(self) -> None:
        """Records of other namespaces never reach the prompt."""
        store = InMemoryVectorStore(dimensions=3)
        await store.insert(VectorRecord(vector=VECTOR, content="secret", namespace="tenant-b"))
        client = _mock_client()
        orchestrator = RAGOrchestrator(client, store, RAGSettings())

        response = await orchestrator.query("question", namespace="tenant-a")

        assert "secret" not in _prompt_sent(client)
        assert response.sources == []

    @pytest.mark.asyncio
    async def test_empty_context_still_generates(self) -> None:
        """An empty store yields a no-context prompt, not an error."""
        client = _mock_client("I don't know.")
        orchestrator = RAGOrchestrator(client, InMemoryVectorStore(dimensions=3), RAGSettings())

        response = await orchestrator.query("What is Rust?")

        assert response.answer == "I don't know."
        assert response.context == RagContext()
        assert _prompt_sent(client) == "Question: What is Rust?\n\nAnswer:"

    @pytest.mark.asyncio
    async def test_records_without_content_skipped(self) -> None:
        """Hits without content are not used as context."""
        store = InMemoryVectorStore(dimensions=3)
        await store.insert(VectorRecord(vector=VECTOR))
        orchestrator = RAGOrchestrator(_mock_client(), store, RAGSettings())

        context = await orchestrator.retrieve("question")

        assert context.is_empty

    @pytest.mark.asyncio
    async def test_storage_error_propagates(self) -> None:
        """Storage failures abort the query before generation."""
        store = MagicMock()
        store.search = AsyncMock(side_effect=StorageError("down"))
        client = _mock_client()
        orchestrator = RAGOrchestrator(client, store, RAGSettings())

        with pytest.raises(StorageError):
            await orchestrator.query("question")

        client.text.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_generation_error_propagates(self) -> None:
        """Model failures reach the caller unchanged."""
        client = _mock_client()
        client.text.generate.side_effect = TransportError(
            "throttled", code=ErrorCode.TRANSPORT_THROTTLED
        )
        orchestrator = RAGOrchestrator(client, InMemoryVectorStore(dimensions=3), RAGSettings())

        with pytest.raises(TransportError):
            await orchestrator.query("question")

    @pytest.mark.asyncio
    async def test_models_and_parameters_forwarded(self) -> None:
        """Model ids and generation parameters reach the client."""
        client = _mock_client()
        orchestrator = RAGOrchestrator(
            client,
            InMemoryVectorStore(dimensions=3),
            RAGSettings(),
            RAGPromptTemplate(system_prompt="Answer briefly."),
        )

        await orchestrator.query(
            "question",
            gen_model="anthropic.claude-3-haiku-20240307-v1:0",
            embed_model="cohere.embed-english-v3",
            max_tokens=100,
            temperature=0.2,
        )

        embed_request = client.embeddings.embed.call_args.args[0]
        assert embed_request.model_id == "cohere.embed-english-v3"
        assert embed_request.input_type == "search_query"
        generate_request = client.text.generate.call_args.args[0]
        assert generate_request.model_id == "anthropic.claude-3-haiku-20240307-v1:0"
        assert generate_request.system_prompt == "Answer briefly."
        assert generate_request.max_tokens == 100
        assert generate_request.temperature == 0.2

    @pytest.mark.asyncio
    async def test_semantic_search_rejects_bad_limit(self) -> None:
        """A non-positive limit is a request error."""
        orchestrator = RAGOrchestrator(
            _mock_client(), InMemoryVectorStore(dimensions=3), RAGSettings()
        )

        with pytest.raises(RequestError) as exc_info:
            await orchestrator.semantic_search("question", limit=0)

        assert exc_info.value.code == ErrorCode.PARAMETER_OUT_OF_RANGE

    @pytest.mark.asyncio
    async def test_embed_and_store(self) -> None:
        """Stored texts are embedded as documents and kept with content."""
        store = InMemoryVectorStore(dimensions=3)
        client = _mock_client()
        orchestrator = RAGOrchestrator(client, store, RAGSettings())

        record = await orchestrator.embed_and_store(
            "Rust is fast",
            metadata={"lang": "en"},
            namespace="docs",
        )

        assert client.embeddings.embed.call_args.args[0].input_type == "search_document"
        stored = await store.get(str(record.id), "docs")
        assert stored is not None
        assert stored.content == "Rust is fast"
        assert stored.metadata == {"lang": "en"}
