"""Tests for gateway API routes."""

import json
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from bedrock_gateway.api.app import create_app, get_status_code
from bedrock_gateway.api.routes import IngestRequest, RAGQueryRequest, chunk_to_line, stream_text
from bedrock_gateway.bedrock.client import BedrockClient
from bedrock_gateway.config import BedrockSettings, RAGSettings
from bedrock_gateway.exceptions import ErrorCode, TransportError
from bedrock_gateway.providers.models import (
    EmbeddingResponse,
    StreamChunk,
    TextGenerationRequest,
)
from bedrock_gateway.rag.pipeline import RAGOrchestrator
from bedrock_gateway.vectorstore.memory import InMemoryVectorStore
from bedrock_gateway.vectorstore.models import VectorRecord
from fakes import FakeTransport, chunk_message, event_message, meta_stream_transport

LLAMA = "meta.llama3-8b-instruct-v1:0"


def _app(transport: FakeTransport | None = None, with_store: bool = True) -> FastAPI:
    app = create_app()
    bedrock = BedrockClient(BedrockSettings(), transport=transport or FakeTransport())
    app.state.bedrock = bedrock
    app.state.vector_store = None
    app.state.rag = None
    if with_store:
        store = InMemoryVectorStore(dimensions=3)
        app.state.vector_store = store
        app.state.rag = RAGOrchestrator(bedrock, store, RAGSettings())
    return app


@pytest.fixture
async def unconfigured_client() -> AsyncGenerator[AsyncClient, None]:
    """Client for an app whose services were never built."""
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestRequestModels:
    """Tests for request bodies."""

    def test_rag_query_defaults(self) -> None:
        """Optional fields default to None."""
        req = RAGQueryRequest(query="What?")
        assert req.context_limit is None
        assert req.filter is None

    def test_ingest_defaults(self) -> None:
        """Ingest metadata defaults to empty."""
        req = IngestRequest(content="Hello")
        assert req.metadata == {}
        assert req.id is None

    def test_chunk_to_line(self) -> None:
        """Stream chunks serialize as one JSON line."""
        line = chunk_to_line(StreamChunk(chunk="hi"))
        assert line.endswith("\n")
        assert json.loads(line) == {"chunk": "hi", "done": False, "finish_reason": None}


class TestStatusMapping:
    """Tests for error code to HTTP status mapping."""

    @pytest.mark.parametrize(
        ("code", "status"),
        [
            (ErrorCode.UNKNOWN_MODEL, 400),
            (ErrorCode.PARAMETER_OUT_OF_RANGE, 400),
            (ErrorCode.DIMENSION_MISMATCH, 400),
            (ErrorCode.UNSUPPORTED_OPERATION, 501),
            (ErrorCode.TRANSPORT_THROTTLED, 429),
            (ErrorCode.TRANSPORT_TIMEOUT, 504),
            (ErrorCode.MODEL_ERROR, 502),
            (ErrorCode.STORAGE_CONNECTION_ERROR, 503),
            (ErrorCode.MALFORMED_RESPONSE, 500),
        ],
    )
    def test_status_codes(self, code: ErrorCode, status: int) -> None:
        """Each code maps to its HTTP status."""
        assert get_status_code(code) == status


class TestUnconfigured:
    """Tests for routes when services are missing."""

    @pytest.mark.asyncio
    async def test_rag_query_returns_503(self, unconfigured_client: AsyncClient) -> None:
        """RAG query returns 503 when the pipeline is not configured."""
        response = await unconfigured_client.post("/api/v1/rag/query", json={"query": "What?"})

        assert response.status_code == 503
        assert "not configured" in response.json()["detail"]["error"]

    @pytest.mark.asyncio
    async def test_text_returns_503(self, unconfigured_client: AsyncClient) -> None:
        """Text generation returns 503 without a Bedrock client."""
        response = await unconfigured_client.post("/api/v1/text/generate", json={"prompt": "Hi"})
        assert response.status_code == 503


class TestModelsEndpoint:
    """Tests for /api/v1/models."""

    @pytest.mark.asyncio
    async def test_filter_by_category(self, unconfigured_client: AsyncClient) -> None:
        """The catalog is available without services and filters by category."""
        response = await unconfigured_client.get("/api/v1/models", params={"category": "image"})

        assert response.status_code == 200
        models = response.json()
        assert models
        assert all(m["category"] == "image" for m in models)


class TestTextEndpoints:
    """Tests for text generation routes."""

    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        """Generated text is returned as JSON."""
        transport = FakeTransport(body=b'{"generation": "Paris", "stop_reason": "stop"}')
        async with _client(_app(transport)) as client:
            response = await client.post(
                "/api/v1/text/generate",
                json={"prompt": "Capital of France?", "model_id": LLAMA},
            )

        assert response.status_code == 200
        assert response.json()["text"] == "Paris"

    @pytest.mark.asyncio
    async def test_generate_parameter_error(self) -> None:
        """Out-of-range parameters return a structured 400."""
        async with _client(_app()) as client:
            response = await client.post(
                "/api/v1/text/generate",
                json={"prompt": "Hi", "model_id": LLAMA, "temperature": 4.0},
            )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == ErrorCode.PARAMETER_OUT_OF_RANGE.value

    @pytest.mark.asyncio
    async def test_generate_unknown_model(self) -> None:
        """Unresolvable models return 400 UNKNOWN_MODEL."""
        async with _client(_app()) as client:
            response = await client.post(
                "/api/v1/text/generate",
                json={"prompt": "Hi", "model_id": "gpt-4o"},
            )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == ErrorCode.UNKNOWN_MODEL.value

    @pytest.mark.asyncio
    async def test_generate_throttled(self) -> None:
        """Throttling maps to 429."""
        transport = FakeTransport(
            error=TransportError("slow down", code=ErrorCode.TRANSPORT_THROTTLED)
        )
        async with _client(_app(transport)) as client:
            response = await client.post(
                "/api/v1/text/generate",
                json={"prompt": "Hi", "model_id": LLAMA},
            )

        assert response.status_code == 429

    @pytest.mark.asyncio
    async def test_stream_ndjson(self) -> None:
        """Streamed chunks arrive as NDJSON lines ending with done."""
        transport = meta_stream_transport(
            [b'{"generation": "He', b'llo"}\n{"generation": "!"}\n<END>']
        )
        async with _client(_app(transport)) as client:
            response = await client.post(
                "/api/v1/text/stream",
                json={"prompt": "Hi", "model_id": LLAMA},
            )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        lines = [json.loads(line) for line in response.text.splitlines()]
        assert [line["chunk"] for line in lines] == ["Hello", "!", ""]
        assert lines[-1]["done"] is True

    @pytest.mark.asyncio
    async def test_stream_error_line(self) -> None:
        """A failure mid-stream ends the body with an error line."""
        transport = FakeTransport(
            fragments=[
                chunk_message({"generation": "partial"}),
                event_message(
                    b'{"message": "bad"}',
                    {":message-type": "exception", ":exception-type": "modelStreamErrorException"},
                ),
            ]
        )
        async with _client(_app(transport)) as client:
            response = await client.post(
                "/api/v1/text/stream",
                json={"prompt": "Hi", "model_id": LLAMA},
            )

        lines = [json.loads(line) for line in response.text.splitlines()]
        assert lines[0]["chunk"] == "partial"
        assert lines[-1]["error"]["code"] == ErrorCode.MODEL_ERROR.value

    @pytest.mark.asyncio
    async def test_stream_body_closed_early(self) -> None:
        """Closing the response body releases the model stream at once."""
        fragments = [chunk_message({"generation": str(i)}) for i in range(10)]
        transport = FakeTransport(fragments=fragments)
        request = MagicMock()
        request.app = _app(transport)

        response = await stream_text(TextGenerationRequest(prompt="Hi", model_id=LLAMA), request)
        body = response.body_iterator
        first = await body.__anext__()
        await body.aclose()  # type: ignore[attr-defined]

        assert json.loads(first)["chunk"] == "0"
        assert transport.stream_closed
        assert transport.fragments_sent < len(fragments)


class TestEmbeddingAndImageEndpoints:
    """Tests for embedding and image routes."""

    @pytest.mark.asyncio
    async def test_embeddings(self) -> None:
        """Embedding vectors are returned."""
        transport = FakeTransport(body=b'{"embedding": [0.5, 0.5]}')
        async with _client(_app(transport)) as client:
            response = await client.post("/api/v1/embeddings", json={"text": "hello"})

        assert response.status_code == 200
        assert response.json()["embedding"] == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_images(self) -> None:
        """Generated images are returned base64 encoded."""
        transport = FakeTransport(body=b'{"images": ["aW1n"]}')
        async with _client(_app(transport)) as client:
            response = await client.post("/api/v1/images", json={"prompt": "a cat"})

        assert response.status_code == 200
        assert response.json()["images"] == ["aW1n"]


class TestRAGEndpoints:
    """Tests for RAG and vector routes."""

    def _rag_app(self) -> FastAPI:
        app = _app()
        client = MagicMock()
        client.embeddings.embed = AsyncMock(
            return_value=EmbeddingResponse(embedding=[1.0, 0.0, 0.0], model="m")
        )
        app.state.rag = RAGOrchestrator(client, app.state.vector_store, RAGSettings())
        return app

    @pytest.mark.asyncio
    async def test_ingest_then_search(self) -> None:
        """Ingested text is found by vector search."""
        app = self._rag_app()
        async with _client(app) as client:
            ingest = await client.post(
                "/api/v1/rag/ingest",
                json={"content": "Rust is fast", "metadata": {"lang": "en"}},
            )
            search = await client.post(
                "/api/v1/vectors/search",
                json={"vector": [1.0, 0.0, 0.0], "limit": 1},
            )

        assert ingest.status_code == 200
        body = ingest.json()
        assert body["namespace"] == "default"
        assert body["dimensions"] == 3
        assert search.json()[0]["id"] == body["id"]
        assert search.json()[0]["content"] == "Rust is fast"

    @pytest.mark.asyncio
    async def test_search_dimension_mismatch(self) -> None:
        """Wrong-length query vectors return 400."""
        async with _client(_app()) as client:
            response = await client.post("/api/v1/vectors/search", json={"vector": [1.0]})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == ErrorCode.DIMENSION_MISMATCH.value

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        """Deleting returns 200 once and 404 afterwards."""
        app = _app()
        await app.state.vector_store.insert(VectorRecord(id="doc-1", vector=[1.0, 0.0, 0.0]))

        async with _client(app) as client:
            first = await client.delete("/api/v1/vectors/doc-1")
            second = await client.delete("/api/v1/vectors/doc-1")

        assert first.status_code == 200
        assert first.json() == {"id": "doc-1", "deleted": True}
        assert second.status_code == 404

    @pytest.mark.asyncio
    async def test_vectors_503_without_store(self) -> None:
        """Vector routes return 503 without a store."""
        async with _client(_app(with_store=False)) as client:
            response = await client.post("/api/v1/vectors/search", json={"vector": [1.0]})

        assert response.status_code == 503
