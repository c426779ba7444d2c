"""Prometheus metrics for the Bedrock gateway.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Model invocation latency, token usage and stream chunks
- Vector store operation latency
- Retrieval and RAG query metrics
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Model Invocation Metrics
MODEL_INVOCATION_DURATION = Histogram(
    "bedrock_invocation_duration_seconds",
    "Model invocation duration in seconds",
    ["provider", "mode", "status"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

MODEL_INVOCATION_TOTAL = Counter(
    "bedrock_invocations_total",
    "Total model invocations",
    ["provider", "mode", "status"],
)

MODEL_TOKENS_TOTAL = Counter(
    "bedrock_tokens_total",
    "Total tokens reported by models",
    ["model", "type"],  # "type" label values: prompt, completion
)

STREAM_CHUNKS_TOTAL = Counter(
    "bedrock_stream_chunks_total",
    "Total streamed text chunks",
    ["provider"],
)

# Vector Store Metrics
VECTORSTORE_OPERATION_DURATION = Histogram(
    "vectorstore_operation_duration_seconds",
    "Vector store operation duration",
    ["backend", "operation", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

# Retrieval Metrics
RETRIEVAL_CHUNKS_RETURNED = Histogram(
    "retrieval_chunks_returned",
    "Number of records returned per retrieval",
    buckets=[0, 1, 2, 3, 5, 10, 20, 50],
)

RETRIEVAL_TOP_SCORE = Histogram(
    "retrieval_top_score",
    "Top retrieval score per query",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

# RAG Query Metrics
RAG_QUERY_DURATION = Histogram(
    "rag_query_duration_seconds",
    "RAG query duration in seconds",
    ["status"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        if path.startswith("/health"):
            return "/health"
        # /api/v1/vectors/{id} and friends collapse to their resource
        if path.startswith("/api/v1/"):
            parts = path.split("/")
            if len(parts) >= 4:
                return f"/api/v1/{parts[3]}"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_model_invocation(
    provider: str,
    mode: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track a model invocation.

    Args:
        provider: Provider family.
        mode: Invocation mode (sync or stream).
        duration: Invocation duration in seconds.
        success: Whether the invocation succeeded.
    """
    status = "success" if success else "error"

    MODEL_INVOCATION_DURATION.labels(provider=provider, mode=mode, status=status).observe(duration)
    MODEL_INVOCATION_TOTAL.labels(provider=provider, mode=mode, status=status).inc()


def track_token_usage(model: str, prompt_tokens: int, completion_tokens: int) -> None:
    """Track tokens reported by a model."""
    if prompt_tokens:
        MODEL_TOKENS_TOTAL.labels(model=model, type="prompt").inc(prompt_tokens)
    if completion_tokens:
        MODEL_TOKENS_TOTAL.labels(model=model, type="completion").inc(completion_tokens)


def track_stream_chunk(provider: str) -> None:
    """Count one streamed text chunk."""
    STREAM_CHUNKS_TOTAL.labels(provider=provider).inc()


def track_vectorstore_operation(
    backend: str,
    operation: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track a vector store operation.

    Args:
        backend: Storage backend name.
        operation: Operation name.
        duration: Operation duration in seconds.
        success: Whether the operation succeeded.
    """
    status = "success" if success else "error"
    VECTORSTORE_OPERATION_DURATION.labels(
        backend=backend, operation=operation, status=status
    ).observe(duration)


def track_retrieval_request(
    chunks_returned: int,
    top_score: float,
) -> None:
    """Track retrieval request metrics.

    Args:
        chunks_returned: Number of records returned.
        top_score: Highest similarity score.
    """
    RETRIEVAL_CHUNKS_RETURNED.observe(chunks_returned)
    if top_score > 0:
        RETRIEVAL_TOP_SCORE.observe(top_score)


def track_rag_query(duration: float, success: bool = True) -> None:
    """Track an end-to-end RAG query."""
    RAG_QUERY_DURATION.labels(status="success" if success else "error").observe(duration)
