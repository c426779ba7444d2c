"""Observability module for metrics and monitoring."""

from bedrock_gateway.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_model_invocation,
    track_rag_query,
    track_retrieval_request,
    track_stream_chunk,
    track_token_usage,
    track_vectorstore_operation,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_model_invocation",
    "track_rag_query",
    "track_retrieval_request",
    "track_stream_chunk",
    "track_token_usage",
    "track_vectorstore_operation",
]
