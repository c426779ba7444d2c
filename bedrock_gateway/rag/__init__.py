"""RAG pipeline module."""

from bedrock_gateway.rag.models import RagContext, RAGResponse, SourceAttribution
from bedrock_gateway.rag.pipeline import RAGOrchestrator
from bedrock_gateway.rag.prompts import RAGPromptTemplate

__all__ = [
    "RAGOrchestrator",
    "RAGPromptTemplate",
    "RAGResponse",
    "RagContext",
    "SourceAttribution",
]
