"""Provider normalization: model resolution, request builders, response parsers."""

from bedrock_gateway.providers.builders import (
    build_embedding_request,
    build_image_request,
    build_text_request,
    encode_payload,
)
from bedrock_gateway.providers.models import (
    EmbeddingRequest,
    EmbeddingResponse,
    ImageGenerationRequest,
    ImageGenerationResponse,
    InvocationMode,
    ModelCategory,
    ModelInfo,
    ModelProfile,
    Provider,
    StreamChunk,
    TextGenerationRequest,
    TextGenerationResponse,
)
from bedrock_gateway.providers.parsers import (
    parse_embedding_response,
    parse_image_response,
    parse_stream_chunk,
    parse_text_response,
)
from bedrock_gateway.providers.profiles import (
    is_model_supported,
    resolve,
    supported_models,
)

__all__ = [
    "EmbeddingRequest",
    "EmbeddingResponse",
    "ImageGenerationRequest",
    "ImageGenerationResponse",
    "InvocationMode",
    "ModelCategory",
    "ModelInfo",
    "ModelProfile",
    "Provider",
    "StreamChunk",
    "TextGenerationRequest",
    "TextGenerationResponse",
    "build_embedding_request",
    "build_image_request",
    "build_text_request",
    "encode_payload",
    "is_model_supported",
    "parse_embedding_response",
    "parse_image_response",
    "parse_stream_chunk",
    "parse_text_response",
    "resolve",
    "supported_models",
]
