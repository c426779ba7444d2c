"""Bedrock runtime access: transport, stream decoding and model clients."""

from bedrock_gateway.bedrock.client import (
    BedrockClient,
    EmbeddingClient,
    ImageClient,
    TextClient,
)
from bedrock_gateway.bedrock.streaming import (
    DecoderState,
    DelimitedFrameCodec,
    EventStreamCodec,
    Frame,
    FrameCodec,
    StreamDecoder,
)
from bedrock_gateway.bedrock.transport import BedrockTransport, HTTPBedrockTransport

__all__ = [
    "BedrockClient",
    "BedrockTransport",
    "DecoderState",
    "DelimitedFrameCodec",
    "EmbeddingClient",
    "EventStreamCodec",
    "Frame",
    "FrameCodec",
    "HTTPBedrockTransport",
    "ImageClient",
    "StreamDecoder",
    "TextClient",
]
