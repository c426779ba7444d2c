"""Bedrock model clients.

Each client resolves the model profile, builds the native payload,
invokes the transport and parses the result. Clients share one
transport; BedrockClient owns it.
"""

import time
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Any, TypeVar

from bedrock_gateway.bedrock.streaming import StreamDecoder
from bedrock_gateway.bedrock.transport import BedrockTransport, HTTPBedrockTransport
from bedrock_gateway.config import BedrockSettings, get_settings
from bedrock_gateway.exceptions import GatewayError
from bedrock_gateway.logging_config import get_logger
from bedrock_gateway.observability.metrics import (
    track_model_invocation,
    track_stream_chunk,
    track_token_usage,
)
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
    ModelProfile,
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
from bedrock_gateway.providers.profiles import resolve

logger = get_logger(__name__)

T = TypeVar("T")


class _ModelClient:
    """Shared invoke path for single-shot calls."""

    def __init__(
        self,
        transport: BedrockTransport,
        settings: BedrockSettings | None = None,
    ) -> None:
        self._transport = transport
        self._settings = settings or get_settings().bedrock

    async def _invoke(
        self,
        profile: ModelProfile,
        payload: dict[str, Any],
        parse: Callable[[bytes, ModelProfile], T],
    ) -> T:
        body = encode_payload(payload)
        logger.info(f"Invoking {profile.model_id} ({InvocationMode.SYNC.value})")
        logger.debug(f"Request payload for {profile.model_id}: {len(body)} bytes")

        start_time = time.perf_counter()
        try:
            raw = await self._transport.invoke(profile.model_id, body)
            logger.debug(f"Response from {profile.model_id}: {len(raw)} bytes")
            result = parse(raw, profile)
        except GatewayError as e:
            logger.error(f"Invocation of {profile.model_id} failed: {e.message}")
            track_model_invocation(
                profile.provider.value,
                InvocationMode.SYNC.value,
                time.perf_counter() - start_time,
                success=False,
            )
            raise

        track_model_invocation(
            profile.provider.value,
            InvocationMode.SYNC.value,
            time.perf_counter() - start_time,
        )
        return result


class TextClient(_ModelClient):
    """Text generation, single-shot and streaming."""

    def _build(self, request: TextGenerationRequest, profile: ModelProfile) -> dict[str, Any]:
        return build_text_request(
            request,
            profile,
            default_max_tokens=self._settings.max_tokens,
            default_temperature=self._settings.temperature,
        )

    async def generate(self, request: TextGenerationRequest) -> TextGenerationResponse:
        """Generate a complete text response.

        Args:
            request: Text generation request; ``stream`` is ignored.

        Returns:
            TextGenerationResponse with text and token usage.

        Raises:
            ConfigError: If the model cannot be resolved.
            RequestError: If the request is invalid for the provider.
            TransportError: If the invocation fails.
            ResponseError: If the response does not match the provider schema.
        """
        profile = resolve(
            request.model_id,
            request.provider,
            stream=False,
            default_model_id=self._settings.default_text_model,
        )
        payload = self._build(request, profile)
        response = await self._invoke(profile, payload, parse_text_response)
        track_token_usage(profile.model_id, response.prompt_tokens, response.completion_tokens)
        return response

    def generate_stream(self, request: TextGenerationRequest) -> AsyncIterator[StreamChunk]:
        """Stream a text response.

        Resolution and payload validation happen immediately, so invalid
        requests fail before any iteration. The returned iterator yields
        non-empty text deltas in order and then exactly one chunk with
        ``done=True``. Closing it early closes the transport stream.

        Raises:
            ConfigError: If the model cannot be resolved.
            RequestError: If the request is invalid for the provider.
        """
        profile = resolve(
            request.model_id,
            request.provider,
            stream=True,
            default_model_id=self._settings.default_text_model,
        )
        payload = self._build(request, profile)
        return self._stream(profile, encode_payload(payload))

    async def _stream(self, profile: ModelProfile, body: bytes) -> AsyncIterator[StreamChunk]:
        logger.info(f"Invoking {profile.model_id} ({InvocationMode.STREAM.value})")
        logger.debug(f"Request payload for {profile.model_id}: {len(body)} bytes")

        decoder = StreamDecoder(self._transport.create_codec())
        provider = profile.provider.value
        finish_reason: str | None = None
        succeeded = True
        start_time = time.perf_counter()

        try:
            async with aclosing(self._transport.invoke_stream(profile.model_id, body)) as fragments:
                async with aclosing(decoder.frames(fragments)) as frames:
                    async for frame in frames:
                        if frame.payload:
                            chunk = parse_stream_chunk(frame.payload, profile)
                            if chunk.finish_reason:
                                finish_reason = chunk.finish_reason
                            if chunk.chunk:
                                track_stream_chunk(provider)
                                yield StreamChunk(chunk=chunk.chunk)
                            if chunk.done:
                                break
                        if frame.end_of_stream:
                            break
        except GatewayError as e:
            succeeded = False
            logger.error(f"Stream from {profile.model_id} failed: {e.message}")
            raise
        finally:
            track_model_invocation(
                provider,
                InvocationMode.STREAM.value,
                time.perf_counter() - start_time,
                success=succeeded,
            )

        yield StreamChunk(done=True, finish_reason=finish_reason)


class EmbeddingClient(_ModelClient):
    """Text embeddings."""

    async def embed(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """Embed a single text.

        Raises:
            ConfigError: If the model cannot be resolved.
            RequestError: If the text is empty or the model cannot embed.
            TransportError: If the invocation fails.
            ResponseError: If the response has no valid vector.
        """
        profile = resolve(
            request.model_id,
            request.provider,
            default_model_id=self._settings.default_embedding_model,
        )
        payload = build_embedding_request(request, profile)
        response = await self._invoke(profile, payload, parse_embedding_response)
        track_token_usage(profile.model_id, response.input_tokens, 0)
        return response

    async def embed_batch(
        self,
        texts: list[str],
        model_id: str | None = None,
        input_type: str = "search_document",
    ) -> list[EmbeddingResponse]:
        """Embed several texts, preserving order.

        Bedrock embedding models take one text per invocation, so texts
        are embedded sequentially.
        """
        results: list[EmbeddingResponse] = []
        for text in texts:
            results.append(
                await self.embed(
                    EmbeddingRequest(text=text, model_id=model_id, input_type=input_type)
                )
            )
        return results


class ImageClient(_ModelClient):
    """Image generation."""

    async def generate(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        """Generate images from a prompt.

        Returns:
            ImageGenerationResponse with every base64 image returned.
        """
        profile = resolve(
            request.model_id,
            request.provider,
            default_model_id=self._settings.default_image_model,
        )
        payload = build_image_request(request, profile)
        return await self._invoke(profile, payload, parse_image_response)


class BedrockClient:
    """Facade over text, embedding and image clients sharing one transport."""

    def __init__(
        self,
        settings: BedrockSettings | None = None,
        transport: BedrockTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Bedrock configuration.
            transport: Transport (for testing); an HTTP transport is
                created and owned when absent.
        """
        self._settings = settings or get_settings().bedrock
        self._transport = transport or HTTPBedrockTransport(self._settings)
        self._owns_transport = transport is None

        self.text = TextClient(self._transport, self._settings)
        self.embeddings = EmbeddingClient(self._transport, self._settings)
        self.images = ImageClient(self._transport, self._settings)

    @property
    def settings(self) -> BedrockSettings:
        """Bedrock configuration in use."""
        return self._settings

    async def close(self) -> None:
        """Close the owned transport."""
        if self._owns_transport:
            await self._transport.close()

    async def __aenter__(self) -> "BedrockClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
