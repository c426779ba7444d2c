"""Provider-specific response parsers.

Each parser maps a provider-native JSON body (a complete response, or a
single stream frame) to a normalized model. Missing or malformed fields
raise ResponseError; they indicate a schema mismatch, not a transient
failure, and are never retried.
"""

import json
from collections.abc import Callable
from typing import Any

from bedrock_gateway.exceptions import ErrorCode, RequestError, ResponseError
from bedrock_gateway.providers.builders import is_command_r, is_jamba
from bedrock_gateway.providers.models import (
    EmbeddingResponse,
    ImageGenerationResponse,
    ModelProfile,
    Provider,
    StreamChunk,
    TextGenerationResponse,
)

_MISSING = object()


def load_json(body: bytes | str, profile: ModelProfile) -> dict[str, Any]:
    """Decode a JSON object body.

    Raises:
        ResponseError: If the body is not a JSON object.
    """
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, ValueError) as e:
        raise ResponseError(
            f"Invalid JSON from {profile.model_id}: {e}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"model_id": profile.model_id},
        ) from e
    if not isinstance(data, dict):
        raise ResponseError(
            f"Expected a JSON object from {profile.model_id}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"model_id": profile.model_id, "type": type(data).__name__},
        )
    return data


def _field(data: Any, *path: str | int, profile: ModelProfile, kind: type | tuple[type, ...] = object) -> Any:
    """Walk a path into nested JSON, raising ResponseError on a miss."""
    current = data
    for key in path:
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError):
            current = _MISSING
        if current is _MISSING:
            raise ResponseError(
                f"Missing field '{'.'.join(map(str, path))}' in response from {profile.model_id}",
                code=ErrorCode.MALFORMED_RESPONSE,
                details={"model_id": profile.model_id, "field": list(path)},
            )
    if not isinstance(current, kind):
        raise ResponseError(
            f"Field '{'.'.join(map(str, path))}' has unexpected type "
            f"{type(current).__name__} in response from {profile.model_id}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"model_id": profile.model_id, "field": list(path)},
        )
    return current


def _optional_int(value: Any) -> int:
    return value if isinstance(value, int) else 0


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _unsupported(capability: str) -> Callable[..., Any]:
    def parse(data: dict[str, Any], profile: ModelProfile) -> Any:
        raise RequestError(
            f"{profile.provider.value} models do not support {capability}",
            code=ErrorCode.CAPABILITY_NOT_SUPPORTED,
            details={"model_id": profile.model_id, "capability": capability},
        )

    return parse


# Complete text responses


def _titan_text(data: dict[str, Any], profile: ModelProfile) -> TextGenerationResponse:
    result = _field(data, "results", 0, profile=profile, kind=dict)
    return TextGenerationResponse(
        text=_field(result, "outputText", profile=profile, kind=str),
        model=profile.model_id,
        prompt_tokens=_optional_int(data.get("inputTextTokenCount")),
        completion_tokens=_optional_int(result.get("tokenCount")),
        finish_reason=_optional_str(result.get("completionReason")),
    )


def _anthropic_text(data: dict[str, Any], profile: ModelProfile) -> TextGenerationResponse:
    blocks = _field(data, "content", profile=profile, kind=list)
    text = "".join(
        block.get("text", "")
        for block in blocks
        if isinstance(block, dict) and block.get("type", "text") == "text"
    )
    usage = data.get("usage") or {}
    return TextGenerationResponse(
        text=text,
        model=profile.model_id,
        prompt_tokens=_optional_int(usage.get("input_tokens")),
        completion_tokens=_optional_int(usage.get("output_tokens")),
        finish_reason=_optional_str(data.get("stop_reason")),
    )


def _llama_text(data: dict[str, Any], profile: ModelProfile) -> TextGenerationResponse:
    return TextGenerationResponse(
        text=_field(data, "generation", profile=profile, kind=str),
        model=profile.model_id,
        prompt_tokens=_optional_int(data.get("prompt_token_count")),
        completion_tokens=_optional_int(data.get("generation_token_count")),
        finish_reason=_optional_str(data.get("stop_reason")),
    )


def _mistral_text(data: dict[str, Any], profile: ModelProfile) -> TextGenerationResponse:
    output = _field(data, "outputs", 0, profile=profile, kind=dict)
    return TextGenerationResponse(
        text=_field(output, "text", profile=profile, kind=str),
        model=profile.model_id,
        finish_reason=_optional_str(output.get("stop_reason")),
    )


def _ai21_text(data: dict[str, Any], profile: ModelProfile) -> TextGenerationResponse:
    if "choices" in data or is_jamba(profile.model_id):
        choice = _field(data, "choices", 0, profile=profile, kind=dict)
        usage = data.get("usage") or {}
        return TextGenerationResponse(
            text=_field(choice, "message", "content", profile=profile, kind=str),
            model=profile.model_id,
            prompt_tokens=_optional_int(usage.get("prompt_tokens")),
            completion_tokens=_optional_int(usage.get("completion_tokens")),
            finish_reason=_optional_str(choice.get("finish_reason")),
        )

    completion = _field(data, "completions", 0, profile=profile, kind=dict)
    prompt_tokens = (data.get("prompt") or {}).get("tokens")
    completion_tokens = (completion.get("data") or {}).get("tokens")
    return TextGenerationResponse(
        text=_field(completion, "data", "text", profile=profile, kind=str),
        model=profile.model_id,
        prompt_tokens=len(prompt_tokens) if isinstance(prompt_tokens, list) else 0,
        completion_tokens=len(completion_tokens) if isinstance(completion_tokens, list) else 0,
        finish_reason=_optional_str((completion.get("finishReason") or {}).get("reason")),
    )


def _cohere_text(data: dict[str, Any], profile: ModelProfile) -> TextGenerationResponse:
    if is_command_r(profile.model_id) or "generations" not in data:
        return TextGenerationResponse(
            text=_field(data, "text", profile=profile, kind=str),
            model=profile.model_id,
            finish_reason=_optional_str(data.get("finish_reason")),
        )
    generation = _field(data, "generations", 0, profile=profile, kind=dict)
    return TextGenerationResponse(
        text=_field(generation, "text", profile=profile, kind=str),
        model=profile.model_id,
        finish_reason=_optional_str(generation.get("finish_reason")),
    )


TEXT_PARSERS: dict[Provider, Callable[..., TextGenerationResponse]] = {
    Provider.AMAZON: _titan_text,
    Provider.ANTHROPIC: _anthropic_text,
    Provider.META: _llama_text,
    Provider.MISTRAL: _mistral_text,
    Provider.AI21: _ai21_text,
    Provider.COHERE: _cohere_text,
    Provider.STABILITY: _unsupported("text generation"),
}


def parse_text_response(body: bytes | str, profile: ModelProfile) -> TextGenerationResponse:
    """Parse a complete text generation response."""
    return TEXT_PARSERS[profile.provider](load_json(body, profile), profile)


# Stream frames


def _titan_chunk(data: dict[str, Any], profile: ModelProfile) -> StreamChunk:
    reason = _optional_str(data.get("completionReason"))
    return StreamChunk(
        chunk=_field(data, "outputText", profile=profile, kind=str),
        done=reason is not None,
        finish_reason=reason,
    )


def _anthropic_chunk(data: dict[str, Any], profile: ModelProfile) -> StreamChunk:
    event_type = _field(data, "type", profile=profile, kind=str)
    if event_type == "content_block_delta":
        delta = _field(data, "delta", profile=profile, kind=dict)
        return StreamChunk(chunk=_optional_str(delta.get("text")) or "")
    if event_type == "message_delta":
        delta = data.get("delta") or {}
        return StreamChunk(finish_reason=_optional_str(delta.get("stop_reason")))
    if event_type == "message_stop":
        return StreamChunk(done=True)
    if event_type == "error":
        error = data.get("error") or {}
        raise ResponseError(
            f"Stream error from {profile.model_id}: {error.get('message', 'unknown')}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"model_id": profile.model_id, "error": error},
        )
    # message_start, content_block_start, content_block_stop, ping
    return StreamChunk()


def _llama_chunk(data: dict[str, Any], profile: ModelProfile) -> StreamChunk:
    reason = _optional_str(data.get("stop_reason"))
    return StreamChunk(
        chunk=_field(data, "generation", profile=profile, kind=str),
        done=reason is not None,
        finish_reason=reason,
    )


def _mistral_chunk(data: dict[str, Any], profile: ModelProfile) -> StreamChunk:
    output = _field(data, "outputs", 0, profile=profile, kind=dict)
    reason = _optional_str(output.get("stop_reason"))
    return StreamChunk(
        chunk=_field(output, "text", profile=profile, kind=str),
        done=reason is not None,
        finish_reason=reason,
    )


def _ai21_chunk(data: dict[str, Any], profile: ModelProfile) -> StreamChunk:
    choice = _field(data, "choices", 0, profile=profile, kind=dict)
    delta = choice.get("delta") or {}
    reason = _optional_str(choice.get("finish_reason"))
    return StreamChunk(
        chunk=_optional_str(delta.get("content")) or "",
        done=reason is not None,
        finish_reason=reason,
    )


def _cohere_chunk(data: dict[str, Any], profile: ModelProfile) -> StreamChunk:
    if "event_type" in data:
        event_type = data["event_type"]
        if event_type == "text-generation":
            return StreamChunk(chunk=_field(data, "text", profile=profile, kind=str))
        if event_type == "stream-end":
            return StreamChunk(
                done=True,
                finish_reason=_optional_str(data.get("finish_reason")),
            )
        return StreamChunk()
    finished = data.get("is_finished") is True
    return StreamChunk(
        chunk=_optional_str(data.get("text")) or "",
        done=finished,
        finish_reason=_optional_str(data.get("finish_reason")) if finished else None,
    )


CHUNK_PARSERS: dict[Provider, Callable[..., StreamChunk]] = {
    Provider.AMAZON: _titan_chunk,
    Provider.ANTHROPIC: _anthropic_chunk,
    Provider.META: _llama_chunk,
    Provider.MISTRAL: _mistral_chunk,
    Provider.AI21: _ai21_chunk,
    Provider.COHERE: _cohere_chunk,
    Provider.STABILITY: _unsupported("streaming"),
}


def parse_stream_chunk(frame: bytes | str, profile: ModelProfile) -> StreamChunk:
    """Parse one decoded stream frame into a StreamChunk.

    A chunk with done=True marks the provider's completion signal; the
    stream layer turns it into the single terminal chunk.
    """
    return CHUNK_PARSERS[profile.provider](load_json(frame, profile), profile)


# Embeddings


def _vector(value: Any, profile: ModelProfile) -> list[float]:
    if (
        not isinstance(value, list)
        or not value
        or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)
    ):
        raise ResponseError(
            f"Invalid embedding vector from {profile.model_id}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"model_id": profile.model_id},
        )
    return [float(v) for v in value]


def _titan_embedding(data: dict[str, Any], profile: ModelProfile) -> EmbeddingResponse:
    return EmbeddingResponse(
        embedding=_vector(_field(data, "embedding", profile=profile), profile),
        model=profile.model_id,
        input_tokens=_optional_int(data.get("inputTextTokenCount")),
    )


def _cohere_embedding(data: dict[str, Any], profile: ModelProfile) -> EmbeddingResponse:
    embeddings = _field(data, "embeddings", profile=profile, kind=(list, dict))
    if isinstance(embeddings, dict):
        # embedding_types responses key vectors by type
        embeddings = _field(embeddings, "float", profile=profile, kind=list)
    return EmbeddingResponse(
        embedding=_vector(_field(embeddings, 0, profile=profile), profile),
        model=profile.model_id,
    )


EMBEDDING_PARSERS: dict[Provider, Callable[..., EmbeddingResponse]] = {
    Provider.AMAZON: _titan_embedding,
    Provider.ANTHROPIC: _unsupported("embeddings"),
    Provider.META: _unsupported("embeddings"),
    Provider.MISTRAL: _unsupported("embeddings"),
    Provider.AI21: _unsupported("embeddings"),
    Provider.COHERE: _cohere_embedding,
    Provider.STABILITY: _unsupported("embeddings"),
}


def parse_embedding_response(body: bytes | str, profile: ModelProfile) -> EmbeddingResponse:
    """Parse an embedding response."""
    return EMBEDDING_PARSERS[profile.provider](load_json(body, profile), profile)


# Images


def _titan_image(data: dict[str, Any], profile: ModelProfile) -> ImageGenerationResponse:
    if data.get("error"):
        raise ResponseError(
            f"Image generation failed for {profile.model_id}: {data['error']}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"model_id": profile.model_id, "error": data["error"]},
        )
    images = _field(data, "images", profile=profile, kind=list)
    if not images or not all(isinstance(image, str) for image in images):
        raise ResponseError(
            f"No images in response from {profile.model_id}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"model_id": profile.model_id},
        )
    return ImageGenerationResponse(images=images, model=profile.model_id)


def _stability_image(data: dict[str, Any], profile: ModelProfile) -> ImageGenerationResponse:
    result = data.get("result", "success")
    if result != "success":
        raise ResponseError(
            f"Image generation failed for {profile.model_id}: {result}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"model_id": profile.model_id, "result": result},
        )
    artifacts = _field(data, "artifacts", profile=profile, kind=list)
    images = [
        _field(artifact, "base64", profile=profile, kind=str)
        for artifact in artifacts
    ]
    if not images:
        raise ResponseError(
            f"No images in response from {profile.model_id}",
            code=ErrorCode.MALFORMED_RESPONSE,
            details={"model_id": profile.model_id},
        )
    return ImageGenerationResponse(images=images, model=profile.model_id)


IMAGE_PARSERS: dict[Provider, Callable[..., ImageGenerationResponse]] = {
    Provider.AMAZON: _titan_image,
    Provider.ANTHROPIC: _unsupported("image generation"),
    Provider.META: _unsupported("image generation"),
    Provider.MISTRAL: _unsupported("image generation"),
    Provider.AI21: _unsupported("image generation"),
    Provider.COHERE: _unsupported("image generation"),
    Provider.STABILITY: _stability_image,
}


def parse_image_response(body: bytes | str, profile: ModelProfile) -> ImageGenerationResponse:
    """Parse an image generation response."""
    return IMAGE_PARSERS[profile.provider](load_json(body, profile), profile)
