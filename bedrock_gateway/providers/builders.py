"""Provider-specific request payload builders.

Each provider family has one builder per capability. Builders are pure:
they rename and nest fields, apply defaults, clamp to provider limits
and reject values outside the provider's documented range.
"""

import json
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from bedrock_gateway.exceptions import ErrorCode, RequestError
from bedrock_gateway.providers.models import (
    EmbeddingRequest,
    ImageGenerationRequest,
    ModelProfile,
    Provider,
    TextGenerationRequest,
)
from bedrock_gateway.providers.profiles import base_model_id

ANTHROPIC_VERSION = "bedrock-2023-05-31"
DEFAULT_TOP_P = 0.9


class ProviderLimits(BaseModel):
    """Legal parameter ranges for a provider family."""

    min_temperature: float = 0.0
    max_temperature: float = 1.0
    max_tokens_cap: int


PROVIDER_LIMITS: dict[Provider, ProviderLimits] = {
    Provider.AMAZON: ProviderLimits(max_tokens_cap=8192),
    Provider.ANTHROPIC: ProviderLimits(max_tokens_cap=8192),
    Provider.META: ProviderLimits(max_tokens_cap=2048),
    Provider.MISTRAL: ProviderLimits(max_tokens_cap=8192),
    Provider.AI21: ProviderLimits(max_tokens_cap=4096),
    Provider.COHERE: ProviderLimits(max_temperature=5.0, max_tokens_cap=4096),
}

COHERE_INPUT_TYPES = frozenset(
    {"search_document", "search_query", "classification", "clustering"}
)
TITAN_V2_DIMENSIONS = frozenset({256, 512, 1024})
TITAN_MAX_IMAGES = 5


class TextParams(BaseModel):
    """Text generation parameters after defaulting and clamping."""

    prompt: str
    system_prompt: str | None
    max_tokens: int
    temperature: float


def _require_prompt(prompt: str, profile: ModelProfile) -> None:
    if not prompt or not prompt.strip():
        raise RequestError(
            "Prompt must not be empty",
            code=ErrorCode.INVALID_REQUEST,
            details={"model_id": profile.model_id},
        )


def _text_params(
    request: TextGenerationRequest,
    profile: ModelProfile,
    default_max_tokens: int,
    default_temperature: float,
) -> TextParams:
    _require_prompt(request.prompt, profile)
    limits = PROVIDER_LIMITS[profile.provider]

    max_tokens = request.max_tokens if request.max_tokens is not None else default_max_tokens
    if max_tokens <= 0:
        raise RequestError(
            f"max_tokens must be positive, got {max_tokens}",
            code=ErrorCode.PARAMETER_OUT_OF_RANGE,
            details={"field": "max_tokens", "value": max_tokens},
        )
    max_tokens = min(max_tokens, limits.max_tokens_cap)

    temperature = (
        request.temperature if request.temperature is not None else default_temperature
    )
    if not limits.min_temperature <= temperature <= limits.max_temperature:
        raise RequestError(
            f"temperature {temperature} outside "
            f"[{limits.min_temperature}, {limits.max_temperature}] "
            f"for {profile.provider.value}",
            code=ErrorCode.PARAMETER_OUT_OF_RANGE,
            details={
                "field": "temperature",
                "value": temperature,
                "provider": profile.provider.value,
            },
        )

    return TextParams(
        prompt=request.prompt,
        system_prompt=request.system_prompt,
        max_tokens=max_tokens,
        temperature=temperature,
    )


def _flat_prompt(params: TextParams) -> str:
    if params.system_prompt:
        return f"{params.system_prompt}\n\n{params.prompt}"
    return params.prompt


def _unsupported(capability: str) -> Callable[..., dict[str, Any]]:
    def build(request: Any, profile: ModelProfile, *args: Any) -> dict[str, Any]:
        raise RequestError(
            f"{profile.provider.value} models do not support {capability}",
            code=ErrorCode.CAPABILITY_NOT_SUPPORTED,
            details={"model_id": profile.model_id, "capability": capability},
        )

    return build


# Text builders


def _titan_text(params: TextParams, profile: ModelProfile) -> dict[str, Any]:
    return {
        "inputText": _flat_prompt(params),
        "textGenerationConfig": {
            "maxTokenCount": params.max_tokens,
            "temperature": params.temperature,
            "topP": DEFAULT_TOP_P,
        },
    }


def _anthropic_text(params: TextParams, profile: ModelProfile) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "anthropic_version": ANTHROPIC_VERSION,
        "messages": [{"role": "user", "content": params.prompt}],
        "max_tokens": params.max_tokens,
        "temperature": params.temperature,
    }
    if params.system_prompt:
        payload["system"] = params.system_prompt
    return payload


def _llama_text(params: TextParams, profile: ModelProfile) -> dict[str, Any]:
    return {
        "prompt": _flat_prompt(params),
        "max_gen_len": params.max_tokens,
        "temperature": params.temperature,
        "top_p": DEFAULT_TOP_P,
    }


def _mistral_text(params: TextParams, profile: ModelProfile) -> dict[str, Any]:
    return {
        "prompt": _flat_prompt(params),
        "max_tokens": params.max_tokens,
        "temperature": params.temperature,
        "top_p": DEFAULT_TOP_P,
    }


def is_jamba(model_id: str) -> bool:
    """AI21 Jamba models use a chat schema; Jurassic-2 uses a flat prompt."""
    return base_model_id(model_id).startswith("ai21.jamba")


def _ai21_text(params: TextParams, profile: ModelProfile) -> dict[str, Any]:
    if is_jamba(profile.model_id) or profile.model_id.startswith("arn:"):
        messages = []
        if params.system_prompt:
            messages.append({"role": "system", "content": params.system_prompt})
        messages.append({"role": "user", "content": params.prompt})
        return {
            "messages": messages,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "top_p": DEFAULT_TOP_P,
        }
    return {
        "prompt": _flat_prompt(params),
        "maxTokens": params.max_tokens,
        "temperature": params.temperature,
        "topP": DEFAULT_TOP_P,
    }


def is_command_r(model_id: str) -> bool:
    """Cohere Command R models take `message`; classic Command takes `prompt`."""
    return base_model_id(model_id).startswith("cohere.command-r")


def _cohere_text(params: TextParams, profile: ModelProfile) -> dict[str, Any]:
    if is_command_r(profile.model_id):
        payload: dict[str, Any] = {
            "message": params.prompt,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "p": DEFAULT_TOP_P,
        }
        if params.system_prompt:
            payload["preamble"] = params.system_prompt
        return payload
    return {
        "prompt": _flat_prompt(params),
        "max_tokens": params.max_tokens,
        "temperature": params.temperature,
        "p": DEFAULT_TOP_P,
    }


TEXT_BUILDERS: dict[Provider, Callable[..., dict[str, Any]]] = {
    Provider.AMAZON: _titan_text,
    Provider.ANTHROPIC: _anthropic_text,
    Provider.META: _llama_text,
    Provider.MISTRAL: _mistral_text,
    Provider.AI21: _ai21_text,
    Provider.COHERE: _cohere_text,
    Provider.STABILITY: _unsupported("text generation"),
}


def build_text_request(
    request: TextGenerationRequest,
    profile: ModelProfile,
    *,
    default_max_tokens: int = 512,
    default_temperature: float = 0.7,
) -> dict[str, Any]:
    """Build the native text generation payload for a profile.

    Args:
        request: Generic text request.
        profile: Resolved model profile.
        default_max_tokens: Used when the request sets no max_tokens.
        default_temperature: Used when the request sets no temperature.

    Returns:
        Provider-native JSON payload.

    Raises:
        RequestError: If a field is missing or out of range, or the
            provider has no text models.
    """
    builder = TEXT_BUILDERS[profile.provider]
    if profile.provider not in PROVIDER_LIMITS:
        return builder(request, profile)
    params = _text_params(request, profile, default_max_tokens, default_temperature)
    return builder(params, profile)


# Embedding builders


def _titan_embedding(request: EmbeddingRequest, profile: ModelProfile) -> dict[str, Any]:
    payload: dict[str, Any] = {"inputText": request.text}
    if "embed-text-v2" in profile.model_id:
        if request.dimensions is not None:
            if request.dimensions not in TITAN_V2_DIMENSIONS:
                raise RequestError(
                    f"dimensions must be one of {sorted(TITAN_V2_DIMENSIONS)}",
                    code=ErrorCode.PARAMETER_OUT_OF_RANGE,
                    details={"field": "dimensions", "value": request.dimensions},
                )
            payload["dimensions"] = request.dimensions
        payload["normalize"] = True
    elif request.dimensions is not None:
        raise RequestError(
            f"{profile.model_id} does not support custom dimensions",
            code=ErrorCode.CAPABILITY_NOT_SUPPORTED,
            details={"model_id": profile.model_id},
        )
    return payload


def _cohere_embedding(request: EmbeddingRequest, profile: ModelProfile) -> dict[str, Any]:
    if request.input_type not in COHERE_INPUT_TYPES:
        raise RequestError(
            f"Unknown Cohere input_type: {request.input_type}",
            code=ErrorCode.PARAMETER_OUT_OF_RANGE,
            details={"field": "input_type", "value": request.input_type},
        )
    return {
        "texts": [request.text],
        "input_type": request.input_type,
        "truncate": "END",
    }


EMBEDDING_BUILDERS: dict[Provider, Callable[..., dict[str, Any]]] = {
    Provider.AMAZON: _titan_embedding,
    Provider.ANTHROPIC: _unsupported("embeddings"),
    Provider.META: _unsupported("embeddings"),
    Provider.MISTRAL: _unsupported("embeddings"),
    Provider.AI21: _unsupported("embeddings"),
    Provider.COHERE: _cohere_embedding,
    Provider.STABILITY: _unsupported("embeddings"),
}


def build_embedding_request(
    request: EmbeddingRequest,
    profile: ModelProfile,
) -> dict[str, Any]:
    """Build the native embedding payload for a profile.

    Raises:
        RequestError: If the text is empty or the provider has no
            embedding models.
    """
    if not request.text or not request.text.strip():
        raise RequestError(
            "Embedding input text must not be empty",
            code=ErrorCode.INVALID_REQUEST,
            details={"model_id": profile.model_id},
        )
    return EMBEDDING_BUILDERS[profile.provider](request, profile)


# Image builders


def _image_size(request: ImageGenerationRequest) -> tuple[int, int]:
    width = request.width if request.width is not None else 1024
    height = request.height if request.height is not None else 1024
    if width <= 0 or height <= 0:
        raise RequestError(
            f"Image size must be positive, got {width}x{height}",
            code=ErrorCode.PARAMETER_OUT_OF_RANGE,
            details={"width": width, "height": height},
        )
    return width, height


def _titan_image(request: ImageGenerationRequest, profile: ModelProfile) -> dict[str, Any]:
    width, height = _image_size(request)
    num_images = request.num_images if request.num_images is not None else 1
    if not 1 <= num_images <= TITAN_MAX_IMAGES:
        raise RequestError(
            f"num_images must be between 1 and {TITAN_MAX_IMAGES}",
            code=ErrorCode.PARAMETER_OUT_OF_RANGE,
            details={"field": "num_images", "value": num_images},
        )

    text_params: dict[str, Any] = {"text": request.prompt}
    if request.negative_prompt:
        text_params["negativeText"] = request.negative_prompt

    config: dict[str, Any] = {
        "width": width,
        "height": height,
        "numberOfImages": num_images,
        "quality": "standard",
        "cfgScale": 8.0,
    }
    if request.seed is not None:
        config["seed"] = request.seed

    return {
        "taskType": "TEXT_IMAGE",
        "textToImageParams": text_params,
        "imageGenerationConfig": config,
    }


def _stability_image(
    request: ImageGenerationRequest,
    profile: ModelProfile,
) -> dict[str, Any]:
    width, height = _image_size(request)
    if width % 64 or height % 64:
        raise RequestError(
            f"Stability image size must be a multiple of 64, got {width}x{height}",
            code=ErrorCode.PARAMETER_OUT_OF_RANGE,
            details={"width": width, "height": height},
        )
    num_images = request.num_images if request.num_images is not None else 1
    if num_images != 1:
        raise RequestError(
            "Stability models generate one image per request",
            code=ErrorCode.PARAMETER_OUT_OF_RANGE,
            details={"field": "num_images", "value": num_images},
        )

    prompts: list[dict[str, Any]] = [{"text": request.prompt, "weight": 1.0}]
    if request.negative_prompt:
        prompts.append({"text": request.negative_prompt, "weight": -1.0})

    payload: dict[str, Any] = {
        "text_prompts": prompts,
        "cfg_scale": 7,
        "steps": 30,
        "width": width,
        "height": height,
        "samples": num_images,
    }
    if request.seed is not None:
        payload["seed"] = request.seed
    return payload


IMAGE_BUILDERS: dict[Provider, Callable[..., dict[str, Any]]] = {
    Provider.AMAZON: _titan_image,
    Provider.ANTHROPIC: _unsupported("image generation"),
    Provider.META: _unsupported("image generation"),
    Provider.MISTRAL: _unsupported("image generation"),
    Provider.AI21: _unsupported("image generation"),
    Provider.COHERE: _unsupported("image generation"),
    Provider.STABILITY: _stability_image,
}


def build_image_request(
    request: ImageGenerationRequest,
    profile: ModelProfile,
) -> dict[str, Any]:
    """Build the native image generation payload for a profile.

    Raises:
        RequestError: If the prompt is empty, a size or count is out of
            range, or the provider has no image models.
    """
    _require_prompt(request.prompt, profile)
    return IMAGE_BUILDERS[profile.provider](request, profile)


def encode_payload(payload: dict[str, Any]) -> bytes:
    """Serialize a native payload to the request body."""
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")
