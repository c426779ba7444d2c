"""Model identifier resolution and the supported model catalog."""

from bedrock_gateway.exceptions import ConfigError, ErrorCode
from bedrock_gateway.logging_config import get_logger
from bedrock_gateway.providers.models import (
    InvocationMode,
    ModelCategory,
    ModelInfo,
    ModelProfile,
    Provider,
)

logger = get_logger(__name__)

PROVIDER_PREFIXES: dict[str, Provider] = {
    "amazon": Provider.AMAZON,
    "anthropic": Provider.ANTHROPIC,
    "meta": Provider.META,
    "mistral": Provider.MISTRAL,
    "ai21": Provider.AI21,
    "cohere": Provider.COHERE,
    "stability": Provider.STABILITY,
}

# Cross-region inference profiles prefix the base model id with a geography.
INFERENCE_PROFILE_PREFIXES = frozenset({"us", "eu", "apac", "us-gov", "global"})

STREAMING_PROVIDERS = frozenset(
    {
        Provider.AMAZON,
        Provider.ANTHROPIC,
        Provider.META,
        Provider.MISTRAL,
        Provider.AI21,
        Provider.COHERE,
    }
)

_CATALOG: tuple[tuple[str, str, Provider, ModelCategory], ...] = (
    # Amazon Titan
    ("amazon.titan-text-express-v1", "Amazon Titan Text Express", Provider.AMAZON, ModelCategory.TEXT),
    ("amazon.titan-text-lite-v1", "Amazon Titan Text Lite", Provider.AMAZON, ModelCategory.TEXT),
    ("amazon.titan-text-premier-v1:0", "Amazon Titan Text Premier", Provider.AMAZON, ModelCategory.TEXT),
    ("amazon.titan-embed-text-v1", "Amazon Titan Embeddings", Provider.AMAZON, ModelCategory.EMBEDDING),
    ("amazon.titan-embed-text-v2:0", "Amazon Titan Embeddings V2", Provider.AMAZON, ModelCategory.EMBEDDING),
    ("amazon.titan-image-generator-v1", "Amazon Titan Image Generator", Provider.AMAZON, ModelCategory.IMAGE),
    ("amazon.titan-image-generator-v2:0", "Amazon Titan Image Generator V2", Provider.AMAZON, ModelCategory.IMAGE),
    # Anthropic Claude
    ("anthropic.claude-3-5-sonnet-20241022-v2:0", "Claude 3.5 Sonnet", Provider.ANTHROPIC, ModelCategory.TEXT),
    ("anthropic.claude-3-sonnet-20240229-v1:0", "Claude 3 Sonnet", Provider.ANTHROPIC, ModelCategory.TEXT),
    ("anthropic.claude-3-haiku-20240307-v1:0", "Claude 3 Haiku", Provider.ANTHROPIC, ModelCategory.TEXT),
    ("anthropic.claude-3-opus-20240229-v1:0", "Claude 3 Opus", Provider.ANTHROPIC, ModelCategory.TEXT),
    ("anthropic.claude-v2:1", "Claude 2.1", Provider.ANTHROPIC, ModelCategory.TEXT),
    ("anthropic.claude-instant-v1", "Claude Instant", Provider.ANTHROPIC, ModelCategory.TEXT),
    # Meta Llama
    ("meta.llama2-13b-chat-v1", "Llama 2 13B Chat", Provider.META, ModelCategory.TEXT),
    ("meta.llama2-70b-chat-v1", "Llama 2 70B Chat", Provider.META, ModelCategory.TEXT),
    ("meta.llama3-8b-instruct-v1:0", "Llama 3 8B Instruct", Provider.META, ModelCategory.TEXT),
    ("meta.llama3-70b-instruct-v1:0", "Llama 3 70B Instruct", Provider.META, ModelCategory.TEXT),
    ("meta.llama3-1-8b-instruct-v1:0", "Llama 3.1 8B Instruct", Provider.META, ModelCategory.TEXT),
    ("meta.llama3-1-70b-instruct-v1:0", "Llama 3.1 70B Instruct", Provider.META, ModelCategory.TEXT),
    ("meta.llama3-1-405b-instruct-v1:0", "Llama 3.1 405B Instruct", Provider.META, ModelCategory.TEXT),
    # Mistral
    ("mistral.mistral-7b-instruct-v0:2", "Mistral 7B Instruct", Provider.MISTRAL, ModelCategory.TEXT),
    ("mistral.mixtral-8x7b-instruct-v0:1", "Mixtral 8x7B Instruct", Provider.MISTRAL, ModelCategory.TEXT),
    ("mistral.mistral-large-2402-v1:0", "Mistral Large", Provider.MISTRAL, ModelCategory.TEXT),
    ("mistral.mistral-large-2407-v1:0", "Mistral Large 2407", Provider.MISTRAL, ModelCategory.TEXT),
    # AI21
    ("ai21.j2-ultra-v1", "Jurassic-2 Ultra", Provider.AI21, ModelCategory.TEXT),
    ("ai21.j2-mid-v1", "Jurassic-2 Mid", Provider.AI21, ModelCategory.TEXT),
    ("ai21.jamba-instruct-v1:0", "Jamba Instruct", Provider.AI21, ModelCategory.TEXT),
    # Cohere
    ("cohere.command-text-v14", "Command", Provider.COHERE, ModelCategory.TEXT),
    ("cohere.command-light-text-v14", "Command Light", Provider.COHERE, ModelCategory.TEXT),
    ("cohere.command-r-v1:0", "Command R", Provider.COHERE, ModelCategory.TEXT),
    ("cohere.command-r-plus-v1:0", "Command R+", Provider.COHERE, ModelCategory.TEXT),
    ("cohere.embed-english-v3", "Embed English", Provider.COHERE, ModelCategory.EMBEDDING),
    ("cohere.embed-multilingual-v3", "Embed Multilingual", Provider.COHERE, ModelCategory.EMBEDDING),
    # Stability AI
    ("stability.stable-diffusion-xl-v1", "Stable Diffusion XL", Provider.STABILITY, ModelCategory.IMAGE),
)


def supported_models(category: ModelCategory | None = None) -> list[ModelInfo]:
    """List catalog models, optionally restricted to one category."""
    return [
        ModelInfo(id=model_id, name=name, provider=provider, category=cat)
        for model_id, name, provider, cat in _CATALOG
        if category is None or cat == category
    ]


def is_model_supported(model_id: str) -> bool:
    """Check whether a base model id is in the catalog."""
    return any(entry[0] == base_model_id(model_id) for entry in _CATALOG)


def base_model_id(model_id: str) -> str:
    """Strip a cross-region inference profile prefix, if any."""
    head, sep, rest = model_id.partition(".")
    if sep and head in INFERENCE_PROFILE_PREFIXES:
        return rest
    return model_id


def _infer_provider(model_id: str) -> Provider | None:
    head, sep, _ = base_model_id(model_id).partition(".")
    if not sep:
        return None
    return PROVIDER_PREFIXES.get(head)


def resolve(
    model_id: str | None,
    explicit_provider: Provider | None = None,
    *,
    stream: bool = False,
    default_model_id: str | None = None,
) -> ModelProfile:
    """Resolve a model identifier into a ModelProfile.

    The explicit provider wins when given; otherwise the provider is
    inferred from the id prefix. ARN identifiers are opaque and need an
    explicit provider. The function is pure: equal inputs always yield
    equal profiles.

    Args:
        model_id: Model identifier, or None/empty to use the default.
        explicit_provider: Provider override.
        stream: Whether a streaming invocation was requested.
        default_model_id: Substituted when model_id is empty.

    Returns:
        Resolved ModelProfile.

    Raises:
        ConfigError: If no id is available, the provider cannot be
            determined, or the override conflicts with the id prefix.
    """
    model_id = (model_id or "").strip() or (default_model_id or "").strip()
    if not model_id:
        raise ConfigError(
            "No model id given and no default configured",
            code=ErrorCode.UNKNOWN_MODEL,
        )

    is_arn = model_id.startswith("arn:")
    inferred = None if is_arn else _infer_provider(model_id)

    if explicit_provider is not None:
        if inferred is not None and inferred != explicit_provider:
            raise ConfigError(
                f"Provider '{explicit_provider.value}' conflicts with model id '{model_id}'",
                code=ErrorCode.UNKNOWN_MODEL,
                details={
                    "model_id": model_id,
                    "explicit_provider": explicit_provider.value,
                    "inferred_provider": inferred.value,
                },
            )
        provider = explicit_provider
    elif inferred is not None:
        provider = inferred
    elif is_arn:
        raise ConfigError(
            f"Inference profile ARN requires an explicit provider: {model_id}",
            code=ErrorCode.UNKNOWN_MODEL,
            details={"model_id": model_id},
        )
    else:
        raise ConfigError(
            f"Cannot determine provider for model id: {model_id}",
            code=ErrorCode.UNKNOWN_MODEL,
            details={"model_id": model_id},
        )

    if not is_arn and not is_model_supported(model_id):
        logger.warning(f"Model {model_id} is not in the catalog; using {provider.value} schema")

    mode = InvocationMode.SYNC
    if stream and provider in STREAMING_PROVIDERS:
        mode = InvocationMode.STREAM

    return ModelProfile(
        provider=provider,
        model_id=model_id,
        invocation_mode=mode,
        inference_profile=is_arn or base_model_id(model_id) != model_id,
    )
