"""Provider-neutral request, response and profile models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    """Model family sharing one request/response wire schema."""

    AMAZON = "amazon"
    ANTHROPIC = "anthropic"
    META = "meta"
    MISTRAL = "mistral"
    AI21 = "ai21"
    COHERE = "cohere"
    STABILITY = "stability"


class InvocationMode(str, Enum):
    """Single-shot or streaming invocation."""

    SYNC = "sync"
    STREAM = "stream"


class ModelCategory(str, Enum):
    """What a model produces."""

    TEXT = "text"
    IMAGE = "image"
    EMBEDDING = "embedding"


class ModelProfile(BaseModel):
    """Resolved identity of a model call.

    Attributes:
        provider: Model family that owns the wire schema.
        model_id: Identifier sent to the runtime.
        invocation_mode: Sync or stream.
        inference_profile: True when model_id is a cross-region
            inference profile or an ARN rather than a base model id.
    """

    model_config = ConfigDict(frozen=True)

    provider: Provider = Field(description="Provider family")
    model_id: str = Field(description="Model identifier")
    invocation_mode: InvocationMode = Field(
        default=InvocationMode.SYNC,
        description="Invocation mode",
    )
    inference_profile: bool = Field(
        default=False,
        description="Whether the id is an inference profile",
    )


class ModelInfo(BaseModel):
    """Catalog entry for a supported model."""

    id: str = Field(description="Model identifier")
    name: str = Field(description="Display name")
    provider: Provider = Field(description="Provider family")
    category: ModelCategory = Field(description="Model category")


class TextGenerationRequest(BaseModel):
    """Caller intent for text generation.

    Attributes:
        prompt: User prompt.
        system_prompt: Optional instructions placed before the prompt.
        max_tokens: Maximum tokens to generate.
        temperature: Sampling temperature.
        model_id: Model to invoke; the configured default when absent.
        stream: Request a streaming invocation.
        provider: Explicit provider, required for ARN model ids.
    """

    prompt: str = Field(description="User prompt")
    system_prompt: str | None = Field(default=None, description="System prompt")
    max_tokens: int | None = Field(default=None, description="Maximum tokens")
    temperature: float | None = Field(default=None, description="Temperature")
    model_id: str | None = Field(default=None, description="Model identifier")
    stream: bool = Field(default=False, description="Stream the response")
    provider: Provider | None = Field(default=None, description="Explicit provider")


class TextGenerationResponse(BaseModel):
    """Completed text result."""

    text: str = Field(description="Generated text")
    model: str = Field(description="Model used")
    prompt_tokens: int = Field(default=0, description="Prompt token count")
    completion_tokens: int = Field(default=0, description="Completion token count")
    finish_reason: str | None = Field(default=None, description="Stop reason")

    @property
    def total_tokens(self) -> int:
        """Prompt plus completion tokens."""
        return self.prompt_tokens + self.completion_tokens


class StreamChunk(BaseModel):
    """One increment of a streaming result.

    Exactly one chunk in a stream has done=True and it is the last.
    """

    chunk: str = Field(default="", description="Text delta")
    done: bool = Field(default=False, description="Terminal chunk")
    finish_reason: str | None = Field(default=None, description="Stop reason")


class EmbeddingRequest(BaseModel):
    """Vectorization of a single text.

    Attributes:
        text: Input text.
        model_id: Embedding model; the configured default when absent.
        input_type: Cohere input type, ``search_document`` for stored
            content and ``search_query`` for queries.
        dimensions: Output size for models that support it.
        provider: Explicit provider, required for ARN model ids.
    """

    text: str = Field(description="Text to embed")
    model_id: str | None = Field(default=None, description="Model identifier")
    input_type: str = Field(default="search_document", description="Input type")
    dimensions: int | None = Field(default=None, description="Output dimensions")
    provider: Provider | None = Field(default=None, description="Explicit provider")


class EmbeddingResponse(BaseModel):
    """Embedding vector for one text."""

    embedding: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Model used")
    input_tokens: int = Field(default=0, description="Input token count")

    @property
    def dimensions(self) -> int:
        """Vector length."""
        return len(self.embedding)


class ImageGenerationRequest(BaseModel):
    """Image synthesis request."""

    prompt: str = Field(description="Image prompt")
    negative_prompt: str | None = Field(default=None, description="What to avoid")
    width: int | None = Field(default=None, description="Image width in pixels")
    height: int | None = Field(default=None, description="Image height in pixels")
    num_images: int | None = Field(default=None, description="Images to generate")
    seed: int | None = Field(default=None, description="Sampling seed")
    model_id: str | None = Field(default=None, description="Model identifier")
    provider: Provider | None = Field(default=None, description="Explicit provider")


class ImageGenerationResponse(BaseModel):
    """Generated images, base64 encoded."""

    images: list[str] = Field(description="Base64 encoded images")
    model: str = Field(description="Model used")

    @property
    def image_data(self) -> str:
        """The first generated image."""
        return self.images[0]
