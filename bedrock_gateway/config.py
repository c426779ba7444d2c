"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class StorageBackend(str, Enum):
    """Vector storage backend selected at startup."""

    POSTGRES = "postgres"
    QDRANT = "qdrant"
    MEMORY = "memory"
    PINECONE = "pinecone"
    UPSTASH = "upstash"


class BedrockSettings(BaseSettings):
    """Bedrock runtime configuration.

    Credentials are optional; when absent the default AWS credential
    chain (environment, shared config, instance profile) is used.
    """

    model_config = SettingsConfigDict(env_prefix="BEDROCK_")

    region: str = Field(
        default="us-east-1",
        description="AWS region of the Bedrock runtime endpoint",
    )
    endpoint_url: str | None = Field(
        default=None,
        description="Override for the Bedrock runtime base URL",
    )
    access_key_id: SecretStr | None = Field(
        default=None,
        description="AWS access key id",
    )
    secret_access_key: SecretStr | None = Field(
        default=None,
        description="AWS secret access key",
    )
    session_token: SecretStr | None = Field(
        default=None,
        description="AWS session token for temporary credentials",
    )
    timeout: float = Field(
        default=120.0,
        description="Request timeout in seconds",
    )
    default_text_model: str = Field(
        default="amazon.titan-text-express-v1",
        description="Model used when a text request names none",
    )
    default_embedding_model: str = Field(
        default="amazon.titan-embed-text-v1",
        description="Model used when an embedding request names none",
    )
    default_image_model: str = Field(
        default="amazon.titan-image-generator-v1",
        description="Model used when an image request names none",
    )
    max_tokens: int = Field(
        default=512,
        description="Default maximum tokens in a text response",
    )
    temperature: float = Field(
        default=0.7,
        description="Default sampling temperature",
    )

    @property
    def base_url(self) -> str:
        """Bedrock runtime base URL."""
        if self.endpoint_url:
            return self.endpoint_url.rstrip("/")
        return f"https://bedrock-runtime.{self.region}.amazonaws.com"


class StorageSettings(BaseSettings):
    """Vector storage selection."""

    model_config = SettingsConfigDict(env_prefix="VECTOR_STORE_")

    backend: StorageBackend = Field(
        default=StorageBackend.POSTGRES,
        description="Active vector storage backend",
    )
    dimensions: int = Field(
        default=1536,
        gt=0,
        description="Fixed vector dimension of the collection",
    )
    default_namespace: str = Field(
        default="default",
        description="Namespace used when a record or query names none",
    )


class PostgresSettings(BaseSettings):
    """PostgreSQL + pgvector configuration."""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    username: str = Field(default="postgres", description="Database user")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    database: str = Field(default="postgres", description="Database name")
    table_name: str = Field(
        default="vectors",
        pattern=r"^[A-Za-z_][A-Za-z0-9_]{0,62}$",
        description="Table holding vector records (plain SQL identifier)",
    )
    min_pool_size: int = Field(default=1, description="Minimum pool connections")
    max_pool_size: int = Field(default=10, description="Maximum pool connections")

    @property
    def dsn(self) -> str:
        """Connection string for asyncpg."""
        password = self.password.get_secret_value()
        auth = f"{self.username}:{password}" if password else self.username
        return f"postgresql://{auth}@{self.host}:{self.port}/{self.database}"


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="vectors",
        description="Collection holding vector records",
    )


class PineconeSettings(BaseSettings):
    """Pinecone configuration."""

    model_config = SettingsConfigDict(env_prefix="PINECONE_")

    api_key: SecretStr | None = Field(default=None, description="Pinecone API key")
    environment: str | None = Field(default=None, description="Pinecone environment")
    index_name: str | None = Field(default=None, description="Pinecone index name")


class UpstashSettings(BaseSettings):
    """Upstash Vector configuration."""

    model_config = SettingsConfigDict(env_prefix="UPSTASH_")

    url: str | None = Field(default=None, description="Upstash REST URL")
    token: SecretStr | None = Field(default=None, description="Upstash REST token")


class RAGSettings(BaseSettings):
    """Retrieval-augmented generation defaults."""

    model_config = SettingsConfigDict(env_prefix="RAG_")

    context_limit: int = Field(
        default=5,
        gt=0,
        description="Documents retrieved per query",
    )
    max_context_chars: int = Field(
        default=8000,
        gt=0,
        description="Upper bound on the assembled context block",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    bedrock: BedrockSettings = Field(default_factory=BedrockSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    pinecone: PineconeSettings = Field(default_factory=PineconeSettings)
    upstash: UpstashSettings = Field(default_factory=UpstashSettings)
    rag: RAGSettings = Field(default_factory=RAGSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
