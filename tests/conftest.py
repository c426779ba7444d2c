"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from bedrock_gateway.api.app import app
from bedrock_gateway.config import BedrockSettings


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def bedrock_settings() -> BedrockSettings:
    """Bedrock settings with fixed defaults."""
    return BedrockSettings(
        region="us-east-1",
        default_text_model="amazon.titan-text-express-v1",
        default_embedding_model="amazon.titan-embed-text-v1",
        default_image_model="amazon.titan-image-generator-v1",
        max_tokens=512,
        temperature=0.7,
    )
