"""Run the gateway API server: ``python -m bedrock_gateway``."""

import uvicorn

from bedrock_gateway.config import get_settings


def main() -> None:
    """Serve the FastAPI application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "bedrock_gateway.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
