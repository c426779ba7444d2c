"""FastAPI application entry point.

Configures the application with logging, exception handling, metrics,
health checks and the gateway routes.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from bedrock_gateway import __version__
from bedrock_gateway.api.routes import router
from bedrock_gateway.bedrock.client import BedrockClient
from bedrock_gateway.config import get_settings
from bedrock_gateway.exceptions import ErrorCode, GatewayError
from bedrock_gateway.logging_config import get_logger, setup_logging
from bedrock_gateway.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from bedrock_gateway.rag.pipeline import RAGOrchestrator
from bedrock_gateway.vectorstore.factory import create_vector_store

logger = get_logger(__name__)

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.UNKNOWN_MODEL: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.PARAMETER_OUT_OF_RANGE: 400,
    ErrorCode.CAPABILITY_NOT_SUPPORTED: 400,
    ErrorCode.DIMENSION_MISMATCH: 400,
    ErrorCode.UNSUPPORTED_OPERATION: 501,
    ErrorCode.TRANSPORT_THROTTLED: 429,
    ErrorCode.TRANSPORT_TIMEOUT: 504,
    ErrorCode.TRANSPORT_ERROR: 502,
    ErrorCode.MODEL_ERROR: 502,
    ErrorCode.STORAGE_CONNECTION_ERROR: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the Bedrock client, the vector store and the RAG orchestrator
    from settings. A service that cannot be built is left unset and its
    routes answer 503.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "Starting Bedrock gateway",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
            "storage_backend": settings.storage.backend.value,
        },
    )

    bedrock = BedrockClient(settings.bedrock)
    app.state.bedrock = bedrock
    app.state.vector_store = None
    app.state.rag = None

    try:
        store = create_vector_store(settings)
        await store.initialize()
    except GatewayError as e:
        logger.error(f"Vector store unavailable: {e.message}", extra={"error_code": e.code.value})
    else:
        app.state.vector_store = store
        app.state.rag = RAGOrchestrator(bedrock, store, settings.rag)

    yield

    logger.info("Shutting down Bedrock gateway")
    if app.state.vector_store is not None:
        await app.state.vector_store.close()
    await bedrock.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Bedrock RAG Gateway",
        description="Uniform access to Bedrock models and vector storage with RAG",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(GatewayError, gateway_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Observability"])
    app.include_router(router)

    return app


async def gateway_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Convert GatewayError exceptions to structured JSON responses."""
    if not isinstance(exc, GatewayError):
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ErrorCode.INTERNAL_ERROR.value,
                    "message": str(exc),
                    "details": {},
                }
            },
        )

    logger.error(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=get_status_code(exc.code),
        content=exc.to_dict(),
    )


def get_status_code(code: ErrorCode) -> int:
    """Map an error code to an HTTP status code."""
    return _STATUS_BY_CODE.get(code, 500)


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> dict[str, Any]:
    """Kubernetes readiness probe.

    Reports whether the model client and vector store are usable.

    Returns:
        Readiness status with component checks.
    """
    state = request.app.state
    checks: dict[str, str] = {
        "bedrock": "ok" if getattr(state, "bedrock", None) is not None else "not_configured",
    }

    store = getattr(state, "vector_store", None)
    if store is None:
        checks["vector_store"] = "not_configured"
    else:
        checks["vector_store"] = "ok" if await store.health_check() else "unhealthy"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Kubernetes liveness probe.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


app = create_app()
