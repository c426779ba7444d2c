"""Transport to the Bedrock runtime."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from urllib.parse import quote

import boto3
import httpx
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

from bedrock_gateway.bedrock.streaming import EventStreamCodec, FrameCodec
from bedrock_gateway.config import BedrockSettings, get_settings
from bedrock_gateway.exceptions import ConfigError, ErrorCode, TransportError
from bedrock_gateway.logging_config import get_logger

logger = get_logger(__name__)

SIGNING_SERVICE = "bedrock"
JSON_CONTENT_TYPE = "application/json"
EVENT_STREAM_CONTENT_TYPE = "application/vnd.amazon.eventstream"


class BedrockTransport(ABC):
    """Abstract transport for model invocation.

    Implementations move bytes only; payloads are built and parsed by
    the provider layer.
    """

    @abstractmethod
    async def invoke(self, model_id: str, body: bytes) -> bytes:
        """Invoke a model and return the complete response body.

        Args:
            model_id: Model identifier or inference profile.
            body: Encoded native payload.

        Returns:
            Raw response body.

        Raises:
            TransportError: If the call fails.
        """
        ...

    @abstractmethod
    def invoke_stream(self, model_id: str, body: bytes) -> AsyncIterator[bytes]:
        """Invoke a model with a streamed response.

        Closing the returned iterator releases the underlying response.

        Args:
            model_id: Model identifier or inference profile.
            body: Encoded native payload.

        Returns:
            Async iterator over raw byte fragments.
        """
        ...

    def create_codec(self) -> FrameCodec:
        """Frame codec matching this transport's stream encoding."""
        return EventStreamCodec()

    async def close(self) -> None:
        """Release transport resources."""
        return None


class HTTPBedrockTransport(BedrockTransport):
    """Bedrock runtime REST transport using httpx and SigV4 signing."""

    def __init__(
        self,
        settings: BedrockSettings | None = None,
        client: httpx.AsyncClient | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            settings: Bedrock configuration.
            client: HTTP client (for testing).
            credentials: AWS credentials; resolved through boto3 when absent.
        """
        self._settings = settings or get_settings().bedrock
        self._client = client
        self._owns_client = client is None
        self._credentials = credentials

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    def _get_credentials(self) -> Credentials:
        if self._credentials is None:
            secret = self._settings.secret_access_key
            key_id = self._settings.access_key_id
            token = self._settings.session_token
            session = boto3.Session(
                aws_access_key_id=key_id.get_secret_value() if key_id else None,
                aws_secret_access_key=secret.get_secret_value() if secret else None,
                aws_session_token=token.get_secret_value() if token else None,
                region_name=self._settings.region,
            )
            credentials = session.get_credentials()
            if credentials is None:
                raise ConfigError(
                    "No AWS credentials available for Bedrock",
                    code=ErrorCode.CONFIGURATION_ERROR,
                    details={"region": self._settings.region},
                )
            self._credentials = credentials
        return self._credentials

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _url(self, model_id: str, action: str) -> str:
        return f"{self._settings.base_url}/model/{quote(model_id, safe='')}/{action}"

    def _signed_headers(self, url: str, body: bytes, accept: str) -> dict[str, str]:
        headers = {"Content-Type": JSON_CONTENT_TYPE, "Accept": accept}
        request = AWSRequest(method="POST", url=url, data=body, headers=headers)
        credentials = self._get_credentials().get_frozen_credentials()
        SigV4Auth(credentials, SIGNING_SERVICE, self._settings.region).add_auth(request)
        return dict(request.headers.items())

    async def invoke(self, model_id: str, body: bytes) -> bytes:
        """Invoke a model through ``/model/{id}/invoke``."""
        client = await self._get_client()
        url = self._url(model_id, "invoke")
        headers = self._signed_headers(url, body, JSON_CONTENT_TYPE)

        try:
            response = await client.post(url, content=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise _status_error(model_id, e.response.status_code, e.response.text) from e
        except httpx.TimeoutException as e:
            raise _timeout_error(model_id, self._settings.timeout) from e
        except httpx.RequestError as e:
            raise _connection_error(model_id, url, e) from e

        return response.content

    async def invoke_stream(self, model_id: str, body: bytes) -> AsyncIterator[bytes]:
        """Invoke a model through ``/model/{id}/invoke-with-response-stream``."""
        client = await self._get_client()
        url = self._url(model_id, "invoke-with-response-stream")
        headers = self._signed_headers(url, body, EVENT_STREAM_CONTENT_TYPE)

        try:
            async with client.stream("POST", url, content=body, headers=headers) as response:
                if response.is_error:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                    raise _status_error(model_id, response.status_code, detail)
                async for fragment in response.aiter_bytes():
                    yield fragment
        except httpx.TimeoutException as e:
            raise _timeout_error(model_id, self._settings.timeout) from e
        except httpx.RequestError as e:
            raise _connection_error(model_id, url, e) from e


def _status_error(model_id: str, status: int, detail: str) -> TransportError:
    logger.error(f"Bedrock request for {model_id} failed: {status}")
    if status == 429:
        code = ErrorCode.TRANSPORT_THROTTLED
        message = "Bedrock rate limit exceeded"
    elif status in (408, 504):
        code = ErrorCode.TRANSPORT_TIMEOUT
        message = f"Bedrock request timed out ({status})"
    elif status == 424:
        code = ErrorCode.MODEL_ERROR
        message = "Bedrock model returned an error"
    else:
        code = ErrorCode.TRANSPORT_ERROR
        message = f"Bedrock service returned {status}"
    return TransportError(
        message,
        code=code,
        details={"model_id": model_id, "status_code": status, "body": detail[:500]},
    )


def _timeout_error(model_id: str, timeout: float) -> TransportError:
    logger.error(f"Bedrock request for {model_id} timed out")
    return TransportError(
        "Bedrock request timed out",
        code=ErrorCode.TRANSPORT_TIMEOUT,
        details={"model_id": model_id, "timeout": timeout},
    )


def _connection_error(model_id: str, url: str, error: Exception) -> TransportError:
    logger.error(f"Bedrock connection error for {model_id}: {error}")
    return TransportError(
        f"Failed to connect to Bedrock: {error}",
        code=ErrorCode.TRANSPORT_ERROR,
        details={"model_id": model_id, "url": url},
    )
