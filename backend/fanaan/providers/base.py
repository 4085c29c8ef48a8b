import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

import httpx
import orjson

from fanaan.config import settings
from fanaan.models.request import GenerationRequest
from fanaan.models.response import GenerationResult
from fanaan.utils.exceptions import GenerationError, HttpError

logger = logging.getLogger(__name__)

# Receives the running text while a stream is in progress
DeltaCallback = Callable[[str], None]


class EndpointKind(str, Enum):
    """How a provider endpoint delivers its result"""

    STREAM = "stream"  # SSE text stream
    BINARY = "binary"  # raw image/video/audio body
    IMAGE = "image"  # JSON with base64 image
    VIDEO = "video"  # long-running job, polled


def provider_error_message(body: bytes) -> str:
    """Pull the human-readable message out of a provider error body.

    Handles {"error": "..."}, {"error": {"message": "..."}} and
    {"message": "..."}; anything else is returned as decoded text.
    """
    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError:
        return body.decode("utf-8", errors="replace")

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str):
            return error
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
    return body.decode("utf-8", errors="replace")


class BaseProvider(ABC):
    """Abstract base class for provider endpoint classes"""

    name: str  # Provider identifier, used in logs
    kind: EndpointKind

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    @property
    def timeout(self) -> float:
        """Get the configured provider timeout in seconds."""
        return float(settings.provider_timeout)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @abstractmethod
    async def generate(
        self, request: GenerationRequest, on_delta: Optional[DeltaCallback] = None
    ) -> GenerationResult:
        """Perform the call. Raises GenerationError subclasses on failure."""
        pass

    def _headers(self, request: GenerationRequest, json_body: bool = True) -> dict:
        headers = dict(request.headers)
        if json_body:
            headers.setdefault("Content-Type", "application/json")
        return headers

    async def _raise_for_status(self, response: httpx.Response) -> None:
        """Raise HttpError with the provider's own message for non-2xx responses."""
        if response.is_success:
            return
        # Read error response body for better debugging
        body = await response.aread()
        error_msg = provider_error_message(body)
        logger.error(
            f"{self.name} API error: status={response.status_code}, error={error_msg}"
        )
        raise HttpError(response.status_code, response.reason_phrase, error_msg)

    def _transport_error(self, error: httpx.HTTPError) -> HttpError:
        logger.error(f"{self.name} transport error: {error!r}")
        return HttpError(None, str(error) or error.__class__.__name__)

    def _json(self, response: httpx.Response) -> dict:
        """Parse a successful JSON object body; anything else is a GenerationError."""
        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            data = None
        if not isinstance(data, dict):
            body = response.content.decode("utf-8", errors="replace")
            logger.error(f"{self.name} returned a non-JSON body: {body[:200]}")
            raise GenerationError(f"Unexpected response from provider: {body}")
        return data
