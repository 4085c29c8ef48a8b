import asyncio
import logging
from typing import Dict, Optional, Type

import httpx

from fanaan.config import settings
from fanaan.providers.base import BaseProvider, EndpointKind
from fanaan.providers.binary import BinaryProvider
from fanaan.providers.google import GoogleImageProvider, GoogleVideoProvider
from fanaan.providers.streaming import StreamingTextProvider
from fanaan.services.stream_decoder import OPENAI_CHAT, DeltaExtractor

logger = logging.getLogger(__name__)


# Mapping of endpoint kinds to their provider classes
PROVIDER_CLASSES: Dict[EndpointKind, Type[BaseProvider]] = {
    EndpointKind.STREAM: StreamingTextProvider,
    EndpointKind.BINARY: BinaryProvider,
    EndpointKind.IMAGE: GoogleImageProvider,
    EndpointKind.VIDEO: GoogleVideoProvider,
}


class ProviderRegistry:
    """Hands out providers that share one HTTP client."""

    # Maximum time to wait for in-flight calls during cleanup (seconds)
    CLEANUP_TIMEOUT = 10.0

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self._active_calls: int = 0

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=float(settings.provider_timeout))
        return self._client

    def call_started(self) -> None:
        """Call when a provider call starts."""
        self._active_calls += 1

    def call_ended(self) -> None:
        """Call when a provider call ends."""
        self._active_calls = max(0, self._active_calls - 1)

    @property
    def active_calls(self) -> int:
        return self._active_calls

    def get_provider(
        self, kind: EndpointKind, extractor: Optional[DeltaExtractor] = None
    ) -> BaseProvider:
        """Build a provider for an endpoint kind on the shared client."""
        provider_class = PROVIDER_CLASSES.get(kind)
        if provider_class is None:
            raise ValueError(f"Unknown endpoint kind '{kind}'")
        if provider_class is StreamingTextProvider:
            return StreamingTextProvider(self.client, extractor or OPENAI_CHAT)
        return provider_class(self.client)

    async def cleanup(self):
        """Close the shared client, waiting briefly for in-flight calls."""
        wait_time = 0.0
        while self._active_calls > 0 and wait_time < self.CLEANUP_TIMEOUT:
            logger.debug(f"Waiting for {self._active_calls} active calls to complete...")
            await asyncio.sleep(0.1)
            wait_time += 0.1

        if self._active_calls > 0:
            logger.warning(
                f"Cleanup timeout: {self._active_calls} calls still active after "
                f"{self.CLEANUP_TIMEOUT}s. Proceeding with cleanup."
            )

        if self._client is not None:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.warning(f"Error closing HTTP client: {e}")
            self._client = None


# Singleton instance
provider_registry = ProviderRegistry()
