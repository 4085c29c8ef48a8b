"""
Streaming chat provider for OpenAI-compatible and Anthropic endpoints.

Both APIs deliver Server-Sent Events; only the per-line extraction differs,
so one provider class serves both with a pluggable DeltaExtractor.
"""

import logging
from typing import Optional

import httpx

from fanaan.models.request import GenerationRequest
from fanaan.models.response import GenerationResult
from fanaan.providers.base import BaseProvider, DeltaCallback, EndpointKind
from fanaan.services.stream_decoder import OPENAI_CHAT, DeltaExtractor, StreamDecoder
from fanaan.utils.exceptions import StreamError

logger = logging.getLogger(__name__)


class StreamingTextProvider(BaseProvider):
    """Chat completion with live text deltas."""

    name = "streaming-text"
    kind = EndpointKind.STREAM

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        extractor: DeltaExtractor = OPENAI_CHAT,
    ):
        super().__init__(client)
        self.extractor = extractor

    async def generate(
        self, request: GenerationRequest, on_delta: Optional[DeltaCallback] = None
    ) -> GenerationResult:
        payload = {**request.payload, "stream": True}
        decoder = StreamDecoder(self.extractor)

        try:
            async with self.client.stream(
                "POST",
                request.endpoint,
                json=payload,
                headers=self._headers(request),
                timeout=self.timeout,
            ) as response:
                await self._raise_for_status(response)
                try:
                    async for text in decoder.stream(response.aiter_bytes()):
                        if on_delta:
                            on_delta(text)
                except httpx.HTTPError as e:
                    logger.warning(
                        f"{self.extractor.name} stream broke after {len(decoder.text)} chars: {e!r}"
                    )
                    raise StreamError(str(e) or e.__class__.__name__, decoder.text) from e
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e

        return GenerationResult.success(text=decoder.text)
