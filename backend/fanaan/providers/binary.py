"""
Providers whose response body is the generated media itself.

Used for Hugging Face inference (images, video) and Groq speech synthesis.
"""

import logging
from typing import Optional

import httpx

from fanaan.models.request import GenerationRequest
from fanaan.models.response import GenerationResult, MediaBlob
from fanaan.providers.base import BaseProvider, DeltaCallback, EndpointKind

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"


class BinaryProvider(BaseProvider):
    """POST a JSON payload (or raw file bytes) and return the body as a blob."""

    name = "binary"
    kind = EndpointKind.BINARY

    async def generate(
        self, request: GenerationRequest, on_delta: Optional[DeltaCallback] = None
    ) -> GenerationResult:
        if isinstance(request.payload, (bytes, bytearray)):
            kwargs = {"content": bytes(request.payload), "headers": self._headers(request, json_body=False)}
        else:
            kwargs = {"json": request.payload, "headers": self._headers(request)}

        try:
            response = await self.client.post(request.endpoint, timeout=self.timeout, **kwargs)
            await self._raise_for_status(response)
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e

        media_type = response.headers.get("content-type", DEFAULT_MEDIA_TYPE).split(";")[0].strip()
        logger.info(f"Received {len(response.content)} bytes of {media_type} from {request.endpoint}")
        return GenerationResult.success(media=MediaBlob(data=response.content, media_type=media_type))
