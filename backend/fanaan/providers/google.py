"""
Google Generative Language providers: Imagen (image) and Veo (video).

Imagen answers synchronously with base64 image bytes. Veo starts a
long-running operation that is polled until the provider marks it done, then
the generated video is downloaded with the same key.
"""

import asyncio
import base64
import binascii
import logging
from typing import Any, Optional

import httpx

from fanaan.config import settings
from fanaan.models.request import GenerationRequest
from fanaan.models.response import GenerationResult, MediaBlob
from fanaan.providers.base import BaseProvider, DeltaCallback, EndpointKind
from fanaan.utils.exceptions import GenerationError, HttpError

logger = logging.getLogger(__name__)


class GoogleImageProvider(BaseProvider):
    """Imagen ``:predict`` returning one base64-encoded image."""

    name = "google-image"
    kind = EndpointKind.IMAGE

    async def generate(
        self, request: GenerationRequest, on_delta: Optional[DeltaCallback] = None
    ) -> GenerationResult:
        try:
            response = await self.client.post(
                request.endpoint,
                json=request.payload,
                headers=self._headers(request),
                timeout=self.timeout,
            )
            await self._raise_for_status(response)
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e

        data = self._json(response)
        predictions = data.get("predictions") or []
        if not predictions or not predictions[0].get("bytesBase64Encoded"):
            raise GenerationError("Image generation failed to return an image.")

        prediction = predictions[0]
        try:
            image = base64.b64decode(prediction["bytesBase64Encoded"])
        except (binascii.Error, ValueError) as e:
            raise GenerationError(f"Image generation returned malformed data: {e}") from e
        return GenerationResult.success(
            media=MediaBlob(data=image, media_type=prediction.get("mimeType", "image/png"))
        )


class GoogleVideoProvider(BaseProvider):
    """Veo ``:predictLongRunning`` with operation polling."""

    name = "google-video"
    kind = EndpointKind.VIDEO

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        super().__init__(client)
        self.base_url = (base_url or settings.google_base_url).rstrip("/")
        self.poll_interval = settings.video_poll_interval if poll_interval is None else poll_interval
        self.max_attempts = settings.video_poll_max_attempts if max_attempts is None else max_attempts

    async def generate(
        self, request: GenerationRequest, on_delta: Optional[DeltaCallback] = None
    ) -> GenerationResult:
        headers = self._headers(request)
        try:
            response = await self.client.post(
                request.endpoint, json=request.payload, headers=headers, timeout=self.timeout
            )
            await self._raise_for_status(response)
            operation = self._json(response)

            operation = await self._wait_for(operation, headers)
            video_uri = self._video_uri(operation)
            if not video_uri:
                raise GenerationError("Video generation failed to return a URI.")

            separator = "&" if "?" in video_uri else "?"
            download = await self.client.get(
                f"{video_uri}{separator}key={request.credential}",
                timeout=self.timeout,
                follow_redirects=True,
            )
            await self._raise_for_status(download)
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e

        media_type = download.headers.get("content-type", "video/mp4").split(";")[0].strip()
        return GenerationResult.success(media=MediaBlob(data=download.content, media_type=media_type))

    async def _wait_for(self, operation: dict, headers: dict) -> dict:
        """Poll the operation at a fixed interval until it reports done."""
        name = operation.get("name")
        attempts = 0
        while not operation.get("done"):
            if not name:
                raise GenerationError("Video generation did not return an operation name.")
            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise GenerationError(
                    f"Video generation still running after {attempts} status checks."
                )
            await asyncio.sleep(self.poll_interval)
            attempts += 1
            logger.debug(f"Polling {name} (attempt {attempts})")
            response = await self.client.get(
                f"{self.base_url}/{name}", headers=headers, timeout=self.timeout
            )
            await self._raise_for_status(response)
            operation = self._json(response)

        if operation.get("error"):
            error = operation["error"]
            raise HttpError(error.get("code", 500), error.get("status", ""), error.get("message", ""))
        return operation

    @staticmethod
    def _video_uri(operation: dict) -> Optional[str]:
        samples: Any = (
            operation.get("response", {})
            .get("generateVideoResponse", {})
            .get("generatedSamples")
        )
        if not samples:
            return None
        return samples[0].get("video", {}).get("uri")
