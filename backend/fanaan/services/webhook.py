"""Best-effort webhook delivery of generation results."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import httpx

from fanaan.config import settings
from fanaan.utils.exceptions import WebhookError
from fanaan.utils.time import utcnow

logger = logging.getLogger(__name__)

UrlLookup = Callable[[], Awaitable[Optional[str]]]


class WebhookNotifier:
    """POSTs ``{source, ...payload, timestamp}`` to the configured webhook URL.

    Delivery runs as a background task: ``notify`` returns immediately and
    failures are logged, never raised to the caller. There is no queue, no
    retry and no backpressure.
    """

    def __init__(
        self,
        url_lookup: UrlLookup,
        client_factory: Callable[[], httpx.AsyncClient],
    ):
        self._url_lookup = url_lookup
        self._client_factory = client_factory
        self._pending: Set[asyncio.Task] = set()

    def notify(self, source: str, payload: Dict[str, Any]) -> asyncio.Task:
        """Schedule one delivery and return its task."""
        task = asyncio.create_task(self._deliver(source, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for all scheduled deliveries to settle."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(self, source: str, payload: Dict[str, Any]) -> bool:
        try:
            url = await self._url_lookup()
            if not url:
                logger.debug(f"No webhook URL configured, skipping notification from {source}")
                return False
            await self._post(url, {"source": source, **payload, "timestamp": utcnow().isoformat()})
            logger.info(f"Webhook delivered for {source}")
            return True
        except WebhookError as e:
            logger.warning(f"Webhook failed: {e}")
        except Exception as e:
            logger.error(f"Webhook failed unexpectedly: {e}", exc_info=True)
        return False

    async def _post(self, url: str, body: Dict[str, Any]) -> None:
        try:
            response = await self._client_factory().post(
                url, json=body, timeout=float(settings.webhook_timeout)
            )
        except httpx.HTTPError as e:
            raise WebhookError(f"{url}: {e!r}") from e
        if not response.is_success:
            raise WebhookError(f"{url} answered {response.status_code}")


def _build_default_notifier() -> WebhookNotifier:
    from fanaan.providers.registry import provider_registry
    from fanaan.services.credentials import WEBHOOK_URL_KEY, credential_store

    return WebhookNotifier(
        url_lookup=lambda: credential_store.get_credential(WEBHOOK_URL_KEY),
        client_factory=lambda: provider_registry.client,
    )


# Singleton instance
webhook_notifier = _build_default_notifier()
