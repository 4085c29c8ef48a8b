"""In-memory store for generated media, served back at short-lived URLs."""

import logging
import secrets
from collections import OrderedDict
from typing import Optional

from fanaan.config import settings
from fanaan.models.response import MediaBlob

logger = logging.getLogger(__name__)

BLOB_URL_PREFIX = "/api/blobs/"


class BlobStore:
    """Bounded LRU of media blobs keyed by random ids.

    The oldest blob is evicted once ``max_size`` is exceeded, so URLs are
    transient, like browser object URLs.
    """

    def __init__(self, max_size: Optional[int] = None):
        self.max_size = max_size or settings.blob_cache_size
        self._blobs: OrderedDict[str, MediaBlob] = OrderedDict()

    def put(self, blob: MediaBlob) -> str:
        """Store a blob and return the URL it is served at."""
        blob_id = secrets.token_urlsafe(16)
        self._blobs[blob_id] = blob
        while len(self._blobs) > self.max_size:
            evicted, _ = self._blobs.popitem(last=False)
            logger.debug(f"Evicted blob {evicted}")
        return f"{BLOB_URL_PREFIX}{blob_id}"

    def get(self, blob_id: str) -> Optional[MediaBlob]:
        blob = self._blobs.get(blob_id)
        if blob is not None:
            self._blobs.move_to_end(blob_id)
        return blob

    def __len__(self) -> int:
        return len(self._blobs)


# Singleton instance
blob_store = BlobStore()
