"""Shared fixtures: temporary credential database and mock HTTP transports."""

import inspect
import os
import tempfile

# Settings are read on import, so point them at throwaway locations first
_TMP_DIR = tempfile.mkdtemp(prefix="fanaan-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'app.db')}")
os.environ.setdefault("VIDEO_POLL_INTERVAL", "0")

from typing import Callable, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fanaan.database import Base
from fanaan.providers.registry import ProviderRegistry
from fanaan.services.blobs import BlobStore
from fanaan.services.credentials import WEBHOOK_URL_KEY, CredentialStore
from fanaan.services.webhook import WebhookNotifier

WEBHOOK_URL = "https://hooks.example.com/fanaan"


def sse_body(*events: str) -> bytes:
    """Join SSE data payloads into a response body."""
    return "".join(f"data: {event}\n\n" for event in events).encode()


def openai_chunk(content: str) -> str:
    return '{"choices":[{"delta":{"content":"%s"}}]}' % content


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        async def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            response = handler(request)
            if inspect.isawaitable(response):
                response = await response
            return response

        super().__init__(record)

    def to(self, host: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]


@pytest_asyncio.fixture
async def credential_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'credentials.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield CredentialStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    await engine.dispose()


@pytest.fixture
def blob_store():
    return BlobStore(max_size=5)


@pytest.fixture
def make_transport():
    """Build a RecordingTransport from a request handler."""
    return RecordingTransport


@pytest_asyncio.fixture
async def webhook_url(credential_store):
    await credential_store.set_credential(WEBHOOK_URL_KEY, WEBHOOK_URL)
    return WEBHOOK_URL


def build_collaborators(transport: httpx.MockTransport, credentials: CredentialStore):
    """Registry and notifier sharing one mocked client."""
    client = httpx.AsyncClient(transport=transport)
    registry = ProviderRegistry(client)
    notifier = WebhookNotifier(
        url_lookup=lambda: credentials.get_credential(WEBHOOK_URL_KEY),
        client_factory=lambda: client,
    )
    return registry, notifier
