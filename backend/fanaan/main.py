import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from fanaan.config import settings

logger = logging.getLogger(__name__)
from fanaan.routes import blobs, credentials, health, pages
from fanaan.providers.registry import provider_registry
from fanaan.database import engine, init_db
from fanaan.services.webhook import webhook_notifier


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle events"""
    # Initialize database
    await init_db()
    logger.info(f"Fanaan backend ready (debug={settings.debug})")

    yield

    # Shutdown: let pending webhooks settle, then close the shared HTTP client
    await webhook_notifier.drain()
    await provider_registry.cleanup()
    await engine.dispose()


app = FastAPI(
    title="Fanaan AI Dashboard API",
    description="Generative AI provider calls with SSE panel updates",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware (useful when the dashboard is served from a dev server)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(pages.router, prefix="/api", tags=["pages"])
app.include_router(credentials.router, prefix="/api", tags=["credentials"])
app.include_router(blobs.router, prefix="/api", tags=["blobs"])
