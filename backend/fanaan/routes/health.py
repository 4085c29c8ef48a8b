from fastapi import APIRouter


router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint"""
    from fanaan.pages import page_router
    from fanaan.providers.registry import provider_registry

    return {
        "status": "healthy",
        "pages": [entry["path"] for entry in page_router.navigation()],
        "active_calls": provider_registry.active_calls,
    }
