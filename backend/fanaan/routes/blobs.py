from fastapi import APIRouter
from fastapi.responses import Response

from fanaan.services.blobs import blob_store
from fanaan.utils.exceptions import raise_not_found

router = APIRouter()


@router.get("/blobs/{blob_id}")
async def get_blob(blob_id: str) -> Response:
    """GET /api/blobs/{blob_id} - Generated media for preview or download"""
    blob = blob_store.get(blob_id)
    if blob is None:
        raise_not_found("Blob", blob_id)
    return Response(
        content=blob.data,
        media_type=blob.media_type,
        headers={"Cache-Control": "no-cache"},
    )
