"""API Keys page: stored credentials."""

import logging

from fastapi import APIRouter

from fanaan.models.request import CredentialsUpdate
from fanaan.services.credentials import KNOWN_CREDENTIALS, WEBHOOK_URL_KEY, credential_store, mask_value
from fanaan.utils.exceptions import raise_bad_request

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/credentials")
async def list_credentials():
    """
    GET /api/credentials - Known credential names and whether each is set

    Keys are masked; the webhook URL is returned as stored.
    """
    stored = await credential_store.all_credentials()
    credentials = []
    for name, label in KNOWN_CREDENTIALS.items():
        value = stored.get(name)
        if value and name != WEBHOOK_URL_KEY:
            value = mask_value(value)
        credentials.append({"name": name, "label": label, "is_set": name in stored, "value": value})
    return {"credentials": credentials}


@router.put("/credentials")
async def save_credentials(request: CredentialsUpdate):
    """PUT /api/credentials - Save entered values; empty values remove the key"""
    unknown = sorted(set(request.values) - set(KNOWN_CREDENTIALS))
    if unknown:
        raise_bad_request(f"Unknown credential(s): {', '.join(unknown)}")
    await credential_store.save_many(request.values)
    return {"status": "saved"}


@router.delete("/credentials")
async def clear_credentials():
    """DELETE /api/credentials - Remove every stored credential"""
    await credential_store.clear_all()
    return {"status": "cleared"}
