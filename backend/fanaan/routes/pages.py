"""
Page routes: navigation, form submission and Google key selection.

A submission answers with an SSE stream of panel changes:
- submit: submit control state {target, enabled}
- loading: placeholder shown {target, message}
- text: running or final text {target, text}
- media: generated media ready {target, url, media_type, download_name}
- error: "Error: ..." message {target, message, partial_text}
"""

import asyncio
import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, Cookie, Response
from fastapi.responses import StreamingResponse

from fanaan.models.request import KeySelectRequest, SubmitRequest
from fanaan.pages import decode_image, page_router
from fanaan.services.panel import PanelEvent
from fanaan.services.session import SESSION_COOKIE, KeySelection, session_registry
from fanaan.utils.exceptions import InvalidInput, raise_bad_request, raise_conflict, raise_not_found
from fanaan.utils.sse import format_panel_sse, format_sse

logger = logging.getLogger(__name__)

router = APIRouter()


def _session(response: Response, session_id: Optional[str]) -> KeySelection:
    """KeySelection for the caller's session, issuing a cookie if needed."""
    if not session_id:
        session_id = secrets.token_urlsafe(24)
        response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return session_registry.get(session_id)


def _generation_page(path: str):
    route = page_router.resolve(path)
    if route.path != path or route.init is None:
        raise_not_found("Generation page", path)
    return route


@router.get("/pages")
async def list_pages():
    """GET /api/pages - Navigation entries in sidebar order"""
    return {"pages": page_router.navigation()}


@router.get("/pages/{path}")
async def navigate(path: str):
    """
    GET /api/pages/{path} - Navigate to a page

    Unknown paths resolve to the not-found page. Generation pages get a fresh
    controller and report the DOM ids their form uses.
    """
    route = page_router.navigate(path)
    page: Dict[str, Any] = {
        "path": route.path,
        "title": f"Fanaan AI | {route.title}",
        "template": route.template,
    }
    controller = page_router.controller(route.path) if route.init else None
    if controller is not None:
        config = controller.config
        page["form"] = {
            "form_id": config.form_id,
            "output_id": config.output_id,
            "submit_id": config.submit_id,
            "notify_toggle_id": config.notify_toggle_id,
            "credential_name": config.credential_name,
            "requires_key_selection": config.requires_key_selection,
        }
        page["panel"] = controller.panel.snapshot()
    if route.catalog:
        page["catalog"] = route.catalog
    return page


@router.post("/pages/{path}/submit")
async def submit(
    path: str,
    request: SubmitRequest,
    response: Response,
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
):
    """
    POST /api/pages/{path}/submit - Run one generation for a page's form

    Returns an SSE stream of panel events; the stream ends once the
    submission has settled and the submit control is enabled again.
    """
    _generation_page(path)
    controller = page_router.controller(path)

    form: Dict[str, Any] = {**request.fields, **request.toggles}
    if request.image is not None:
        try:
            form["image"] = decode_image(request.image.data)
        except InvalidInput as e:
            raise_bad_request(e.message)

    key_selection = None
    if controller.config.requires_key_selection:
        key_selection = _session(response, session_id)

    # Claimed before the response is returned, so a concurrent POST sees it
    if not controller.reserve():
        raise_conflict("A generation is already in progress for this form")

    queue: asyncio.Queue[Optional[PanelEvent]] = asyncio.Queue()

    async def run_submission():
        try:
            return await controller.submit(
                form, listener=queue.put_nowait, key_selection=key_selection, reserved=True
            )
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(run_submission())

    async def events():
        while True:
            event = await queue.get()
            if event is None:
                break
            yield format_panel_sse(event)
        result = await task
        yield format_sse("complete", {"ok": result.ok, "error": result.error})

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            **{k: v for k, v in response.headers.items() if k.lower() == "set-cookie"},
        },
    )


@router.get("/pages/{path}/key-status")
async def key_status(
    path: str,
    response: Response,
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
):
    """GET /api/pages/{path}/key-status - Whether the form or the key prompt is shown"""
    route = _generation_page(path)
    controller = page_router.controller(route.path)
    if not controller.config.requires_key_selection:
        return {"requires_key_selection": False, "has_selected_key": True}
    selection = _session(response, session_id)
    return {"requires_key_selection": True, "has_selected_key": await selection.has_selected_key()}


@router.post("/pages/{path}/select-key")
async def select_key(
    path: str,
    request: KeySelectRequest,
    response: Response,
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
):
    """POST /api/pages/{path}/select-key - Select (and optionally store) the Google key"""
    route = _generation_page(path)
    if not page_router.controller(route.path).config.requires_key_selection:
        raise_bad_request(f"Page '{path}' does not use key selection")
    selection = _session(response, session_id)
    await selection.select(request.api_key)
    return {"has_selected_key": True}
