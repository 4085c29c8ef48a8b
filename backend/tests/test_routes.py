"""End-to-end tests of the HTTP API with provider calls mocked."""

import asyncio
import base64

import httpx
import orjson
import pytest
from fastapi.testclient import TestClient

import fanaan.pages
import fanaan.routes.blobs
import fanaan.routes.pages
from fanaan.database import engine, init_db
from fanaan.main import app
from fanaan.pages import PageContext, PageRouter
from fanaan.services.blobs import BlobStore
from fanaan.services.credentials import credential_store
from fanaan.services.session import SESSION_COOKIE, SessionRegistry

from conftest import RecordingTransport, build_collaborators, openai_chunk, sse_body


def parse_sse(body: str):
    """(event, data) pairs from an SSE response body"""
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], orjson.loads(lines["data"])))
    return events


def provider_handler(request: httpx.Request) -> httpx.Response:
    if "huggingface" in request.url.host:
        return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})
    return httpx.Response(200, content=sse_body(openai_chunk("Hel"), openai_chunk("lo"), "[DONE]"))


@pytest.fixture
def transport():
    return RecordingTransport(provider_handler)


def install_router(monkeypatch, transport) -> PageRouter:
    registry, notifier = build_collaborators(transport, credential_store)
    blobs = BlobStore(max_size=5)
    router = PageRouter(PageContext(credential_store, registry, notifier, blobs))
    monkeypatch.setattr(fanaan.routes.blobs, "blob_store", blobs)
    monkeypatch.setattr(fanaan.routes.pages, "page_router", router)
    monkeypatch.setattr(fanaan.pages, "page_router", router)
    return router


@pytest.fixture
def client(monkeypatch, transport):
    install_router(monkeypatch, transport)
    with TestClient(app) as test_client:
        test_client.delete("/api/credentials")
        yield test_client


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert "groq-text" in body["pages"]
    assert body["active_calls"] == 0


def test_navigate_generation_page(client):
    response = client.get("/api/pages/groq-tts")

    assert response.status_code == 200
    page = response.json()
    assert page["title"] == "Fanaan AI | Generate Speech (Groq)"
    assert page["form"]["form_id"] == "groq-tts-form"
    assert page["panel"]["submit_enabled"] is True
    assert "playai-tts" in page["catalog"]["voices"]


def test_navigate_unknown_page(client):
    page = client.get("/api/pages/nowhere").json()

    assert page["path"] == "not-found"
    assert "form" not in page


def test_credentials_are_masked_except_webhook(client):
    response = client.put(
        "/api/credentials",
        json={"values": {"groqKey": "gsk-secret-9876", "n8nWebhookUrl": "https://hooks.example.com/x"}},
    )
    assert response.status_code == 200

    listed = {c["name"]: c for c in client.get("/api/credentials").json()["credentials"]}

    assert listed["groqKey"]["is_set"]
    assert listed["groqKey"]["value"].endswith("9876")
    assert "secret" not in listed["groqKey"]["value"]
    assert listed["n8nWebhookUrl"]["value"] == "https://hooks.example.com/x"
    assert not listed["openAIKey"]["is_set"]


def test_unknown_credential_is_rejected(client):
    response = client.put("/api/credentials", json={"values": {"madeUpKey": "x"}})

    assert response.status_code == 400


def test_submit_streams_panel_events(client, transport):
    client.put("/api/credentials", json={"values": {"groqKey": "gsk-test"}})

    response = client.post(
        "/api/pages/groq-text/submit",
        json={"fields": {"model": "llama3", "prompt": "Hi"}},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = parse_sse(response.text)
    assert [name for name, _ in events] == ["submit", "loading", "text", "text", "text", "submit", "complete"]
    assert events[0][1] == {"target": "groq-text-generate-button", "enabled": False}
    assert events[3][1]["text"] == "Hello"
    assert events[-1][1] == {"ok": True, "error": None}
    assert transport.requests[0].headers["Authorization"] == "Bearer gsk-test"
    assert SESSION_COOKIE not in response.cookies


def test_submit_without_credential_reports_error(client, transport):
    response = client.post(
        "/api/pages/chatgpt-text/submit",
        json={"fields": {"model": "gpt-4o", "prompt": "Hi"}},
    )

    events = parse_sse(response.text)
    errors = [data for name, data in events if name == "error"]
    assert errors[0]["message"] == "Error: openAIKey not found. Please set it in the API Keys page."
    assert events[-2] == ("submit", {"target": "chatgpt-text-generate-button", "enabled": True})
    assert transport.requests == []


def test_binary_output_is_served_as_blob(client):
    client.put("/api/credentials", json={"values": {"huggingFaceKey": "hf-test"}})

    response = client.post(
        "/api/pages/huggingface-images/submit",
        json={"fields": {"model": "stabilityai/sdxl", "prompt": "a fox"}},
    )

    media = [data for name, data in parse_sse(response.text) if name == "media"][0]
    blob = client.get(media["url"])
    assert blob.status_code == 200
    assert blob.content == b"\x89PNG"
    assert blob.headers["content-type"] == "image/png"


def test_image_upload_is_sent_as_bytes(client, transport):
    client.put("/api/credentials", json={"values": {"huggingFaceKey": "hf-test"}})

    client.post(
        "/api/pages/huggingface-video/submit",
        json={
            "fields": {"model": "stabilityai/stable-video-diffusion-img2vid-xt", "mode": "image-to-video"},
            "image": {"media_type": "image/png", "data": base64.b64encode(b"raw-image").decode()},
        },
    )

    assert transport.requests[0].content == b"raw-image"


def test_submit_to_static_page_is_not_found(client):
    assert client.post("/api/pages/api-keys/submit", json={}).status_code == 404
    assert client.post("/api/pages/nowhere/submit", json={}).status_code == 404


def test_missing_blob(client):
    assert client.get("/api/blobs/unknown").status_code == 404


def test_google_key_selection_flow(client):
    status = client.get("/api/pages/veo/key-status").json()
    assert status == {"requires_key_selection": True, "has_selected_key": False}

    client.post("/api/pages/veo/select-key", json={"api_key": "g-key"})

    status = client.get("/api/pages/veo/key-status").json()
    assert status["has_selected_key"] is True
    assert client.get("/api/pages/groq-text/key-status").json()["requires_key_selection"] is False
    assert client.post("/api/pages/groq-text/select-key", json={}).status_code == 400


def test_google_submit_issues_session_cookie(client):
    response = client.post("/api/pages/veo/submit", json={"fields": {"model": "veo-3.0", "prompt": "waves"}})

    errors = [data for name, data in parse_sse(response.text) if name == "error"]
    assert "select a key" in errors[0]["message"]
    assert SESSION_COOKIE in response.cookies


def test_session_registry_stays_bounded(client, monkeypatch):
    sessions = SessionRegistry(credential_store, max_size=3)
    monkeypatch.setattr(fanaan.routes.pages, "session_registry", sessions)

    for _ in range(10):
        client.cookies.clear()
        client.get("/api/pages/veo/key-status")
    assert len(sessions) == 3

    client.cookies.clear()
    client.get("/api/pages/groq-text/key-status")
    client.post("/api/pages/groq-text/submit", json={"fields": {"model": "llama3", "prompt": ""}})
    assert len(sessions) == 3


@pytest.mark.asyncio
async def test_concurrent_submits_get_one_conflict(monkeypatch):
    release = asyncio.Event()

    async def held(request):
        await release.wait()
        return httpx.Response(200, content=sse_body(openai_chunk("done"), "[DONE]"))

    transport = RecordingTransport(held)
    install_router(monkeypatch, transport)
    await init_db()
    await credential_store.clear_all()
    await credential_store.set_credential("groqKey", "gsk-test")
    body = {"fields": {"model": "llama3", "prompt": "Hi"}}

    try:
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://dashboard"
        ) as api:
            # Both requests are in the app before either reaches the provider
            posts = [
                asyncio.create_task(api.post("/api/pages/groq-text/submit", json=body))
                for _ in range(2)
            ]
            for _ in range(1000):
                if transport.requests:
                    break
                await asyncio.sleep(0.001)
            release.set()
            responses = await asyncio.gather(*posts)
    finally:
        await engine.dispose()

    assert sorted(r.status_code for r in responses) == [200, 409]
    streamed = next(r for r in responses if r.status_code == 200)
    assert parse_sse(streamed.text)[-1] == ("complete", {"ok": True, "error": None})
    assert len(transport.requests) == 1
