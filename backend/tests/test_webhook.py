"""Tests for best-effort webhook delivery."""

import logging

import httpx
import orjson
import pytest

from fanaan.services.webhook import WebhookNotifier

from conftest import WEBHOOK_URL, RecordingTransport


def notifier_for(transport, url=WEBHOOK_URL) -> WebhookNotifier:
    client = httpx.AsyncClient(transport=transport)

    async def lookup():
        return url

    return WebhookNotifier(url_lookup=lookup, client_factory=lambda: client)


@pytest.mark.asyncio
async def test_delivers_source_payload_and_timestamp():
    transport = RecordingTransport(lambda request: httpx.Response(200))
    notifier = notifier_for(transport)

    notifier.notify("groq-text-form", {"success": True, "prompt": "hi", "response": "hello"})
    await notifier.drain()

    assert len(transport.requests) == 1
    sent = transport.requests[0]
    assert sent.method == "POST"
    assert str(sent.url) == WEBHOOK_URL
    body = orjson.loads(sent.content)
    assert body["source"] == "groq-text-form"
    assert body["prompt"] == "hi"
    assert body["response"] == "hello"
    assert "T" in body["timestamp"]


@pytest.mark.asyncio
async def test_no_url_configured_sends_nothing():
    transport = RecordingTransport(lambda request: httpx.Response(200))
    notifier = notifier_for(transport, url=None)

    task = notifier.notify("veo-form", {"success": True})
    await notifier.drain()

    assert task.result() is False
    assert transport.requests == []


@pytest.mark.asyncio
async def test_unreachable_webhook_is_logged_not_raised(caplog):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    notifier = notifier_for(httpx.MockTransport(refuse))

    with caplog.at_level(logging.WARNING, logger="fanaan.services.webhook"):
        task = notifier.notify("groq-text-form", {"success": True})
        await notifier.drain()

    assert task.result() is False
    assert "Webhook failed" in caplog.text


@pytest.mark.asyncio
async def test_non_success_status_is_a_failed_delivery():
    transport = RecordingTransport(lambda request: httpx.Response(500))
    notifier = notifier_for(transport)

    task = notifier.notify("groq-text-form", {"success": True})
    await notifier.drain()

    assert task.result() is False
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_drain_without_pending_tasks():
    notifier = notifier_for(RecordingTransport(lambda request: httpx.Response(200)))

    await notifier.drain()
