"""Tests for the outbound WhatsApp notifier."""

import json

import httpx
import pytest

from cropbroker.config import Settings
from cropbroker.services.whatsapp import WhatsAppNotifier


@pytest.fixture
def live_settings():
    return Settings(
        whatsapp_access_token="token-123",
        whatsapp_phone_number_id="5550001",
        whatsapp_api_version="v22.0",
        country_code="+91",
    )


def make_notifier(settings, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WhatsAppNotifier(settings, client=client)


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_posts_text_payload(self, live_settings):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

        notifier = make_notifier(live_settings, handler)

        assert await notifier.send_message("+91 98765-43210", "hello") is True
        await notifier.aclose()

        request = requests[0]
        assert str(request.url) == "https://graph.facebook.com/v22.0/5550001/messages"
        assert request.headers["Authorization"] == "Bearer token-123"
        assert json.loads(request.content) == {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": "+919876543210",
            "type": "text",
            "text": {"preview_url": False, "body": "hello"},
        }

    @pytest.mark.asyncio
    async def test_provider_error_returns_false(self, live_settings):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "bad token"}})

        notifier = make_notifier(live_settings, handler)
        assert await notifier.send_message("9876543210", "hello") is False

    @pytest.mark.asyncio
    async def test_network_error_returns_false(self, live_settings):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        notifier = make_notifier(live_settings, handler)
        assert await notifier.send_message("9876543210", "hello") is False

    @pytest.mark.asyncio
    async def test_missing_phone_skipped(self, live_settings):
        def handler(request):
            raise AssertionError("no request expected")

        notifier = make_notifier(live_settings, handler)
        assert await notifier.send_message(None, "hello") is False

    @pytest.mark.asyncio
    async def test_disabled_without_credentials(self):
        def handler(request):
            raise AssertionError("no request expected")

        notifier = make_notifier(Settings(), handler)
        assert notifier.enabled is False
        assert await notifier.send_message("9876543210", "hello") is False


class TestSendTrade:
    @pytest.mark.asyncio
    async def test_three_messages_in_order(self, live_settings, trade):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content)["text"]["body"])
            return httpx.Response(200, json={})

        notifier = make_notifier(live_settings, handler)

        assert await notifier.send_trade("9988776655", trade, delay=0) is True
        assert len(bodies) == 3
        assert bodies[0].startswith("🌾 New Trade Alert!")
        assert "Price: ₹2000.00/qtl" in bodies[0]
        assert bodies[1] == f"accept trade {trade.id}"
        assert bodies[2] == f"counter {trade.id} <price>"

    @pytest.mark.asyncio
    async def test_partial_failure_reported(self, live_settings, trade):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500 if len(calls) == 2 else 200, json={})

        notifier = make_notifier(live_settings, handler)

        assert await notifier.send_trade("9988776655", trade, delay=0) is False
        assert len(calls) == 3
