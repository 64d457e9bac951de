"""Tests for inbound WhatsApp messages: dispatch, replies and the webhook."""

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from cropbroker.main import app
from cropbroker.models import OrderStatus, TradeStatus
from cropbroker.services import chat, negotiation
from cropbroker.services.commands import ACCEPT_USAGE, HELP_TEXT


def envelope(sender: str, *bodies: str) -> dict:
    """A webhook payload carrying one text message per body."""
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "waba-1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "messages": [
                                {
                                    "from": sender,
                                    "id": f"wamid.{i}",
                                    "type": "text",
                                    "text": {"body": body},
                                }
                                for i, body in enumerate(bodies)
                            ],
                        },
                    }
                ],
            }
        ],
    }


# ============================================================================
# Dispatch
# ============================================================================


class TestHandleIncomingMessage:
    @pytest.mark.asyncio
    async def test_accept_reply(self, repos, notifier, test_settings, supplier, trade):
        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, "91" + supplier.phone, f"accept trade {trade.id}"
        )

        assert reply.startswith("Trade accepted successfully!")
        assert "Waiting for broker confirmation." in reply
        assert "Price: ₹2000.00/qtl" in reply
        assert "Commission rate: 2.5%" in reply
        assert "Commission amount: ₹500.00" in reply
        assert notifier.messages_to(supplier.phone) == [reply]

    @pytest.mark.asyncio
    async def test_counter_reply(self, repos, notifier, test_settings, supplier, trade):
        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, supplier.phone, f"counter {trade.id} 1800"
        )

        assert reply.startswith("Counter offer sent successfully!")
        assert "Original price: ₹2000.00/qtl" in reply
        assert "Your offer: ₹1800.00/qtl" in reply
        assert trade.status == TradeStatus.NEGOTIATING

    @pytest.mark.asyncio
    async def test_counter_at_listed_price_is_answered(
        self, repos, notifier, test_settings, test_session, supplier, trade
    ):
        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, supplier.phone, f"counter {trade.id} 2000"
        )

        assert reply.startswith("Counter offer must be lower than the original price")
        await test_session.refresh(trade)
        assert trade.status == TradeStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_counter_rounding_to_listed_price_is_answered(
        self, repos, notifier, test_settings, test_session, supplier, trade
    ):
        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, supplier.phone, f"counter {trade.id} 1999.999"
        )

        assert reply.startswith("Counter offer must be lower than the original price")
        await test_session.refresh(trade)
        assert trade.status == TradeStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_unknown_trade_is_answered(self, repos, notifier, test_settings, supplier):
        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, supplier.phone, "accept trade nope"
        )
        assert reply == negotiation.TRADE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_unregistered_sender(self, repos, notifier, test_settings, trade):
        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, "919000000009", f"accept trade {trade.id}"
        )
        assert reply == chat.NOT_REGISTERED
        assert notifier.messages_to("9000000009") == [chat.NOT_REGISTERED]

    @pytest.mark.asyncio
    async def test_help_text(self, repos, notifier, test_settings, supplier):
        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, supplier.phone, "hello"
        )
        assert reply == HELP_TEXT

    @pytest.mark.asyncio
    async def test_usage_error(self, repos, notifier, test_settings, supplier):
        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, supplier.phone, "accept"
        )
        assert reply == ACCEPT_USAGE

    @pytest.mark.asyncio
    async def test_broker_cannot_accept_trade(
        self, repos, notifier, test_settings, broker, trade
    ):
        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, broker.phone, f"accept trade {trade.id}"
        )
        assert reply == chat.SUPPLIERS_ONLY

    @pytest.mark.asyncio
    async def test_broker_accept(self, repos, notifier, test_settings, broker, supplier, trade):
        order = await negotiation.accept_trade(
            repos, notifier, test_settings, supplier, trade.id
        )

        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, broker.phone, f"broker accept {order.id}"
        )

        assert reply == chat.BROKER_CONFIRMED
        assert order.status == OrderStatus.CONFIRMED
        assert any("Broker has accepted" in m for m in notifier.messages_to(supplier.phone))

    @pytest.mark.asyncio
    async def test_unexpected_error_gets_generic_reply(
        self, repos, notifier, test_settings, supplier, trade, monkeypatch
    ):
        async def boom(*args, **kwargs):
            raise RuntimeError("database on fire")

        monkeypatch.setattr(negotiation, "accept_trade", boom)
        phone = supplier.phone

        reply = await chat.handle_incoming_message(
            repos, notifier, test_settings, phone, f"accept trade {trade.id}"
        )
        assert reply == chat.GENERIC_ERROR
        assert notifier.messages_to(phone) == [chat.GENERIC_ERROR]


# ============================================================================
# Webhook endpoints
# ============================================================================


class TestWebhookVerification:
    @pytest.mark.asyncio
    async def test_challenge_echoed(self, test_client):
        response = await test_client.get(
            "/webhook",
            params={
                "hub.mode": "subscribe",
                "hub.verify_token": "verify-me",
                "hub.challenge": "1158201444",
            },
        )
        assert response.status_code == 200
        assert response.text == "1158201444"

    @pytest.mark.asyncio
    async def test_wrong_token(self, test_client):
        response = await test_client.get(
            "/webhook",
            params={
                "hub.mode": "subscribe",
                "hub.verify_token": "wrong",
                "hub.challenge": "1",
            },
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_params(self, test_client):
        response = await test_client.get("/webhook", params={"hub.challenge": "1"})
        assert response.status_code == 400


class TestWebhookMessages:
    @pytest.mark.asyncio
    async def test_accept_over_webhook(
        self, test_client, test_session, repos, notifier, supplier, broker, trade
    ):
        response = await test_client.post(
            "/webhook", json=envelope("91" + supplier.phone, f"accept trade {trade.id}")
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

        order = await repos.orders.latest_for_trade(trade.id)
        assert order.status == OrderStatus.SUPPLIER_ACCEPTED
        assert order.total_commission == Decimal("1000.00")

        await test_session.refresh(trade)
        assert trade.status == TradeStatus.ACTIVE

        replies = notifier.messages_to(supplier.phone)
        assert len(replies) == 1
        assert replies[0].startswith("Trade accepted successfully!")
        assert len(notifier.messages_to(broker.phone)) == 1

    @pytest.mark.asyncio
    async def test_every_message_gets_a_reply(self, test_client, notifier, supplier, trade):
        response = await test_client.post(
            "/webhook",
            json=envelope(supplier.phone, "hi", "counter", f"counter {trade.id} 1800"),
        )

        assert response.status_code == 200
        replies = notifier.messages_to(supplier.phone)
        assert len(replies) == 3
        assert replies[0] == HELP_TEXT
        assert replies[2].startswith("Counter offer sent successfully!")

    @pytest.mark.asyncio
    async def test_status_callbacks_ignored(self, test_client, notifier):
        payload = {
            "object": "whatsapp_business_account",
            "entry": [
                {
                    "changes": [
                        {"value": {"statuses": [{"id": "wamid.1", "status": "delivered"}]}}
                    ]
                }
            ],
        }
        response = await test_client.post("/webhook", json=payload)

        assert response.status_code == 200
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_failure_outside_dispatch_returns_500(self, test_client, monkeypatch):
        async def boom(*args, **kwargs):
            raise RuntimeError("notifier gone")

        monkeypatch.setattr("cropbroker.routers.webhook.handle_incoming_message", boom)

        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        ) as client:
            response = await client.post("/webhook", json=envelope("9988776655", "hi"))

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}
