"""Tests for broker endpoints: trades, broadcasts, suppliers, orders,
commissions and the notification inbox."""

from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from cropbroker.models import LogType, Trade, TradeStatus
from cropbroker.services import broker as broker_service
from cropbroker.services import negotiation
from cropbroker.utils import utcnow


# ============================================================================
# Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def expired_trade(test_session, broker):
    """A trade whose validity ended an hour ago but is still marked active."""
    trade = Trade(
        id="trade-old",
        crop="Soybean",
        grade="B",
        price=Decimal("4200.00"),
        quantity=Decimal("25.00"),
        valid_till=utcnow() - timedelta(hours=1),
        status=TradeStatus.ACTIVE,
        broker_id=broker.id,
    )
    test_session.add(trade)
    await test_session.commit()
    await test_session.refresh(trade)
    return trade


@pytest_asyncio.fixture
async def confirmed_order(repos, notifier, test_settings, broker, supplier, trade):
    """Supplier accepted the Wheat trade and the broker confirmed it."""
    order = await negotiation.accept_trade(
        repos, notifier, test_settings, supplier, trade.id
    )
    order = await negotiation.confirm_order(repos, notifier, broker, order.id)
    notifier.sent.clear()
    return order


# ============================================================================
# Trade Tests
# ============================================================================


class TestTrades:
    @pytest.mark.asyncio
    async def test_create_trade(self, test_client, broker, auth_headers):
        valid_till = (utcnow() + timedelta(days=2)).isoformat()
        response = await test_client.post(
            "/broker/trade",
            json={
                "crop": "Wheat",
                "grade": "A",
                "price": "2150.50",
                "quantity": "40",
                "valid_till": valid_till,
            },
            headers=auth_headers(broker),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["crop"] == "Wheat"
        assert data["status"] == "active"
        assert data["broker_id"] == broker.id
        assert Decimal(data["price"]) == Decimal("2150.50")

    @pytest.mark.asyncio
    async def test_create_trade_logs_without_messaging(
        self, test_client, notifier, broker, supplier, auth_headers
    ):
        response = await test_client.post(
            "/broker/trade",
            json={
                "crop": "Maize",
                "grade": "A",
                "price": "1900",
                "quantity": "10",
                "valid_till": (utcnow() + timedelta(days=1)).isoformat(),
            },
            headers=auth_headers(broker),
        )
        assert response.status_code == 201
        assert notifier.sent == []

        response = await test_client.get(
            "/broker/notifications", headers=auth_headers(broker)
        )
        assert [n["type"] for n in response.json()] == ["trade_created"]

    @pytest.mark.asyncio
    async def test_create_trade_rejects_zero_price(self, test_client, broker, auth_headers):
        response = await test_client.post(
            "/broker/trade",
            json={
                "crop": "Wheat",
                "grade": "A",
                "price": "0",
                "quantity": "10",
                "valid_till": (utcnow() + timedelta(days=1)).isoformat(),
            },
            headers=auth_headers(broker),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_trade_rounds_price_and_quantity(self, repos, test_session, broker):
        trade = await broker_service.create_trade(
            repos,
            broker,
            "Gram",
            "A",
            Decimal("5100.005"),
            Decimal("12.345"),
            utcnow() + timedelta(days=1),
        )
        await repos.commit()

        await test_session.refresh(trade)
        assert trade.price == Decimal("5100.01")
        assert trade.quantity == Decimal("12.35")

    @pytest.mark.asyncio
    async def test_create_trade_quantity_rounding_to_zero(self, repos, broker):
        with pytest.raises(ValueError, match="Quantity must be positive"):
            await broker_service.create_trade(
                repos,
                broker,
                "Gram",
                "A",
                Decimal("5100"),
                Decimal("0.004"),
                utcnow() + timedelta(days=1),
            )

    @pytest.mark.asyncio
    async def test_list_trades_only_own(
        self, test_client, broker, other_broker, trade, auth_headers
    ):
        response = await test_client.get("/broker/trades", headers=auth_headers(broker))
        assert [t["id"] for t in response.json()] == [trade.id]

        response = await test_client.get(
            "/broker/trades", headers=auth_headers(other_broker)
        )
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_supplier_token_rejected(self, test_client, supplier, auth_headers):
        response = await test_client.get("/broker/trades", headers=auth_headers(supplier))
        assert response.status_code == 403


# ============================================================================
# Broadcast Tests
# ============================================================================


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_broadcast_sends_three_messages_per_supplier(
        self, test_client, notifier, broker, supplier, other_supplier, trade, auth_headers
    ):
        response = await test_client.post(
            "/broker/trade/broadcast",
            json={"trade_id": trade.id},
            headers=auth_headers(broker),
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Trade broadcasted successfully",
            "supplier_count": 2,
        }

        messages = notifier.messages_to(supplier.phone)
        assert len(messages) == 3
        assert messages[0].startswith("🌾 New Trade Alert!")
        assert "Crop: Wheat" in messages[0]
        assert messages[1] == f"accept trade {trade.id}"
        assert messages[2] == f"counter {trade.id} <price>"
        assert len(notifier.messages_to(other_supplier.phone)) == 3

    @pytest.mark.asyncio
    async def test_broadcast_only_once(
        self, test_client, notifier, broker, supplier, trade, auth_headers
    ):
        headers = auth_headers(broker)
        await test_client.post(
            "/broker/trade/broadcast", json={"trade_id": trade.id}, headers=headers
        )
        notifier.sent.clear()

        response = await test_client.post(
            "/broker/trade/broadcast", json={"trade_id": trade.id}, headers=headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Trade already broadcasted"
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_broadcast_expired_trade(
        self, test_client, notifier, broker, supplier, expired_trade, auth_headers
    ):
        response = await test_client.post(
            "/broker/trade/broadcast",
            json={"trade_id": expired_trade.id},
            headers=auth_headers(broker),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Trade validity has expired"
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_broadcast_without_suppliers(self, test_client, broker, trade, auth_headers):
        response = await test_client.post(
            "/broker/trade/broadcast",
            json={"trade_id": trade.id},
            headers=auth_headers(broker),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "No active suppliers found"

    @pytest.mark.asyncio
    async def test_broadcast_other_brokers_trade(
        self, test_client, other_broker, supplier, trade, auth_headers
    ):
        response = await test_client.post(
            "/broker/trade/broadcast",
            json={"trade_id": trade.id},
            headers=auth_headers(other_broker),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_broadcast_unknown_trade(self, test_client, broker, auth_headers):
        response = await test_client.post(
            "/broker/trade/broadcast",
            json={"trade_id": "missing"},
            headers=auth_headers(broker),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_broadcast_history(
        self, test_client, broker, supplier, trade, auth_headers
    ):
        headers = auth_headers(broker)
        await test_client.post(
            "/broker/trade/broadcast", json={"trade_id": trade.id}, headers=headers
        )

        response = await test_client.get("/broker/broadcast-history", headers=headers)

        assert response.status_code == 200
        history = response.json()
        assert len(history) == 1
        assert history[0]["type"] == "trade_broadcast"
        assert history[0]["details"] == {"supplier_count": 1, "delivered": 1}
        assert history[0]["trade"]["crop"] == "Wheat"


# ============================================================================
# Supplier Tests
# ============================================================================


class TestSuppliers:
    @pytest.mark.asyncio
    async def test_add_supplier_normalizes_phone(self, test_client, broker, auth_headers):
        response = await test_client.post(
            "/broker/supplier",
            json={"firm_name": "Yadav Grains", "phone": "+91 98111 00000", "address": "Dewas"},
            headers=auth_headers(broker),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["phone"] == "9811100000"
        assert data["email"] is None

    @pytest.mark.asyncio
    async def test_add_supplier_short_phone(self, test_client, broker, auth_headers):
        response = await test_client.post(
            "/broker/supplier",
            json={"firm_name": "Bad Number", "phone": "12345-abcd"},
            headers=auth_headers(broker),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list_and_get(self, test_client, broker, supplier, auth_headers):
        headers = auth_headers(broker)
        response = await test_client.get("/broker/suppliers", headers=headers)
        assert [s["id"] for s in response.json()] == [supplier.id]

        response = await test_client.get(f"/broker/supplier/{supplier.id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["firm_name"] == "Patel Agro"

    @pytest.mark.asyncio
    async def test_get_non_supplier(self, test_client, broker, auth_headers):
        response = await test_client.get(
            f"/broker/supplier/{broker.id}", headers=auth_headers(broker)
        )
        assert response.status_code == 404


# ============================================================================
# Order and Commission Tests
# ============================================================================


class TestOrders:
    @pytest.mark.asyncio
    async def test_confirm_notifies_supplier(
        self, test_client, repos, notifier, test_settings, broker, supplier, trade, auth_headers
    ):
        order = await negotiation.accept_trade(
            repos, notifier, test_settings, supplier, trade.id
        )

        response = await test_client.put(
            f"/broker/orders/{order.id}/confirm", headers=auth_headers(broker)
        )

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        assert any("Order Confirmed" in m for m in notifier.messages_to(supplier.phone))

    @pytest.mark.asyncio
    async def test_confirm_unknown_order(self, test_client, broker, auth_headers):
        response = await test_client.put(
            "/broker/orders/missing/confirm", headers=auth_headers(broker)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_advance_order(self, test_client, broker, confirmed_order, auth_headers):
        response = await test_client.put(
            f"/broker/orders/{confirmed_order.id}/status",
            json={"status": "financed"},
            headers=auth_headers(broker),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "financed"

    @pytest.mark.asyncio
    async def test_advance_skipping_step(
        self, test_client, broker, confirmed_order, auth_headers
    ):
        response = await test_client.put(
            f"/broker/orders/{confirmed_order.id}/status",
            json={"status": "completed"},
            headers=auth_headers(broker),
        )
        assert response.status_code == 400


class TestCommissions:
    @pytest.mark.asyncio
    async def test_summary_counts_confirmed_orders(
        self, test_client, repos, notifier, test_settings, broker, other_supplier,
        confirmed_order, auth_headers,
    ):
        # Not yet confirmed, so not counted
        await negotiation.accept_trade(
            repos, notifier, test_settings, other_supplier, confirmed_order.trade_id
        )

        response = await test_client.get(
            "/broker/commissions/summary", headers=auth_headers(broker)
        )

        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["payment_status"] == "pending"
        assert Decimal(rows[0]["total_supplier_commission"]) == Decimal("500")
        assert Decimal(rows[0]["total_buyer_commission"]) == Decimal("500")
        assert Decimal(rows[0]["total_commission"]) == Decimal("1000")

    @pytest.mark.asyncio
    async def test_commission_orders(
        self, test_client, broker, supplier, confirmed_order, auth_headers
    ):
        response = await test_client.get(
            "/broker/commissions/orders", headers=auth_headers(broker)
        )

        orders = response.json()
        assert [o["id"] for o in orders] == [confirmed_order.id]
        assert orders[0]["supplier"]["firm_name"] == supplier.firm_name
        assert orders[0]["trade"]["crop"] == "Wheat"

    @pytest.mark.asyncio
    async def test_payment_both_sides(
        self, test_client, broker, confirmed_order, auth_headers
    ):
        headers = auth_headers(broker)
        url = f"/broker/commissions/{confirmed_order.id}/payment"

        response = await test_client.put(url, json={"payment_from": "supplier"}, headers=headers)
        assert response.json()["payment_status"] == "supplier_commission_paid"

        response = await test_client.put(url, json={"payment_from": "buyer"}, headers=headers)
        assert response.json()["payment_status"] == "all_paid"

        response = await test_client.get("/broker/commissions/summary", headers=headers)
        assert [r["payment_status"] for r in response.json()] == ["all_paid"]

    @pytest.mark.asyncio
    async def test_payment_invalid_party(
        self, test_client, broker, confirmed_order, auth_headers
    ):
        response = await test_client.put(
            f"/broker/commissions/{confirmed_order.id}/payment",
            json={"payment_from": "financer"},
            headers=auth_headers(broker),
        )
        assert response.status_code == 422


# ============================================================================
# Notification Tests
# ============================================================================


class TestNotifications:
    @pytest.mark.asyncio
    async def test_count_and_mark_read(
        self, test_client, repos, notifier, test_settings, broker, supplier, trade, auth_headers
    ):
        await negotiation.accept_trade(repos, notifier, test_settings, supplier, trade.id)
        headers = auth_headers(broker)

        response = await test_client.get("/broker/notifications/count", headers=headers)
        assert response.json() == {"count": 1}

        response = await test_client.get("/broker/notifications", headers=headers)
        notifications = response.json()
        assert notifications[0]["type"] == "trade_accept"
        assert notifications[0]["actor"]["firm_name"] == "Patel Agro"

        response = await test_client.put(
            "/broker/notifications/read",
            json={"notification_ids": [notifications[0]["id"]]},
            headers=headers,
        )
        assert response.status_code == 200

        response = await test_client.get("/broker/notifications/count", headers=headers)
        assert response.json() == {"count": 0}

    @pytest.mark.asyncio
    async def test_mark_read_ignores_other_brokers_entries(
        self, test_client, repos, notifier, test_settings, broker, other_broker,
        supplier, trade, auth_headers,
    ):
        await negotiation.accept_trade(repos, notifier, test_settings, supplier, trade.id)
        logs = await repos.logs.list_by_type(broker.id, LogType.TRADE_ACCEPT)

        await test_client.put(
            "/broker/notifications/read",
            json={"notification_ids": [logs[0].id]},
            headers=auth_headers(other_broker),
        )

        response = await test_client.get(
            "/broker/notifications/count", headers=auth_headers(broker)
        )
        assert response.json() == {"count": 1}

    @pytest.mark.asyncio
    async def test_history_pages(
        self, test_client, repos, notifier, test_settings, broker, supplier,
        other_supplier, trade, auth_headers,
    ):
        await negotiation.accept_trade(repos, notifier, test_settings, supplier, trade.id)
        await negotiation.accept_trade(repos, notifier, test_settings, other_supplier, trade.id)

        response = await test_client.get(
            "/broker/notifications/history",
            params={"page": 2, "limit": 1},
            headers=auth_headers(broker),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["pages"] == 2
        assert data["current_page"] == 2
        assert len(data["logs"]) == 1

    @pytest.mark.asyncio
    async def test_history_rejects_zero_page(self, test_client, broker, auth_headers):
        response = await test_client.get(
            "/broker/notifications/history",
            params={"page": 0},
            headers=auth_headers(broker),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_accepted_trades_message_includes_price(
        self, test_client, repos, notifier, test_settings, broker, supplier, trade, auth_headers
    ):
        await negotiation.accept_trade(repos, notifier, test_settings, supplier, trade.id)

        response = await test_client.get(
            "/broker/logs/accepted-trades", headers=auth_headers(broker)
        )

        assert response.status_code == 200
        entries = response.json()
        assert len(entries) == 1
        assert entries[0]["message"] == (
            "Supplier Patel Agro accepted trade for Wheat Price is 2000.00"
        )


# ============================================================================
# Expiry
# ============================================================================


class TestExpireTrades:
    @pytest.mark.asyncio
    async def test_expires_past_deadline_only(self, repos, broker, trade, expired_trade):
        expired = await broker_service.expire_trades(repos)

        assert [t.id for t in expired] == [expired_trade.id]
        assert expired_trade.status == TradeStatus.EXPIRED
        assert trade.status == TradeStatus.ACTIVE

        logs = await repos.logs.list_by_type(broker.id, LogType.TRADE_EXPIRED)
        assert [log.entity_id for log in logs] == [expired_trade.id]

    @pytest.mark.asyncio
    async def test_expires_negotiating_trade(self, repos, test_session, expired_trade):
        expired_trade.status = TradeStatus.NEGOTIATING
        await test_session.commit()

        expired = await broker_service.expire_trades(
            repos, now=utcnow() + timedelta(minutes=1)
        )
        assert [t.status for t in expired] == [TradeStatus.EXPIRED]

    @pytest.mark.asyncio
    async def test_nothing_to_expire(self, repos, trade):
        assert await broker_service.expire_trades(repos) == []
