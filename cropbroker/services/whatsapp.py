"""Outbound WhatsApp messages via the Cloud (Graph) API.

Delivery is best effort: every failure is logged and reported as ``False``,
never raised, so a notification can not fail the operation that triggered it.
"""

import asyncio
import logging
from typing import Any

import httpx
from fastapi import Request

from cropbroker import telemetry
from cropbroker.config import Settings
from cropbroker.models import Invoice, Order, PurchaseOrder, Trade
from cropbroker.utils import normalize_phone

logger = logging.getLogger(__name__)


# ============================================================================
# Message templates
# ============================================================================


def format_trade_alert(trade: Trade) -> str:
    return (
        "🌾 New Trade Alert!\n\n"
        f"Crop: {trade.crop}\n"
        f"Grade: {trade.grade}\n"
        f"Price: ₹{trade.price}/qtl\n"
        f"Quantity: {trade.quantity} qtl\n"
        f"Valid Till: {trade.valid_till:%d/%m/%Y, %H:%M} UTC"
    )


def format_accept_instruction(trade: Trade) -> str:
    return f"accept trade {trade.id}"


def format_counter_instruction(trade: Trade) -> str:
    return f"counter {trade.id} <price>"


def format_order_confirmation(order: Order) -> str:
    return (
        "🎉 Order Confirmed!\n\n"
        f"Order ID: {order.id}\n"
        f"Quantity: {order.quantity} qtl\n"
        f"Total Amount: ₹{order.total_amount}\n"
        f"Status: {order.status.value}"
    )


def format_negotiation_update(order: Order) -> str:
    return (
        "💬 New Price Negotiation\n\n"
        f"Order ID: {order.id}\n"
        f"Counter Offer: ₹{order.counter_offer}/qtl"
    )


def format_broker_acceptance(order: Order) -> str:
    return (
        "🎉 Broker has accepted the trade!\n"
        f"Order ID: {order.id}\n"
        f"Price: ₹{order.price_per_unit}/qtl\n"
        f"Quantity: {order.quantity} qtl\n"
        f"Total amount: ₹{order.total_amount}"
    )


def format_purchase_order(po: PurchaseOrder) -> str:
    return (
        "📋 New Purchase Order\n\n"
        f"PO Number: {po.po_number}\n"
        f"Quantity: {po.quantity} qtl\n"
        f"Price: ₹{po.price_per_unit}/qtl\n"
        f"Total Amount: ₹{po.total_amount}"
    )


def format_invoice_request(invoice: Invoice) -> str:
    return (
        "📄 New Invoice Request!\n\n"
        f"Order ID: {invoice.order_id}\n"
        f"Amount: ₹{invoice.final_amount}\n\n"
        f"Please submit your invoice number for invoice {invoice.id}."
    )


def format_invoice_number_update(invoice: Invoice) -> str:
    return (
        "📄 Invoice Number Updated!\n\n"
        f"Invoice ID: {invoice.id}\n"
        f"Supplier Invoice Number: {invoice.invoice_number}\n"
        f"Amount: ₹{invoice.final_amount}"
    )


# ============================================================================
# Gateway
# ============================================================================


class WhatsAppNotifier:
    """Sends templated text messages to phone numbers."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        """Initialize the notifier.

        Args:
            settings: Application settings (token, phone number id, country code)
            client: HTTP client to use; one is created lazily when omitted
        """
        self.settings = settings
        self._client = client
        if not (settings.whatsapp_access_token and settings.whatsapp_phone_number_id):
            logger.warning(
                "WhatsApp credentials not configured. Notifications will be skipped."
            )

    @property
    def enabled(self) -> bool:
        return bool(
            self.settings.whatsapp_access_token and self.settings.whatsapp_phone_number_id
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating one if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def recipient(self, phone: str) -> str | None:
        """Address a phone number as country code + last 10 digits."""
        digits = normalize_phone(phone)
        if not digits:
            return None
        return f"{self.settings.country_code}{digits}"

    def _payload(self, to: str, body: str) -> dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {"preview_url": False, "body": body},
        }

    async def send_message(self, phone: str | None, body: str) -> bool:
        """Send one text message.

        Returns:
            True if the provider accepted the message, False otherwise
        """
        to = self.recipient(phone) if phone else None
        if to is None:
            logger.warning("Skipping WhatsApp message: recipient has no phone number")
            telemetry.record_notification(False)
            return False

        if not self.enabled:
            logger.info("WhatsApp disabled. Would send to %s: %s", to, body.splitlines()[0])
            telemetry.record_notification(False)
            return False

        try:
            response = await self.client.post(
                self.settings.whatsapp_messages_url,
                json=self._payload(to, body),
                headers={"Authorization": f"Bearer {self.settings.whatsapp_access_token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "WhatsApp API error",
                extra={"to": to, "status_code": e.response.status_code, "body": e.response.text},
            )
            telemetry.record_notification(False)
            return False
        except httpx.HTTPError as e:
            logger.error("WhatsApp request failed", extra={"to": to, "error": str(e)})
            telemetry.record_notification(False)
            return False

        telemetry.record_notification(True)
        return True

    async def send_trade(self, phone: str | None, trade: Trade, delay: float) -> bool:
        """Send the three-message trade alert, pausing ``delay`` seconds between messages."""
        messages = [
            format_trade_alert(trade),
            format_accept_instruction(trade),
            format_counter_instruction(trade),
        ]
        delivered = True
        for index, body in enumerate(messages):
            if index and delay > 0:
                await asyncio.sleep(delay)
            delivered = await self.send_message(phone, body) and delivered
        return delivered

    async def send_order_confirmation(self, phone: str | None, order: Order) -> bool:
        return await self.send_message(phone, format_order_confirmation(order))

    async def send_negotiation_update(self, phone: str | None, order: Order) -> bool:
        return await self.send_message(phone, format_negotiation_update(order))

    async def send_broker_acceptance(self, phone: str | None, order: Order) -> bool:
        return await self.send_message(phone, format_broker_acceptance(order))

    async def send_purchase_order(self, phone: str | None, po: PurchaseOrder) -> bool:
        return await self.send_message(phone, format_purchase_order(po))

    async def send_invoice_request(self, phone: str | None, invoice: Invoice) -> bool:
        return await self.send_message(phone, format_invoice_request(invoice))

    async def send_invoice_number_update(self, phone: str | None, invoice: Invoice) -> bool:
        return await self.send_message(phone, format_invoice_number_update(invoice))


def get_notifier(request: Request) -> WhatsAppNotifier:
    """Dependency returning the notifier created at application startup."""
    return request.app.state.notifier
