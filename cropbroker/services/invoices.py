"""Invoice requests, generated invoice PDFs and supplier invoice numbers."""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from cropbroker.config import Settings
from cropbroker.models import (
    EntityType,
    Invoice,
    InvoiceStatus,
    Log,
    LogType,
    Order,
    User,
    UserRole,
)
from cropbroker.repositories import Repositories
from cropbroker.schemas.broker import InvoiceCreate
from cropbroker.services import activity
from cropbroker.services.errors import AccessDeniedError, NotFoundError
from cropbroker.services.invoice_pdf import InvoiceDocument, render_invoice_pdf
from cropbroker.services.whatsapp import WhatsAppNotifier
from cropbroker.utils import money, new_id

logger = logging.getLogger(__name__)

INVOICE_ROUTE = "/broker/invoices"


def _party_block(user: User | None) -> str:
    if user is None:
        return ""
    return " ".join(part for part in (user.address, user.firm_name, user.phone) if part)


async def _broker_order(repos: Repositories, broker: User, order_id: str) -> Order:
    order = await repos.orders.get(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.broker_id != broker.id:
        raise AccessDeniedError("Not authorized to invoice this order")
    return order


def _new_invoice(data: InvoiceCreate, broker: User, order: Order, status: InvoiceStatus) -> Invoice:
    missing = [
        name
        for name in ("bill_from", "ship_from", "ship_to", "bill_to", "order_id")
        if not getattr(data, name).strip()
    ]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")

    return Invoice(
        id=new_id(),
        order_id=order.id,
        supplier_id=order.supplier_id,
        broker_id=broker.id,
        bill_from=data.bill_from,
        ship_from=data.ship_from,
        ship_to=data.ship_to,
        bill_to=data.bill_to,
        items=[item.model_dump(mode="json") for item in data.items],
        total_amount=money(data.total_amount),
        tax_amount=money(data.tax_amount),
        shipping_charges=money(data.shipping_charges),
        final_amount=money(data.final_amount),
        po_number=data.po_number,
        status=status,
    )


async def create_invoice_request(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    settings: Settings,
    broker: User,
    data: InvoiceCreate,
) -> tuple[Invoice, str]:
    """Store a pending invoice and ask the order's supplier for its number.

    Returns:
        Tuple of (invoice, link to the invoice in the web frontend)
    """
    order = await _broker_order(repos, broker, data.order_id)
    invoice = _new_invoice(data, broker, order, InvoiceStatus.PENDING)
    repos.invoices.add(invoice)
    await repos.commit()
    logger.info(
        "Invoice requested",
        extra={"invoice_id": invoice.id, "order_id": order.id},
    )

    supplier = await repos.users.get(order.supplier_id)
    await notifier.send_invoice_request(supplier.phone if supplier else None, invoice)
    return invoice, f"{settings.frontend_url}/invoices/{invoice.id}"


async def create_invoice_draft(
    repos: Repositories,
    settings: Settings,
    broker: User,
    data: InvoiceCreate,
) -> tuple[Invoice, str, str]:
    """Render an invoice PDF, save it and store a draft invoice pointing at it.

    Returns:
        Tuple of (invoice, frontend edit link, public PDF url)
    """
    order = await _broker_order(repos, broker, data.order_id)
    invoice = _new_invoice(data, broker, order, InvoiceStatus.DRAFT)

    pdf = render_invoice_pdf(InvoiceDocument.from_invoice(invoice))
    filename = f"invoice_{int(time.time() * 1000)}.pdf"
    settings.invoice_dir.mkdir(parents=True, exist_ok=True)
    (settings.invoice_dir / filename).write_bytes(pdf)

    invoice.file_path = f"{INVOICE_ROUTE}/{filename}"
    repos.invoices.add(invoice)
    await activity.record(
        repos,
        broker_id=broker.id,
        log_type=LogType.INVOICE_GENERATED,
        message=f"Invoice generated for order {order.id}",
        entity_type=EntityType.INVOICE,
        entity_id=invoice.id,
        actor=broker,
        details={"file_path": invoice.file_path, "final_amount": str(invoice.final_amount)},
    )
    logger.info(
        "Invoice PDF generated",
        extra={"invoice_id": invoice.id, "filename": filename, "size": len(pdf)},
    )

    return (
        invoice,
        f"{settings.frontend_url}/invoices/{invoice.id}/edit",
        f"{settings.public_base_url}{invoice.file_path}",
    )


def resolve_invoice_file(settings: Settings, filename: str) -> Path:
    """Path of a generated invoice PDF, served by bare file name only."""
    if not filename or Path(filename).name != filename or filename in (".", ".."):
        raise NotFoundError("Invoice not found")
    path = settings.invoice_dir / filename
    if not path.is_file():
        raise NotFoundError("Invoice not found")
    return path


async def set_invoice_number(
    repos: Repositories,
    notifier: WhatsAppNotifier,
    supplier: User,
    invoice_id: str,
    invoice_number: str,
) -> Invoice:
    """Record the supplier's own invoice number. It can be set only once."""
    invoice_number = invoice_number.strip()
    if not invoice_number:
        raise ValueError("Invoice number is required")

    invoice = await repos.invoices.get(invoice_id)
    if invoice is None or invoice.supplier_id != supplier.id:
        raise NotFoundError("Invoice not found")
    if invoice.invoice_number:
        raise ValueError("Invoice number already set")
    if await repos.invoices.get_by_number(invoice_number) is not None:
        raise ValueError("Invoice number already in use")

    invoice.invoice_number = invoice_number
    await repos.commit()
    logger.info(
        "Invoice number set",
        extra={"invoice_id": invoice.id, "invoice_number": invoice_number},
    )

    broker = await repos.users.get(invoice.broker_id)
    await notifier.send_invoice_number_update(broker.phone if broker else None, invoice)
    return invoice


@dataclass
class InvoicePrefill:
    """Form defaults for invoicing a trade acceptance."""

    log: Log
    current_supplier: User | None
    order: Order | None
    bill_from: str
    ship_from: str
    items: list[dict]
    total_amount: Decimal
    available_suppliers: list[User]


async def invoice_prefill(repos: Repositories, broker: User, log_id: str) -> InvoicePrefill:
    """Parties and line items for invoicing the trade a log entry refers to.

    The line item comes from the latest order on that trade.
    """
    log = await repos.logs.get(log_id)
    if log is None:
        raise NotFoundError("Log not found")
    if log.broker_id != broker.id:
        raise AccessDeniedError("Not authorized to view this log")

    supplier = await repos.users.get(log.actor_id)
    order = await repos.orders.latest_for_trade(log.entity_id)
    trade = await repos.trades.get(log.entity_id)

    items = []
    if order is not None:
        items.append(
            {
                "crop": trade.crop if trade else "",
                "price": str(order.price_per_unit),
                "quantity": str(order.quantity),
                "total_amount": str(order.total_amount),
            }
        )

    party = _party_block(supplier)
    return InvoicePrefill(
        log=log,
        current_supplier=supplier,
        order=order,
        bill_from=party,
        ship_from=party,
        items=items,
        total_amount=order.total_amount if order else Decimal("0"),
        available_suppliers=await repos.users.list_by_role(UserRole.SUPPLIER),
    )


async def list_invoice_details(repos: Repositories, broker: User) -> list[Invoice]:
    return await repos.invoices.list_for_broker(broker.id)
