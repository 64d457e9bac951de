"""Invoice PDF rendering.

``render_invoice_pdf`` is pure: it turns an ``InvoiceDocument`` into PDF
bytes and never touches the filesystem or the database. The standard PDF
fonts have no rupee glyph, so amounts are printed with "Rs.".
"""

from dataclasses import dataclass
from decimal import Decimal
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from cropbroker.utils import money


@dataclass(frozen=True)
class InvoiceLine:
    crop: str
    price: Decimal
    quantity: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class InvoiceDocument:
    """Everything printed on an invoice."""

    bill_from: str
    ship_from: str
    ship_to: str
    bill_to: str
    items: tuple[InvoiceLine, ...]
    total_amount: Decimal
    tax_amount: Decimal
    shipping_charges: Decimal
    final_amount: Decimal
    invoice_number: str | None = None
    po_number: str | None = None

    @classmethod
    def from_invoice(cls, invoice) -> "InvoiceDocument":
        """Build a document from a stored ``Invoice``."""
        return cls(
            bill_from=invoice.bill_from,
            ship_from=invoice.ship_from,
            ship_to=invoice.ship_to,
            bill_to=invoice.bill_to,
            items=tuple(
                InvoiceLine(
                    crop=str(item.get("crop", "")),
                    price=Decimal(str(item.get("price", 0))),
                    quantity=Decimal(str(item.get("quantity", 0))),
                    total_amount=Decimal(str(item.get("total_amount", 0))),
                )
                for item in invoice.items or []
            ),
            total_amount=invoice.total_amount,
            tax_amount=invoice.tax_amount,
            shipping_charges=invoice.shipping_charges,
            final_amount=invoice.final_amount,
            invoice_number=invoice.invoice_number,
            po_number=invoice.po_number,
        )


def _rupees(amount: Decimal) -> str:
    return f"Rs. {money(amount):,}"


def render_invoice_pdf(document: InvoiceDocument) -> bytes:
    """Render ``document`` as a single-column A4 invoice."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    margin = 1 * inch
    y = height - margin

    def next_line(step: float = 14) -> None:
        nonlocal y
        y -= step
        if y < margin:
            c.showPage()
            y = height - margin
            c.setFont("Helvetica", 10)

    c.setFont("Helvetica-Bold", 20)
    c.drawCentredString(width / 2, y, "INVOICE")
    next_line(24)

    c.setFont("Helvetica", 10)
    if document.invoice_number:
        c.drawString(margin, y, f"Invoice Number: {document.invoice_number}")
        next_line()
    if document.po_number:
        c.drawString(margin, y, f"PO Number: {document.po_number}")
        next_line()

    for title, block in (
        ("Bill From", document.bill_from),
        ("Ship From", document.ship_from),
        ("Ship To", document.ship_to),
        ("Bill To", document.bill_to),
    ):
        next_line(6)
        c.setFont("Helvetica-Bold", 12)
        c.drawString(margin, y, f"{title}:")
        next_line()
        c.setFont("Helvetica", 10)
        for line in (block or "").splitlines() or [""]:
            c.drawString(margin, y, line)
            next_line(12)

    next_line(6)
    c.setFont("Helvetica-Bold", 12)
    c.drawString(margin, y, "Items:")
    next_line(18)

    columns = (margin, margin + 2 * inch, margin + 3.4 * inch, margin + 4.6 * inch)
    c.setFont("Helvetica-Bold", 10)
    for x, header in zip(columns, ("Crop", "Price", "Quantity", "Total")):
        c.drawString(x, y, header)
    next_line()

    c.setFont("Helvetica", 10)
    for item in document.items:
        cells = (
            item.crop,
            _rupees(item.price),
            f"{item.quantity}",
            _rupees(item.total_amount),
        )
        for x, cell in zip(columns, cells):
            c.drawString(x, y, cell)
        next_line()

    next_line(10)
    c.setFont("Helvetica-Bold", 12)
    c.drawString(margin, y, "Summary:")
    next_line(18)
    c.setFont("Helvetica", 10)
    c.drawString(margin, y, f"Total Amount: {_rupees(document.total_amount)}")
    next_line()
    c.drawString(margin, y, f"Tax Amount: {_rupees(document.tax_amount)}")
    next_line()
    c.drawString(margin, y, f"Shipping Charges: {_rupees(document.shipping_charges)}")
    next_line(18)
    c.setFont("Helvetica-Bold", 12)
    c.drawString(margin, y, f"Final Amount: {_rupees(document.final_amount)}")

    c.showPage()
    c.save()
    return buf.getvalue()
