# subdesk/services/invoice_pdf.py
"""
Single-page invoice PDF (fpdf2).

The layout is a fixed visual template: every element is drawn at absolute
coordinates (mm, A4 portrait), only the text changes.
"""
from datetime import datetime

from fpdf import FPDF

from ..models.client import Client
from ..models.invoice import Invoice
from ..models.subscription import Subscription


def format_date(value: datetime) -> str:
    """US short date, e.g. 1/31/2024."""
    return f"{value.month}/{value.day}/{value.year}"


def format_money(amount: float, currency: str = "USD") -> str:
    if currency == "USD":
        return f"${amount:.2f}"
    return f"{currency} {amount:.2f}"


def format_months(duration_months: float) -> str:
    return f"{duration_months:g} months"


def _latin1(text) -> str:
    # Core PDF fonts only cover latin-1
    return str(text or "").encode("latin-1", "replace").decode("latin-1")


def invoice_filename(invoice: Invoice) -> str:
    return f"Invoice_{invoice.invoice_number}.pdf"


def render_invoice_pdf(invoice: Invoice, client: Client, subscription: Subscription) -> bytes:
    company = invoice.company or {}
    total = invoice.total
    currency = invoice.currency or "USD"

    pdf = FPDF(unit="mm", format="A4")
    pdf.set_auto_page_break(auto=False)
    pdf.add_page()

    # --- Company header ---
    pdf.set_font("Helvetica", size=20)
    pdf.text(20, 20, _latin1(company.get("name") or "MyCompany Inc."))
    pdf.set_font("Helvetica", size=10)
    pdf.text(20, 30, _latin1(company.get("email") or "contact@mycompany.com"))
    pdf.text(20, 35, _latin1(company.get("phone") or "+1 (555) 123-4567"))
    pdf.text(20, 40, _latin1(company.get("address") or "123 Market Street, San Francisco, CA"))

    # --- Invoice header ---
    pdf.set_font("Helvetica", size=16)
    pdf.text(140, 20, _latin1(f"Invoice #{invoice.invoice_number}"))
    pdf.set_font("Helvetica", size=10)
    pdf.text(140, 30, _latin1(f"Status: {invoice.status}"))

    # --- Bill To ---
    pdf.text(20, 60, "Bill To:")
    pdf.text(20, 70, _latin1(client.name))
    pdf.text(20, 75, _latin1(client.email))

    # --- Dates ---
    pdf.text(140, 60, f"Invoice Date: {format_date(invoice.invoice_date)}")
    pdf.text(140, 65, f"Due Date: {format_date(invoice.due_date)}")

    # --- Line item table ---
    pdf.set_fill_color(240, 240, 240)
    pdf.rect(20, 90, 170, 10, style="F")
    pdf.set_font("Helvetica", size=12)
    pdf.text(22, 97, "Subscription")
    pdf.text(80, 97, "Duration")
    pdf.text(120, 97, "Price/Month")
    pdf.text(160, 97, "Total")

    pdf.text(22, 110, _latin1(subscription.name))
    pdf.text(80, 110, format_months(invoice.duration_months))
    pdf.text(120, 110, _latin1(format_money(invoice.price_per_month, currency)))
    pdf.text(160, 110, _latin1(format_money(total, currency)))

    # --- Summary ---
    pdf.text(140, 130, "Subtotal:")
    pdf.text(160, 130, _latin1(format_money(total, currency)))
    pdf.text(140, 135, "Tax (0%):")
    pdf.text(160, 135, _latin1(format_money(0, currency)))
    pdf.set_font("Helvetica", size=14)
    pdf.text(140, 145, "Amount Due:")
    pdf.text(160, 145, _latin1(format_money(total, currency)))

    if invoice.notes:
        pdf.set_font("Helvetica", size=10)
        pdf.text(20, 160, "Notes:")
        pdf.set_xy(20, 166)
        pdf.multi_cell(170, 5, _latin1(invoice.notes))

    return bytes(pdf.output())
