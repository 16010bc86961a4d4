# subdesk/services/invoice_service.py
"""
Invoice service: invoice generation for subscriptions, invoice numbering and
invoice CRUD, using SQLModel ORM.
"""
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from ..core.clock import utcnow
from ..core.config import get_settings
from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..models.client import Client
from ..models.invoice import INVOICE_STATUSES, Invoice, InvoiceSequence
from ..models.subscription import Subscription

logger = logging.getLogger(__name__)

DUE_DAYS = 30

DURATION_MONTHS = {
    "weekly": 1 / 4,
    "monthly": 1,
    "yearly": 12,
}

REQUIRED_FIELDS = (
    "client_id",
    "subscription_id",
    "duration_months",
    "price_per_month",
    "invoice_date",
    "due_date",
)


def duration_to_months(duration: Optional[str]) -> float:
    """Billing months for a subscription duration. Unknown values bill one month."""
    return DURATION_MONTHS.get(duration, 1)


def format_invoice_number(year: int, sequence: int) -> str:
    return f"INV-{year}-{sequence:03d}"


def parse_uuid(value: Any, label: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError):
        raise NotFoundError(f"{label} not found")


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")


class InvoiceService:
    """
    Service layer for Invoice operations.
    """

    def __init__(self, session: Session, mail_queue=None):
        """
        Args:
            session: SQLModel Session instance
            mail_queue: queue receiving invoice email tasks; defaults to the
                application-wide queue
        """
        self.session = session
        if mail_queue is None:
            from .mail_queue import mail_queue as default_queue

            mail_queue = default_queue
        self.mail_queue = mail_queue
        self.settings = get_settings()

    # --- Numbering ---
    def next_invoice_number(self, now: Optional[datetime] = None) -> str:
        """
        Reserve the next invoice number for the year of ``now``.

        The per-year counter is incremented with a single UPDATE so concurrent
        callers never read the same value. A year's counter starts from the
        number of invoices already carrying that year's prefix.
        """
        year = (now or datetime.now()).year
        for _ in range(2):
            result = self.session.execute(
                update(InvoiceSequence)
                .where(InvoiceSequence.year == year)
                .values(last_value=InvoiceSequence.last_value + 1)
            )
            if result.rowcount == 0:
                existing = self._count_invoices_for_year(year)
                self.session.add(InvoiceSequence(year=year, last_value=existing + 1))
                try:
                    self.session.flush()
                except IntegrityError:
                    # Another writer created the row first; increment theirs.
                    self.session.rollback()
                    continue
            value = self.session.exec(
                select(InvoiceSequence.last_value).where(InvoiceSequence.year == year)
            ).one()
            return format_invoice_number(year, value)
        raise ConflictError(f"Could not reserve an invoice number for {year}")

    def _count_invoices_for_year(self, year: int) -> int:
        statement = (
            select(func.count())
            .select_from(Invoice)
            .where(col(Invoice.invoice_number).startswith(f"INV-{year}-"))
        )
        return self.session.exec(statement).one()

    # --- Generation ---
    def create_for_subscription(
        self,
        subscription: Subscription,
        client_id: Any,
        now: Optional[datetime] = None,
    ) -> Invoice:
        """
        Create the invoice billing ``client_id`` for ``subscription`` and hand
        the invoice email to the mail queue.
        """
        cid = parse_uuid(client_id, "Client")
        client = self.session.get(Client, cid)
        if not client:
            raise NotFoundError("Client not found")
        sub = self.session.get(Subscription, subscription.id)
        if not sub:
            raise NotFoundError("Subscription not found")

        invoice_date = now or datetime.now()
        invoice = Invoice(
            invoice_number=self.next_invoice_number(invoice_date),
            client_id=client.id,
            subscription_id=sub.id,
            duration_months=duration_to_months(sub.duration),
            price_per_month=sub.price,
            currency=self.settings.default_currency,
            invoice_date=invoice_date,
            due_date=invoice_date + timedelta(days=DUE_DAYS),
            status="Unpaid",
            company=self.settings.company_profile(),
            notes=f"Thank you for your subscription to {sub.name}.",
            created_by="System",
        )
        self._save(invoice)
        logger.info(f"Invoice {invoice.invoice_number} created for client {client.email}")

        self.mail_queue.enqueue_invoice_email(invoice.id)
        return invoice

    def create_invoice(self, data: Dict[str, Any]) -> Invoice:
        """Create an invoice from explicit user input."""
        self._require_fields(data)
        client = self.session.get(Client, parse_uuid(data["client_id"], "Client"))
        if not client:
            raise NotFoundError("Client not found")
        sub = self.session.get(Subscription, parse_uuid(data["subscription_id"], "Subscription"))
        if not sub:
            raise NotFoundError("Subscription not found")

        invoice = Invoice(
            invoice_number=self.next_invoice_number(),
            client_id=client.id,
            subscription_id=sub.id,
            **self._editable_fields(data),
            created_by="System",
        )
        self._save(invoice)
        logger.info(f"Invoice {invoice.invoice_number} created manually for {client.email}")

        self.mail_queue.enqueue_invoice_email(invoice.id)
        return invoice

    # --- Queries ---
    def list_invoices(self) -> List[Dict[str, Any]]:
        invoices = self.session.exec(
            select(Invoice).order_by(col(Invoice.created_at).desc())
        ).all()
        clients = self._lookup(Client, {i.client_id for i in invoices})
        subscriptions = self._lookup(Subscription, {i.subscription_id for i in invoices})
        return [
            invoice_to_dict(i, clients.get(i.client_id), subscriptions.get(i.subscription_id))
            for i in invoices
        ]

    def get_invoice(self, invoice_id: Any) -> Invoice:
        invoice = self.session.get(Invoice, parse_uuid(invoice_id, "Invoice"))
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    def get_invoice_detail(self, invoice_id: Any) -> Dict[str, Any]:
        invoice = self.get_invoice(invoice_id)
        return invoice_to_dict(
            invoice,
            self.session.get(Client, invoice.client_id),
            self.session.get(Subscription, invoice.subscription_id),
        )

    # --- Mutations ---
    def update_invoice(self, invoice_id: Any, data: Dict[str, Any]) -> Invoice:
        """Full edit. Same required fields as creation."""
        self._require_fields(data)
        invoice = self.get_invoice(invoice_id)

        invoice.client_id = parse_uuid(data["client_id"], "Client")
        invoice.subscription_id = parse_uuid(data["subscription_id"], "Subscription")
        previous_status = invoice.status
        for key, value in self._editable_fields(data).items():
            setattr(invoice, key, value)
        self._track_payment(invoice, previous_status)
        invoice.updated_at = utcnow()
        self._save(invoice)
        return invoice

    def update_status(self, invoice_id: Any, status: str) -> Invoice:
        if status not in INVOICE_STATUSES:
            raise ValidationError(f"Invalid status '{status}'. Use one of: {', '.join(INVOICE_STATUSES)}")
        invoice = self.get_invoice(invoice_id)
        previous_status = invoice.status
        invoice.status = status
        self._track_payment(invoice, previous_status)
        invoice.updated_at = utcnow()
        self._save(invoice)
        logger.info(f"Invoice {invoice.invoice_number}: {previous_status} -> {status}")
        return invoice

    def delete_invoice(self, invoice_id: Any) -> Invoice:
        invoice = self.get_invoice(invoice_id)
        self.session.delete(invoice)
        self.session.commit()
        return invoice

    def delete_by_number(self, invoice_number: str) -> Invoice:
        if not invoice_number:
            raise ValidationError("invoiceId required")
        invoice = self.session.exec(
            select(Invoice).where(Invoice.invoice_number == invoice_number)
        ).first()
        if not invoice:
            raise NotFoundError("Invoice not found")
        self.session.delete(invoice)
        self.session.commit()
        return invoice

    # --- Helpers ---
    def _require_fields(self, data: Dict[str, Any]) -> None:
        if any(not data.get(field) for field in REQUIRED_FIELDS):
            raise ValidationError("Required fields are missing")

    def _editable_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        duration_months = float(data["duration_months"])
        price_per_month = float(data["price_per_month"])
        if duration_months <= 0:
            raise ValidationError("duration_months must be greater than 0")
        if price_per_month < 0:
            raise ValidationError("price_per_month must not be negative")
        status = data.get("status") or "Unpaid"
        if status not in INVOICE_STATUSES:
            raise ValidationError(f"Invalid status '{status}'")

        defaults = self.settings.company_profile()
        company = data.get("company") or {}
        return {
            "duration_months": duration_months,
            "price_per_month": price_per_month,
            "currency": data.get("currency") or self.settings.default_currency,
            "invoice_date": _to_datetime(data["invoice_date"]),
            "due_date": _to_datetime(data["due_date"]),
            "status": status,
            "company": {key: company.get(key) or value for key, value in defaults.items()},
            "notes": data.get("notes") or "",
        }

    @staticmethod
    def _track_payment(invoice: Invoice, previous_status: str) -> None:
        if invoice.status == "Paid" and previous_status != "Paid":
            invoice.paid_at = utcnow()
        elif invoice.status != "Paid":
            invoice.paid_at = None

    def _save(self, invoice: Invoice) -> None:
        try:
            self.session.add(invoice)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError(f"Invoice {invoice.invoice_number} already exists")
        self.session.refresh(invoice)

    def _lookup(self, model, ids) -> Dict[uuid.UUID, Any]:
        if not ids:
            return {}
        rows = self.session.exec(select(model).where(col(model.id).in_(ids))).all()
        return {row.id: row for row in rows}


def invoice_to_dict(
    invoice: Invoice,
    client: Optional[Client] = None,
    subscription: Optional[Subscription] = None,
) -> Dict[str, Any]:
    data = invoice.model_dump()
    data["total"] = invoice.total
    data["client"] = (
        {"id": client.id, "name": client.name, "email": client.email} if client else None
    )
    data["subscription"] = (
        {
            "id": subscription.id,
            "name": subscription.name,
            "price": subscription.price,
            "duration": subscription.duration,
        }
        if subscription
        else None
    )
    return data
