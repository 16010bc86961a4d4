"""
Invoice and per-year invoice number sequence models.
"""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from ..core.clock import utcnow

INVOICE_STATUSES = ("Paid", "Unpaid", "Overdue")


class Invoice(SQLModel, table=True):
    """
    Billing record for one subscription/client pairing.

    Fields:
    - invoice_number: human identifier, ``INV-<year>-<NNN>``, unique
    - duration_months: fractional months billed (weekly = 0.25)
    - price_per_month: snapshot of the subscription price at creation
    - status: Paid / Unpaid / Overdue, only changed by explicit edits
    - company: snapshot of the issuing company profile
    - reminders_sent: reminder thresholds already delivered (day3, day7, day14)
    - paid_at: when the invoice was marked Paid
    """

    __tablename__ = "invoices"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    invoice_number: str = Field(nullable=False, unique=True, index=True)
    client_id: uuid.UUID = Field(nullable=False, index=True)
    subscription_id: uuid.UUID = Field(nullable=False, index=True)
    duration_months: float = Field(nullable=False, gt=0)
    price_per_month: float = Field(nullable=False, ge=0)
    currency: str = Field(default="USD")
    invoice_date: datetime = Field(nullable=False)
    due_date: datetime = Field(nullable=False)
    status: str = Field(default="Unpaid", nullable=False, index=True)
    company: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    notes: str = Field(default="")
    created_by: str = Field(default="System")
    reminders_sent: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    paid_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def total(self) -> float:
        return self.duration_months * self.price_per_month


class InvoiceSequence(SQLModel, table=True):
    """Last issued invoice sequence number per calendar year."""

    __tablename__ = "invoice_sequences"

    year: int = Field(primary_key=True)
    last_value: int = Field(default=0, nullable=False)
