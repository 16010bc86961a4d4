# subdesk/api/invoices/models.py
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class CompanyProfile(BaseModel):
    name: str | None = None
    logo: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None


class InvoiceIn(BaseModel):
    """Create/full-edit payload. Required fields are enforced by the service."""

    client_id: str | None = None
    subscription_id: str | None = None
    duration_months: float | None = None
    price_per_month: float | None = None
    currency: str | None = None
    invoice_date: str | None = None
    due_date: str | None = None
    status: str | None = None
    company: CompanyProfile | None = None
    notes: str | None = None


class InvoiceStatusUpdate(BaseModel):
    status: str


class Invoice(BaseModel):
    id: uuid.UUID
    invoice_number: str
    client_id: uuid.UUID
    subscription_id: uuid.UUID
    duration_months: float
    price_per_month: float
    total: float
    currency: str
    invoice_date: datetime
    due_date: datetime
    status: str
    company: dict
    notes: str = ""
    created_by: str
    reminders_sent: list[str] = []
    paid_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class InvoiceDetail(Invoice):
    client: dict | None = None
    subscription: dict | None = None
