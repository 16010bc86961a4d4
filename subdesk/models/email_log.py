"""
Append-only audit trail of every email send attempt.
"""
import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from ..core.clock import utcnow

EMAIL_TYPES = ("reminder", "weekly", "invoice")


class EmailLog(SQLModel, table=True):
    __tablename__ = "email_logs"

    id: int | None = Field(default=None, primary_key=True)
    recipient: str = Field(nullable=False)
    subject: str = Field(nullable=False)
    content: str = Field(nullable=False)
    attachment: str | None = Field(default=None)  # filename only
    type: str = Field(nullable=False, index=True)
    status: str = Field(default="sent", nullable=False)  # "sent" | "failed"
    error: str | None = Field(default=None)
    invoice_id: uuid.UUID | None = Field(default=None, index=True)
    sent_at: datetime = Field(default_factory=utcnow, index=True)
