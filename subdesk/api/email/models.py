# subdesk/api/email/models.py
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


# --- Reminder templates ---
class ReminderTemplate(BaseModel):
    type: str
    content: str
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ReminderTemplatesUpdate(BaseModel):
    day3: str | None = None
    day7: str | None = None
    day14: str | None = None


# --- Weekly broadcasts ---
class BroadcastAttachment(BaseModel):
    name: str | None = None
    content: str | None = None  # base64
    type: str | None = None


class WeeklyEmailCreate(BaseModel):
    subject: str | None = None
    content: str | None = None
    schedule_day: str | None = None
    schedule_time: str | None = None
    attachment: BroadcastAttachment | None = None
    recipients: str = "selected"  # "all" or "selected"
    selected_clients: list[str] = []


class BroadcastSchedule(BaseModel):
    id: uuid.UUID
    subject: str
    content: str
    attachment_name: str | None = None
    attachment_type: str | None = None
    recipients: str
    client_ids: list[str] = []
    day_of_week: str
    time: str
    is_active: bool
    created_at: datetime
    last_run_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Logs ---
class EmailLog(BaseModel):
    id: int
    recipient: str
    subject: str
    content: str
    attachment: str | None = None
    type: str
    status: str
    error: str | None = None
    invoice_id: uuid.UUID | None = None
    invoice_number: str | None = None
    sent_at: datetime
