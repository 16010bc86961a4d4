"""
Durable weekly broadcast schedules, re-registered with the scheduler on startup.
"""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, SQLModel

from ..core.clock import utcnow


class BroadcastSchedule(SQLModel, table=True):
    __tablename__ = "broadcast_schedules"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    subject: str = Field(nullable=False)
    content: str = Field(sa_column=Column(Text, nullable=False))
    attachment_name: str | None = Field(default=None)
    attachment_type: str | None = Field(default=None)
    attachment_content: str | None = Field(default=None, sa_column=Column(Text))  # base64
    # "all" or "selected"; recipients are resolved once, at registration
    recipients: str = Field(default="selected")
    client_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    day_of_week: str = Field(nullable=False)  # "Sunday" ... "Saturday"
    time: str = Field(nullable=False)  # "HH:MM"
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    last_run_at: datetime | None = Field(default=None)
