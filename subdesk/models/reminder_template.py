from datetime import datetime

from sqlmodel import Field, SQLModel

from ..core.clock import utcnow

REMINDER_TYPES = ("day3", "day7", "day14")


class ReminderTemplate(SQLModel, table=True):
    __tablename__ = "reminder_templates"

    type: str = Field(primary_key=True)
    content: str = Field(nullable=False)
    updated_at: datetime = Field(default_factory=utcnow)
