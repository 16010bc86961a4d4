"""
Subscription plan model.
"""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from ..core.clock import utcnow

DURATIONS = ("weekly", "monthly", "yearly")


class Subscription(SQLModel, table=True):
    __tablename__ = "subscriptions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(nullable=False)
    price: float = Field(nullable=False, ge=0)
    # "weekly", "monthly" or "yearly"
    duration: str = Field(default="monthly", nullable=False)
    description: str = Field(default="")
    start_date: datetime = Field(nullable=False)
    end_date: datetime | None = Field(default=None)  # None = indefinite
    # Ordered set of client ids (stored as strings). Not enforced as foreign keys:
    # a deleted client leaves a dangling reference.
    client_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_by: str = Field(default="System")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
