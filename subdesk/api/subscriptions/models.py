# subdesk/api/subscriptions/models.py
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SubscriptionIn(BaseModel):
    """Create/edit payload. Required fields are enforced by the service."""

    name: str | None = None
    price: float | None = None
    duration: str | None = None
    description: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    # list of client ids, or a comma-separated string
    clients: list[str] | str | None = None


class ClientRef(BaseModel):
    id: uuid.UUID
    name: str
    email: str


class Subscription(BaseModel):
    id: uuid.UUID
    name: str
    price: float
    duration: str
    description: str = ""
    start_date: datetime
    end_date: datetime | None = None
    client_ids: list[str] = []
    created_by: str
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SubscriptionWithClients(Subscription):
    clients: list[ClientRef] = []
