# subdesk/api/clients/models.py
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Client(BaseModel):
    id: uuid.UUID
    name: str
    phone: str
    email: str
    address: str = ""
    company: str = ""
    notes: str = ""
    tags: list[str] = []
    image: str = ""
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)

