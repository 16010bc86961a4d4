"""
Client model for customer records.
"""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from ..core.clock import utcnow


class Client(SQLModel, table=True):
    """
    Client model representing a billed customer.

    Fields:
    - id: UUID primary key
    - name, phone: required contact data
    - email: unique, stored trimmed and lowercase
    - address, company, notes: free profile text
    - tags: list of labels
    - image: relative URL of the uploaded picture ("" when none)
    """

    __tablename__ = "clients"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(nullable=False)
    phone: str = Field(nullable=False)
    email: str = Field(nullable=False, unique=True, index=True)
    address: str = Field(default="")
    company: str = Field(default="")
    notes: str = Field(default="")
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    image: str = Field(default="")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
