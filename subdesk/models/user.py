"""
User model for FastAPI Users with SQLModel.
"""

import uuid as uuid_pkg

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """
    Back-office user able to sign in to the dashboard.

    Only the fields FastAPI Users requires:
    - id: UUID (primary key)
    - email: str (unique, indexed, used as login)
    - hashed_password: str
    - is_active / is_superuser / is_verified: bool flags
    """

    __tablename__ = "users"

    id: uuid_pkg.UUID = Field(default_factory=uuid_pkg.uuid4, primary_key=True, nullable=False)
    email: str = Field(unique=True, index=True, nullable=False, max_length=320)
    hashed_password: str = Field(nullable=False, max_length=1024)
    is_active: bool = Field(default=True, nullable=False)
    is_superuser: bool = Field(default=False, nullable=False)
    is_verified: bool = Field(default=False, nullable=False)
