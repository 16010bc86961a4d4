# subdesk/schemas/user.py
"""
Pydantic schema for FastAPI Users.
Controls which user fields are sent back by the API.
"""
import uuid

from fastapi_users import schemas


class UserRead(schemas.BaseUser[uuid.UUID]):
    pass
