"""Pydantic schemas package"""
from .user import UserRead

__all__ = ["UserRead"]
