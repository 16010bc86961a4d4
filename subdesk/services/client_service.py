# subdesk/services/client_service.py
"""
Client service layer using SQLModel ORM.
"""
import logging
import os
import uuid
from typing import Any, Dict, List

import aiofiles
from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..core.clock import utcnow
from ..core.config import get_settings
from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..models.client import Client
from .invoice_service import parse_uuid

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png"}
MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5 MB

PROFILE_FIELDS = ("name", "phone", "email", "address", "company", "notes", "tags", "image")


def parse_tags(tags: Any) -> List[str]:
    """Accepts "a, b" or ["a", "b"]; blanks are dropped."""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [str(t).strip() for t in tags if str(t).strip()]


class ClientService:
    """
    Service layer for Client operations.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_all_clients(self) -> List[Client]:
        return self.session.exec(select(Client).order_by(Client.name)).all()

    def get_client(self, client_id: Any) -> Client:
        client = self.session.get(Client, parse_uuid(client_id, "Client"))
        if not client:
            raise NotFoundError("Client not found")
        return client

    def create_client(self, data: Dict[str, Any]) -> Client:
        name = (data.get("name") or "").strip()
        phone = (data.get("phone") or "").strip()
        email = (data.get("email") or "").strip().lower()
        if not name or not phone or not email:
            raise ValidationError("Name, phone, and email are required")
        self._ensure_email_free(email)

        client = Client(
            name=name,
            phone=phone,
            email=email,
            address=data.get("address") or "",
            company=data.get("company") or "",
            notes=data.get("notes") or "",
            tags=parse_tags(data.get("tags")),
            image=data.get("image") or "",
        )
        self._save(client)
        logger.info(f"Client created: {client.email}")
        return client

    def update_client(self, client_id: Any, data: Dict[str, Any]) -> Client:
        """Partial update: empty or missing fields keep their current value."""
        client = self.get_client(client_id)

        updates = {k: v for k, v in data.items() if k in PROFILE_FIELDS and v}
        if "email" in updates:
            updates["email"] = updates["email"].strip().lower()
            if updates["email"] != client.email:
                self._ensure_email_free(updates["email"])
        if "tags" in updates:
            updates["tags"] = parse_tags(updates["tags"])
        if "image" in updates and client.image and client.image != updates["image"]:
            self.remove_image(client.image)

        for key, value in updates.items():
            setattr(client, key, value)
        client.updated_at = utcnow()
        self._save(client)
        return client

    def delete_client(self, client_id: Any) -> Client:
        client = self.get_client(client_id)
        if client.image:
            self.remove_image(client.image)
        self.session.delete(client)
        self.session.commit()
        return client

    async def save_image(self, file: UploadFile) -> str:
        """
        Store an uploaded JPEG/PNG (<= 5 MB) and return its public URL.
        """
        ext = os.path.splitext(file.filename or "")[1].lower()
        if ext not in ALLOWED_IMAGE_EXTENSIONS or file.content_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationError("Only JPEG/PNG images are allowed")

        content = await file.read()
        if len(content) > MAX_IMAGE_SIZE:
            raise ValidationError(f"Image too large. Max: {MAX_IMAGE_SIZE // (1024 * 1024)}MB")

        upload_dir = get_settings().upload_dir
        os.makedirs(upload_dir, exist_ok=True)
        saved_filename = f"{uuid.uuid4().hex}{ext}"
        async with aiofiles.open(os.path.join(upload_dir, saved_filename), "wb") as out_file:
            await out_file.write(content)
        return f"/uploads/{saved_filename}"

    # --- Helpers ---
    def _ensure_email_free(self, email: str) -> None:
        existing = self.session.exec(select(Client).where(Client.email == email)).first()
        if existing:
            raise ConflictError("Email already exists")

    def _save(self, client: Client) -> None:
        try:
            self.session.add(client)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError("Email already exists")
        self.session.refresh(client)

    @staticmethod
    def remove_image(image_url: str) -> None:
        path = os.path.join(get_settings().upload_dir, os.path.basename(image_url))
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError as e:
                logger.warning(f"Could not remove client image {path}: {e}")
