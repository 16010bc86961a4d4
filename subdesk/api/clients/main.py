# subdesk/api/clients/main.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlmodel import Session

from ...core.audit import log_action
from ...core.errors import SubdeskError
from ...core.users import current_active_user
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...services.client_service import ClientService
from .models import Client

router = APIRouter()


# --- Dependency Injectors ---
def get_client_service(session: Session = Depends(get_sync_session)) -> ClientService:
    return ClientService(session)


# --- Client Endpoints ---


@router.get("/clients", response_model=list[Client])
def api_get_all_clients(
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(current_active_user),
):
    return service.get_all_clients()


@router.get("/clients/{client_id}", response_model=Client)
def api_get_client(
    client_id: str,
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(current_active_user),
):
    return service.get_client(client_id)


@router.post("/clients", response_model=Client, status_code=status.HTTP_201_CREATED)
async def api_create_client(
    name: str = Form(""),
    phone: str = Form(""),
    email: str = Form(""),
    address: str = Form(""),
    company: str = Form(""),
    notes: str = Form(""),
    tags: str = Form(""),
    image: Optional[UploadFile] = File(None),
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(current_active_user),
):
    data = {
        "name": name,
        "phone": phone,
        "email": email,
        "address": address,
        "company": company,
        "notes": notes,
        "tags": tags,
    }
    if image is not None and image.filename:
        data["image"] = await service.save_image(image)
    try:
        return service.create_client(data)
    except SubdeskError:
        if data.get("image"):
            service.remove_image(data["image"])
        raise


@router.put("/clients/{client_id}", response_model=Client)
async def api_update_client(
    client_id: str,
    name: str = Form(""),
    phone: str = Form(""),
    email: str = Form(""),
    address: str = Form(""),
    company: str = Form(""),
    notes: str = Form(""),
    tags: str = Form(""),
    image: Optional[UploadFile] = File(None),
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(current_active_user),
):
    # Existence check first so a bad id never leaves an orphaned upload
    service.get_client(client_id)
    data = {
        "name": name,
        "phone": phone,
        "email": email,
        "address": address,
        "company": company,
        "notes": notes,
        "tags": tags,
    }
    if image is not None and image.filename:
        data["image"] = await service.save_image(image)
    try:
        return service.update_client(client_id, data)
    except SubdeskError:
        if data.get("image"):
            service.remove_image(data["image"])
        raise


@router.delete("/clients/{client_id}")
def api_delete_client(
    client_id: str,
    request: Request,
    service: ClientService = Depends(get_client_service),
    current_user: User = Depends(current_active_user),
):
    client = service.delete_client(client_id)
    log_action("DELETE", "client", str(client.id), user=current_user, request=request)
    return {"message": "Client deleted"}
