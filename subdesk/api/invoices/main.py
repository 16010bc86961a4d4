# subdesk/api/invoices/main.py
from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session

from ...core.audit import log_action
from ...core.users import current_active_user
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...services.invoice_service import InvoiceService
from .models import Invoice, InvoiceDetail, InvoiceIn, InvoiceStatusUpdate

router = APIRouter()


# --- Dependency Injectors ---
def get_invoice_service(session: Session = Depends(get_sync_session)) -> InvoiceService:
    return InvoiceService(session)


def _payload(invoice_in: InvoiceIn) -> dict:
    data = invoice_in.model_dump()
    if invoice_in.company is not None:
        data["company"] = invoice_in.company.model_dump()
    return data


# --- Invoice Endpoints ---


@router.post("/invoices", response_model=Invoice, status_code=status.HTTP_201_CREATED)
def api_create_invoice(
    invoice_in: InvoiceIn,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: User = Depends(current_active_user),
):
    return service.create_invoice(_payload(invoice_in))


@router.get("/invoices", response_model=list[InvoiceDetail])
def api_get_all_invoices(
    service: InvoiceService = Depends(get_invoice_service),
    current_user: User = Depends(current_active_user),
):
    return service.list_invoices()


@router.get("/invoices/{invoice_id}", response_model=InvoiceDetail)
def api_get_invoice(
    invoice_id: str,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: User = Depends(current_active_user),
):
    return service.get_invoice_detail(invoice_id)


@router.put("/invoices/{invoice_id}", response_model=Invoice)
def api_update_invoice(
    invoice_id: str,
    invoice_in: InvoiceIn,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: User = Depends(current_active_user),
):
    return service.update_invoice(invoice_id, _payload(invoice_in))


@router.patch("/invoices/{invoice_id}/status", response_model=Invoice)
def api_update_invoice_status(
    invoice_id: str,
    status_update: InvoiceStatusUpdate,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: User = Depends(current_active_user),
):
    return service.update_status(invoice_id, status_update.status)


@router.delete("/invoices/{invoice_id}")
def api_delete_invoice(
    invoice_id: str,
    request: Request,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: User = Depends(current_active_user),
):
    invoice = service.delete_invoice(invoice_id)
    log_action(
        "DELETE",
        "invoice",
        str(invoice.id),
        user=current_user,
        request=request,
        details={"invoice_number": invoice.invoice_number},
    )
    return {"message": "Invoice deleted"}
