# subdesk/api/dashboard/main.py
from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from ...core.audit import log_action
from ...core.users import current_active_user
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...services.dashboard_service import DashboardService
from ...services.invoice_service import InvoiceService
from .models import DashboardData

router = APIRouter(prefix="/dashboard")


# --- Dependency Injectors ---
def get_dashboard_service(session: Session = Depends(get_sync_session)) -> DashboardService:
    return DashboardService(session)


def get_invoice_service(session: Session = Depends(get_sync_session)) -> InvoiceService:
    return InvoiceService(session)


@router.get("/data", response_model=DashboardData)
def api_get_dashboard_data(
    service: DashboardService = Depends(get_dashboard_service),
    current_user: User = Depends(current_active_user),
):
    return service.get_dashboard_data()


@router.put("/invoices/{invoice_number}/remove")
def api_remove_invoice(
    invoice_number: str,
    request: Request,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: User = Depends(current_active_user),
):
    invoice = service.delete_by_number(invoice_number)
    log_action(
        "DELETE",
        "invoice",
        str(invoice.id),
        user=current_user,
        request=request,
        details={"invoice_number": invoice.invoice_number},
    )
    return {"message": "Invoice deleted"}
