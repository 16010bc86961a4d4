# subdesk/api/subscriptions/main.py
from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session

from ...core.audit import log_action
from ...core.users import current_active_user
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...services.invoice_service import invoice_to_dict
from ...services.subscription_service import SubscriptionService
from .models import Subscription, SubscriptionIn, SubscriptionWithClients

router = APIRouter()


# --- Dependency Injectors ---
def get_subscription_service(session: Session = Depends(get_sync_session)) -> SubscriptionService:
    return SubscriptionService(session)


# --- Subscription Endpoints ---


@router.post("/subscriptions", status_code=status.HTTP_201_CREATED)
def api_create_subscription(
    payload: SubscriptionIn,
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(current_active_user),
):
    """Create a plan and issue one invoice per assigned client."""
    subscription, invoices = service.create_subscription(payload.model_dump())
    return {
        "subscription": Subscription.model_validate(subscription),
        "invoices": [invoice_to_dict(invoice) for invoice in invoices],
    }


@router.get("/subscriptions", response_model=list[SubscriptionWithClients])
def api_get_all_subscriptions(
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(current_active_user),
):
    return service.get_all_subscriptions()


@router.get("/subscriptions/{subscription_id}", response_model=Subscription)
def api_get_subscription(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(current_active_user),
):
    return service.get_subscription(subscription_id)


@router.put("/subscriptions/{subscription_id}", response_model=Subscription)
def api_update_subscription(
    subscription_id: str,
    payload: SubscriptionIn,
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(current_active_user),
):
    return service.update_subscription(subscription_id, payload.model_dump())


@router.delete("/subscriptions/{subscription_id}")
def api_delete_subscription(
    subscription_id: str,
    request: Request,
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(current_active_user),
):
    subscription = service.delete_subscription(subscription_id)
    log_action("DELETE", "subscription", str(subscription.id), user=current_user, request=request)
    return {"message": "Subscription deleted"}
