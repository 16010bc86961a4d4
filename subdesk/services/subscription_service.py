# subdesk/services/subscription_service.py
"""
Subscription service: plan CRUD and invoice fan-out on creation.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session, col, select

from ..core.clock import utcnow
from ..core.errors import NotFoundError, ValidationError
from ..models.client import Client
from ..models.invoice import Invoice
from ..models.subscription import DURATIONS, Subscription
from .invoice_service import InvoiceService, _to_datetime, parse_uuid

logger = logging.getLogger(__name__)


def coerce_client_ids(value: Any) -> List[str]:
    """
    Normalise a client list given as a list or a comma-separated string into
    an ordered, duplicate-free list of ids.
    """
    if not value:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [v for v in value if v]
    seen = []
    for item in items:
        item = str(item).strip()
        try:
            item = str(uuid.UUID(item))
        except ValueError:
            pass
        if item and item not in seen:
            seen.append(item)
    return seen


class SubscriptionService:
    def __init__(self, session: Session, invoice_service: Optional[InvoiceService] = None):
        self.session = session
        self.invoice_service = invoice_service or InvoiceService(session)

    def create_subscription(
        self, data: Dict[str, Any], now: Optional[datetime] = None
    ) -> Tuple[Subscription, List[Invoice]]:
        """
        Create a subscription and bill every assigned client once.

        A failure while invoicing one client is logged and does not stop the
        invoices of the remaining clients.
        """
        fields = self._validated_fields(data)
        subscription = Subscription(**fields, created_by="System")
        self.session.add(subscription)
        self.session.commit()
        self.session.refresh(subscription)
        logger.info(
            f"Subscription '{subscription.name}' created for {len(subscription.client_ids)} client(s)"
        )

        invoices = []
        for client_id in subscription.client_ids:
            try:
                invoices.append(
                    self.invoice_service.create_for_subscription(subscription, client_id, now=now)
                )
            except Exception as e:
                self.session.rollback()
                logger.warning(f"Failed to create invoice for client {client_id}: {e}")
        # Each invoice commit expires the rows loaded before it
        self.session.refresh(subscription)
        for invoice in invoices:
            self.session.refresh(invoice)
        return subscription, invoices

    def get_all_subscriptions(self) -> List[Dict[str, Any]]:
        subscriptions = self.session.exec(
            select(Subscription).order_by(col(Subscription.created_at).desc())
        ).all()
        all_ids = {cid for s in subscriptions for cid in s.client_ids}
        clients = {str(c.id): c for c in self._existing_clients(all_ids)}
        result = []
        for sub in subscriptions:
            data = sub.model_dump()
            data["clients"] = [
                {"id": clients[cid].id, "name": clients[cid].name, "email": clients[cid].email}
                for cid in sub.client_ids
                if cid in clients
            ]
            result.append(data)
        return result

    def get_subscription(self, subscription_id: Any) -> Subscription:
        subscription = self.session.get(Subscription, parse_uuid(subscription_id, "Subscription"))
        if not subscription:
            raise NotFoundError("Subscription not found")
        return subscription

    def update_subscription(self, subscription_id: Any, data: Dict[str, Any]) -> Subscription:
        """Full edit. Existing invoices keep their price snapshot; nothing is re-billed."""
        subscription = self.get_subscription(subscription_id)
        for key, value in self._validated_fields(data).items():
            setattr(subscription, key, value)
        subscription.updated_at = utcnow()
        self.session.add(subscription)
        self.session.commit()
        self.session.refresh(subscription)
        return subscription

    def delete_subscription(self, subscription_id: Any) -> Subscription:
        subscription = self.get_subscription(subscription_id)
        self.session.delete(subscription)
        self.session.commit()
        return subscription

    # --- Helpers ---
    def _validated_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        name = (data.get("name") or "").strip()
        price = data.get("price")
        duration = data.get("duration")
        start_date = data.get("start_date")
        if not name or price in (None, "") or not duration or not start_date:
            raise ValidationError("Name, price, duration, and start date are required")

        try:
            price = float(price)
        except (TypeError, ValueError):
            raise ValidationError("Price must be a number")
        if price < 0:
            raise ValidationError("Price must not be negative")
        if duration not in DURATIONS:
            raise ValidationError(f"Invalid duration '{duration}'. Use one of: {', '.join(DURATIONS)}")

        client_ids = coerce_client_ids(data.get("clients"))
        if len(self._existing_clients(client_ids)) != len(client_ids):
            raise ValidationError("One or more clients not found")

        end_date = data.get("end_date")
        return {
            "name": name,
            "price": price,
            "duration": duration,
            "description": data.get("description") or "",
            "start_date": _to_datetime(start_date),
            "end_date": _to_datetime(end_date) if end_date else None,
            "client_ids": client_ids,
        }

    def _existing_clients(self, client_ids) -> List[Client]:
        ids = []
        for cid in client_ids:
            try:
                ids.append(uuid.UUID(str(cid)))
            except ValueError:
                continue
        if not ids:
            return []
        return self.session.exec(select(Client).where(col(Client.id).in_(ids))).all()
