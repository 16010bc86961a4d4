# subdesk/services/dashboard_service.py
"""
Read-only reporting over subscriptions and invoices for the dashboard.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session, col, select

from ..models.client import Client
from ..models.invoice import Invoice
from ..models.subscription import Subscription


def monthly_price(subscription: Subscription) -> float:
    """Subscription price normalised to one month."""
    if subscription.duration == "yearly":
        return subscription.price / 12
    if subscription.duration == "weekly":
        return subscription.price * 52 / 12
    return subscription.price


def is_active(subscription: Subscription, now: datetime) -> bool:
    return bool(subscription.client_ids) and (
        subscription.end_date is None or subscription.end_date >= now
    )


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _short_date(value: Optional[datetime]) -> str:
    return value.strftime("%b %d") if value else "-"


class DashboardService:
    def __init__(self, session: Session):
        self.session = session

    def get_dashboard_data(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        subscriptions = self.session.exec(
            select(Subscription).order_by(col(Subscription.created_at).desc())
        ).all()
        invoices = self.session.exec(
            select(Invoice).order_by(col(Invoice.created_at).desc())
        ).all()
        clients = {str(c.id): c for c in self.session.exec(select(Client)).all()}

        active = [s for s in subscriptions if is_active(s, now)]
        outstanding = [i for i in invoices if i.status in ("Unpaid", "Overdue")]
        paid = [i for i in invoices if i.status == "Paid" and i.paid_at]

        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        paid_this_month = sum(i.total for i in paid if i.paid_at >= start_of_month)
        mrr = sum(monthly_price(s) * len(s.client_ids) for s in active)

        return {
            "kpis": [
                {"title": "Active Subscriptions", "value": str(len(active))},
                {"title": "Outstanding Invoices", "value": str(len(outstanding))},
                {"title": "Paid This Month", "value": f"${paid_this_month:.2f}"},
                {"title": "MRR", "value": f"${mrr:.2f}"},
            ],
            "payment_history": self._payment_history(paid, now),
            "recent_subscriptions": [
                self._subscription_row(s, clients, now) for s in subscriptions[:5]
            ],
            "recent_invoices": [self._invoice_row(i, clients) for i in invoices[:5]],
        }

    def _payment_history(self, paid: List[Invoice], now: datetime) -> Dict[str, Any]:
        by_day: Dict[Any, float] = {}
        by_week: Dict[Tuple[int, int], float] = {}
        by_month: Dict[Tuple[int, int], float] = {}
        for invoice in paid:
            paid_at = invoice.paid_at
            iso = paid_at.isocalendar()
            by_day[paid_at.date()] = by_day.get(paid_at.date(), 0) + invoice.total
            by_week[(iso[0], iso[1])] = by_week.get((iso[0], iso[1]), 0) + invoice.total
            by_month[(paid_at.year, paid_at.month)] = (
                by_month.get((paid_at.year, paid_at.month), 0) + invoice.total
            )

        days = [(now - timedelta(days=i)).date() for i in range(6, -1, -1)]
        weeks = [(now - timedelta(days=7 * i)).isocalendar()[:2] for i in range(4, -1, -1)]
        months = [_shift_month(now.year, now.month, -i) for i in range(11, -1, -1)]

        return {
            "day": {
                "categories": [d.strftime("%a") for d in days],
                "series": [{"name": "Payments", "data": [by_day.get(d, 0) for d in days]}],
            },
            "week": {
                "categories": [f"W{week}" for _, week in weeks],
                "series": [{"name": "Payments", "data": [by_week.get(tuple(w), 0) for w in weeks]}],
            },
            "month": {
                "categories": [datetime(y, m, 1).strftime("%b") for y, m in months],
                "series": [{"name": "Payments", "data": [by_month.get(m, 0) for m in months]}],
            },
        }

    @staticmethod
    def _subscription_row(sub: Subscription, clients: Dict[str, Client], now: datetime) -> Dict[str, Any]:
        first = clients.get(sub.client_ids[0]) if sub.client_ids else None
        return {
            "client": first.name if first else "Unknown",
            "plan": f"{sub.name} ({sub.duration.capitalize()})",
            "price": sub.price,
            "start": _short_date(sub.start_date),
            "status": "Active" if sub.end_date is None or sub.end_date >= now else "Paused",
        }

    @staticmethod
    def _invoice_row(invoice: Invoice, clients: Dict[str, Client]) -> Dict[str, Any]:
        client = clients.get(str(invoice.client_id))
        return {
            "no": invoice.invoice_number,
            "client": client.name if client else "Unknown",
            "amount": invoice.total,
            "due": _short_date(invoice.due_date),
            "status": invoice.status,
        }
