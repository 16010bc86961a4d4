# subdesk/api/dashboard/models.py
from pydantic import BaseModel


class Kpi(BaseModel):
    title: str
    value: str


class Series(BaseModel):
    name: str
    data: list[float]


class Chart(BaseModel):
    categories: list[str]
    series: list[Series]


class PaymentHistory(BaseModel):
    day: Chart
    week: Chart
    month: Chart


class RecentSubscription(BaseModel):
    client: str
    plan: str
    price: float
    start: str
    status: str


class RecentInvoice(BaseModel):
    no: str
    client: str
    amount: float
    due: str
    status: str


class DashboardData(BaseModel):
    kpis: list[Kpi]
    payment_history: PaymentHistory
    recent_subscriptions: list[RecentSubscription]
    recent_invoices: list[RecentInvoice]
