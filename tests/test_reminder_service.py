# tests/test_reminder_service.py
from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from subdesk.core.config import get_settings
from subdesk.core.errors import ValidationError
from subdesk.models.email_log import EmailLog
from subdesk.models.reminder_template import ReminderTemplate
from subdesk.services.email_dispatcher import EmailDispatcher
from subdesk.services.reminder_service import (
    DEFAULT_TEMPLATES,
    ReminderService,
    days_overdue,
    threshold_for,
)

from .conftest import FakeTransport

NOW = datetime(2024, 2, 20, 0, 0, 5)


@pytest.fixture
def service(session, dispatcher):
    service = ReminderService(session, dispatcher=dispatcher)
    service.seed_default_templates()
    return service


@pytest.fixture
def overdue(make_client, make_subscription, make_invoice):
    """Create an unpaid invoice that is ``days`` days past due at NOW."""

    def _make(days, status="Unpaid", email=None):
        client = make_client(email=email)
        subscription = make_subscription([client])
        return make_invoice(client, subscription, NOW - timedelta(days=days), status=status)

    return _make


def _reminder_logs(session):
    return session.exec(select(EmailLog).where(EmailLog.type == "reminder")).all()


@pytest.mark.parametrize("days,expected", [(3, "day3"), (7, "day7"), (14, "day14")])
def test_thresholds_fire(days, expected):
    assert threshold_for(days) == expected


@pytest.mark.parametrize("days", [-1, 0, 1, 2, 4, 5, 6, 8, 13, 15, 30])
def test_other_days_do_not_fire(days):
    assert threshold_for(days) is None


def test_days_overdue_floors_partial_days():
    due = datetime(2024, 1, 31, 10, 0)
    assert days_overdue(due, datetime(2024, 2, 7, 10, 0)) == 7
    assert days_overdue(due, datetime(2024, 2, 7, 9, 59)) == 6
    assert days_overdue(due, datetime(2024, 1, 30, 10, 0)) == -1


def test_seed_is_idempotent(session):
    service = ReminderService(session, dispatcher=object())
    assert service.seed_default_templates() == 3
    assert service.seed_default_templates() == 0
    contents = {t.type: t.content for t in service.get_templates()}
    assert contents == DEFAULT_TEMPLATES


def test_update_templates_requires_all_three(service):
    with pytest.raises(ValidationError, match="All template contents are required"):
        service.update_templates({"day3": "a", "day7": "b", "day14": ""})

    service.update_templates({"day3": "a", "day7": "b", "day14": "c"})
    assert {t.type: t.content for t in service.get_templates()} == {"day3": "a", "day7": "b", "day14": "c"}


def test_seven_days_overdue_sends_exactly_one_reminder(session, service, transport, overdue):
    invoice = overdue(7)

    stats = service.send_due_reminders(now=NOW)

    assert stats == {"scanned": 1, "sent": 1, "failed": 0, "skipped": 0}
    logs = _reminder_logs(session)
    assert len(logs) == 1
    assert logs[0].status == "sent"
    assert logs[0].invoice_id == invoice.id
    assert logs[0].subject == f"Payment Reminder: Invoice {invoice.invoice_number}"
    assert DEFAULT_TEMPLATES["day7"] in transport.sent[0].html
    assert transport.sent[0].attachment.filename == f"Invoice_{invoice.invoice_number}.pdf"
    session.refresh(invoice)
    assert invoice.reminders_sent == ["day7"]


@pytest.mark.parametrize("days", [0, 1, 2, 4, 5, 6, 15])
def test_non_threshold_days_send_nothing(session, service, overdue, days):
    overdue(days)
    stats = service.send_due_reminders(now=NOW)
    assert stats["sent"] == 0
    assert _reminder_logs(session) == []


def test_paid_invoices_are_ignored(session, service, overdue):
    overdue(3, status="Paid")
    overdue(14, status="Overdue")
    assert service.send_due_reminders(now=NOW)["scanned"] == 0
    assert _reminder_logs(session) == []


def test_missing_template_skips_invoice(session, service, overdue):
    session.delete(session.get(ReminderTemplate, "day14"))
    session.commit()
    overdue(14)

    stats = service.send_due_reminders(now=NOW)

    assert stats["skipped"] == 1
    assert _reminder_logs(session) == []


def test_one_failure_does_not_stop_the_batch(session, overdue):
    overdue(3, email="broken@example.com")
    overdue(3, email="fine@example.com")
    transport = FakeTransport(fail_for=["broken@example.com"])
    service = ReminderService(session, dispatcher=EmailDispatcher(session, transport))
    service.seed_default_templates()

    stats = service.send_due_reminders(now=NOW)

    assert stats["sent"] == 1
    assert stats["failed"] == 1
    assert sorted(log.status for log in _reminder_logs(session)) == ["failed", "sent"]
    assert [m.to for m in transport.sent] == ["fine@example.com"]


def test_deleted_client_is_reported_not_raised(session, service, overdue):
    invoice = overdue(7)
    from subdesk.models.client import Client

    session.delete(session.get(Client, invoice.client_id))
    session.commit()

    stats = service.send_due_reminders(now=NOW)
    assert stats["failed"] == 1
    assert _reminder_logs(session) == []


def test_rerun_resends_by_default(session, service, overdue):
    invoice = overdue(7)
    service.send_due_reminders(now=NOW)
    service.send_due_reminders(now=NOW)

    assert len(_reminder_logs(session)) == 2
    session.refresh(invoice)
    assert invoice.reminders_sent == ["day7"]


def test_rerun_skips_when_configured(session, service, overdue, monkeypatch):
    monkeypatch.setattr(get_settings(), "reminder_skip_already_sent", True)
    overdue(7)

    service.send_due_reminders(now=NOW)
    stats = service.send_due_reminders(now=NOW)

    assert stats["skipped"] == 1
    assert len(_reminder_logs(session)) == 1
