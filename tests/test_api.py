# tests/test_api.py
import os
import re
from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from subdesk.models.email_log import EmailLog
from subdesk.services.email_dispatcher import EmailDispatcher
from subdesk.services.reminder_service import ReminderService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _new_client(api, **fields):
    data = {"name": "Jane Doe", "phone": "555-0100", "email": "jane@example.com", "tags": "vip, early"}
    data.update(fields)
    response = api.post("/clients", data=data)
    assert response.status_code == 201, response.text
    return response.json()


# --- System ---


def test_health(api):
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_endpoints_require_authentication(app):
    from fastapi.testclient import TestClient

    from subdesk.core.users import current_active_user

    app.dependency_overrides.pop(current_active_user)
    response = TestClient(app).get("/clients")
    assert response.status_code == 401
    assert "error" in response.json()


def test_verify_returns_current_user(api):
    response = api.get("/auth/verify")
    assert response.status_code == 200
    assert response.json()["valid"] is True
    assert response.json()["user"]["email"] == "admin@mycompany.com"


# --- Clients ---


def test_create_and_list_clients(api):
    created = _new_client(api, email=" Jane@Example.com ")
    assert created["email"] == "jane@example.com"
    assert created["tags"] == ["vip", "early"]

    response = api.get("/clients")
    assert [c["id"] for c in response.json()] == [created["id"]]


def test_create_client_validation(api):
    response = api.post("/clients", data={"name": "Jane", "email": "jane@example.com"})
    assert response.status_code == 400
    assert response.json() == {"error": "Name, phone, and email are required"}


def test_duplicate_email_conflicts(api):
    _new_client(api)
    response = api.post("/clients", data={"name": "Other", "phone": "1", "email": "jane@example.com"})
    assert response.status_code == 409
    assert response.json() == {"error": "Email already exists"}


def test_client_image_upload(api):
    response = api.post(
        "/clients",
        data={"name": "Jane", "phone": "1", "email": "pic@example.com"},
        files={"image": ("face.png", PNG_BYTES, "image/png")},
    )
    assert response.status_code == 201
    assert re.match(r"^/uploads/[0-9a-f]{32}\.png$", response.json()["image"])

    rejected = api.post(
        "/clients",
        data={"name": "Jane", "phone": "1", "email": "gif@example.com"},
        files={"image": ("face.gif", b"GIF89a", "image/gif")},
    )
    assert rejected.status_code == 400


def _uploaded_files():
    from subdesk.core.config import get_settings

    upload_dir = get_settings().upload_dir
    return set(os.listdir(upload_dir)) if os.path.isdir(upload_dir) else set()


def test_rejected_client_keeps_no_uploaded_image(api):
    existing = _new_client(api, email="dup@example.com")
    before = _uploaded_files()

    duplicate = api.post(
        "/clients",
        data={"name": "Other", "phone": "1", "email": "dup@example.com"},
        files={"image": ("face.png", PNG_BYTES, "image/png")},
    )
    missing_phone = api.post(
        "/clients",
        data={"name": "Other", "email": "new@example.com"},
        files={"image": ("face.png", PNG_BYTES, "image/png")},
    )
    other = _new_client(api, email="other@example.com")
    taken_email = api.put(
        f"/clients/{other['id']}",
        data={"email": existing["email"]},
        files={"image": ("face.png", PNG_BYTES, "image/png")},
    )

    assert duplicate.status_code == 409
    assert missing_phone.status_code == 400
    assert taken_email.status_code == 409
    assert _uploaded_files() == before


def test_update_client_ignores_empty_fields(api):
    created = _new_client(api)
    response = api.put(f"/clients/{created['id']}", data={"phone": "555-9999", "name": ""})
    assert response.status_code == 200
    assert response.json()["phone"] == "555-9999"
    assert response.json()["name"] == "Jane Doe"


def test_get_and_delete_client(api):
    created = _new_client(api)

    assert api.get(f"/clients/{created['id']}").status_code == 200
    assert api.delete(f"/clients/{created['id']}").json() == {"message": "Client deleted"}

    missing = api.get(f"/clients/{created['id']}")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Client not found"}
    assert api.get("/clients/not-a-uuid").status_code == 404


# --- Subscriptions & invoices ---


def test_create_subscription_issues_invoices(api, fake_queue):
    a = _new_client(api, email="a@example.com")
    b = _new_client(api, email="b@example.com")

    response = api.post(
        "/subscriptions",
        json={
            "name": "Pro",
            "price": 50,
            "duration": "monthly",
            "start_date": "2024-01-01",
            "clients": [a["id"], b["id"]],
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["subscription"]["client_ids"] == [a["id"], b["id"]]
    year = datetime.now().year
    assert [i["invoice_number"] for i in body["invoices"]] == [f"INV-{year}-001", f"INV-{year}-002"]
    assert body["invoices"][0]["total"] == 50
    assert len(fake_queue.invoice_ids) == 2

    listed = api.get("/subscriptions").json()
    assert [c["email"] for c in listed[0]["clients"]] == ["a@example.com", "b@example.com"]


@pytest.mark.parametrize(
    "payload,message",
    [
        ({"price": 10, "duration": "monthly", "start_date": "2024-01-01"}, "Name, price, duration, and start date are required"),
        ({"name": "X", "duration": "monthly", "start_date": "2024-01-01"}, "Name, price, duration, and start date are required"),
        (
            {"name": "X", "price": 10, "duration": "monthly", "start_date": "2024-01-01",
             "clients": ["00000000-0000-0000-0000-000000000000"]},
            "One or more clients not found",
        ),
    ],
)
def test_subscription_validation(api, payload, message):
    response = api.post("/subscriptions", json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": message}


def test_malformed_body_is_a_400(api):
    response = api.post("/subscriptions", json={"name": "X", "price": "lots"})
    assert response.status_code == 400
    assert "error" in response.json()


def test_invoice_status_patch_and_removal(api):
    client = _new_client(api)
    body = api.post(
        "/subscriptions",
        json={"name": "Pro", "price": 20, "duration": "yearly", "start_date": "2024-01-01", "clients": [client["id"]]},
    ).json()
    invoice = body["invoices"][0]

    detail = api.get(f"/invoices/{invoice['id']}").json()
    assert detail["client"]["email"] == "jane@example.com"
    assert detail["subscription"]["name"] == "Pro"
    assert detail["total"] == 240

    paid = api.patch(f"/invoices/{invoice['id']}/status", json={"status": "Paid"})
    assert paid.status_code == 200
    assert paid.json()["paid_at"] is not None

    assert api.patch(f"/invoices/{invoice['id']}/status", json={"status": "Lost"}).status_code == 400

    removed = api.put(f"/dashboard/invoices/{invoice['invoice_number']}/remove")
    assert removed.json() == {"message": "Invoice deleted"}
    again = api.put(f"/dashboard/invoices/{invoice['invoice_number']}/remove")
    assert again.status_code == 404


def test_dashboard_data(api):
    response = api.get("/dashboard/data")
    assert response.status_code == 200
    assert [k["title"] for k in response.json()["kpis"]] == [
        "Active Subscriptions",
        "Outstanding Invoices",
        "Paid This Month",
        "MRR",
    ]


# --- Email ---


def test_reminder_templates(api, session):
    ReminderService(session, dispatcher=object()).seed_default_templates()

    assert len(api.get("/email/reminder-templates").json()) == 3

    bad = api.put("/email/reminder-templates", json={"day3": "a", "day7": "b"})
    assert bad.status_code == 400
    assert bad.json() == {"error": "All template contents are required"}

    ok = api.put("/email/reminder-templates", json={"day3": "a", "day7": "b", "day14": "c"})
    assert ok.json() == {"message": "Templates updated successfully"}


def test_weekly_email_lifecycle(api, fake_scheduler):
    client = _new_client(api)

    bad = api.post(
        "/email/weekly-email",
        json={"subject": "Hi", "content": "<p>Hi</p>", "schedule_day": "Caturday", "schedule_time": "10:00"},
    )
    assert bad.status_code == 400
    assert bad.json() == {"error": "Invalid schedule day"}

    created = api.post(
        "/email/weekly-email",
        json={
            "subject": "Hi",
            "content": "<p>Hi</p>",
            "schedule_day": "Friday",
            "schedule_time": "10:00",
            "recipients": "selected",
            "selected_clients": [client["id"]],
        },
    )
    assert created.status_code == 200
    schedule = created.json()["schedule"]
    assert schedule["client_ids"] == [client["id"]]
    assert f"broadcast_{schedule['id']}" in fake_scheduler.jobs

    assert [s["id"] for s in api.get("/email/weekly-email").json()] == [schedule["id"]]

    assert api.delete(f"/email/weekly-email/{schedule['id']}").status_code == 200
    assert fake_scheduler.jobs == {}
    assert api.get("/email/weekly-email").json()[0]["is_active"] is False


def test_test_reminder_emails_runs_scan(app, api, session, make_client, make_subscription, make_invoice):
    from subdesk.api.email.main import get_reminder_service

    from .conftest import FakeTransport

    transport = FakeTransport()
    service = ReminderService(session, dispatcher=EmailDispatcher(session, transport))
    service.seed_default_templates()
    app.dependency_overrides[get_reminder_service] = lambda: service

    client = make_client(email="late@example.com")
    make_invoice(client, make_subscription([client]), datetime.now() - timedelta(days=3))

    response = api.post("/email/test-reminder-emails")

    assert response.status_code == 200
    assert response.json()["stats"]["sent"] == 1
    assert [m.to for m in transport.sent] == ["late@example.com"]

    logs = api.get("/email/email-logs").json()
    assert [log["type"] for log in logs] == ["reminder"]
    assert session.exec(select(EmailLog)).one().status == "sent"
