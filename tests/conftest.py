# tests/conftest.py
import os
import tempfile
import uuid
from datetime import datetime

_TMP_DIR = tempfile.mkdtemp(prefix="subdesk-tests-")

# Settings are read at import time, so the environment is prepared first.
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'app.sqlite')}"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["REMINDER_SKIP_ALREADY_SENT"] = "false"

import pytest
from apscheduler.jobstores.base import JobLookupError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from subdesk import models  # noqa: F401
from subdesk.core import audit
from subdesk.core.errors import TransportError
from subdesk.models.client import Client
from subdesk.models.invoice import Invoice
from subdesk.models.subscription import Subscription
from subdesk.services.email_dispatcher import EmailDispatcher

audit.LOG_DIR = os.path.join(_TMP_DIR, "logs")
audit.AUDIT_LOG_FILE = os.path.join(audit.LOG_DIR, "audit.log")


# --- Fakes ---
class FakeTransport:
    """Records messages instead of talking to an SMTP server."""

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)
        self.username = "billing@mycompany.com"

    def send(self, message):
        if "*" in self.fail_for or message.to in self.fail_for:
            raise TransportError(f"Failed to send email to {message.to}: connection refused")
        self.sent.append(message)


class FakeMailQueue:
    def __init__(self):
        self.invoice_ids = []

    def enqueue_invoice_email(self, invoice_id):
        self.invoice_ids.append(invoice_id)


class FakeScheduler:
    running = False

    def __init__(self):
        self.jobs = {}

    def add_job(self, func, trigger=None, args=None, id=None, name=None, replace_existing=False):
        if id in self.jobs and not replace_existing:
            raise ValueError(f"Job {id} already exists")
        self.jobs[id] = {"func": func, "trigger": trigger, "args": args, "name": name}

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]


# --- Database ---
@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def dispatcher(session, transport):
    return EmailDispatcher(session, transport)


@pytest.fixture
def fake_queue():
    return FakeMailQueue()


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


# --- Factories ---
@pytest.fixture
def make_client(session):
    def _make(name="Jane Doe", email=None, phone="555-0100"):
        client = Client(
            name=name,
            phone=phone,
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
        )
        session.add(client)
        session.commit()
        session.refresh(client)
        return client

    return _make


@pytest.fixture
def make_subscription(session):
    def _make(clients=(), name="Basic", price=50.0, duration="monthly", **fields):
        subscription = Subscription(
            name=name,
            price=price,
            duration=duration,
            start_date=fields.pop("start_date", datetime(2024, 1, 1)),
            client_ids=[str(c.id) for c in clients],
            **fields,
        )
        session.add(subscription)
        session.commit()
        session.refresh(subscription)
        return subscription

    return _make


@pytest.fixture
def make_invoice(session):
    counter = {"n": 0}

    def _make(client, subscription, due_date, status="Unpaid", price=50.0, months=1.0, **fields):
        counter["n"] += 1
        invoice = Invoice(
            invoice_number=fields.pop("invoice_number", f"INV-2000-{counter['n']:03d}"),
            client_id=client.id,
            subscription_id=subscription.id,
            duration_months=months,
            price_per_month=price,
            invoice_date=fields.pop("invoice_date", due_date),
            due_date=due_date,
            status=status,
            company={"name": "MyCompany Inc."},
            **fields,
        )
        session.add(invoice)
        session.commit()
        session.refresh(invoice)
        return invoice

    return _make


# --- HTTP ---
@pytest.fixture
def admin_user():
    from subdesk.models.user import User

    return User(
        id=uuid.uuid4(),
        email="admin@mycompany.com",
        hashed_password="x",
        is_active=True,
        is_superuser=True,
        is_verified=True,
    )


@pytest.fixture
def app(session, admin_user, fake_scheduler, fake_queue, monkeypatch):
    from subdesk.api.email.main import get_scheduler
    from subdesk.core.users import current_active_user
    from subdesk.db.engine_sync import get_sync_session
    from subdesk.main import app
    from subdesk.services import mail_queue as mail_queue_module

    def override_session():
        yield session

    monkeypatch.setattr(mail_queue_module, "mail_queue", fake_queue)
    app.dependency_overrides[get_sync_session] = override_session
    app.dependency_overrides[current_active_user] = lambda: admin_user
    app.dependency_overrides[get_scheduler] = lambda: fake_scheduler
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def api(app):
    from fastapi.testclient import TestClient

    return TestClient(app)
