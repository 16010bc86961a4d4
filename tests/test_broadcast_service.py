# tests/test_broadcast_service.py
import base64

import pytest
from sqlmodel import select

from subdesk.core.errors import NotFoundError, ValidationError
from subdesk.models.email_log import EmailLog
from subdesk.services.broadcast_service import (
    BroadcastService,
    job_id_for,
    parse_schedule_time,
    restore_schedules,
    run_broadcast,
    validate_schedule_day,
)
from subdesk.services.email_dispatcher import EmailDispatcher

from .conftest import FakeTransport


@pytest.fixture
def service(session, fake_scheduler, dispatcher):
    return BroadcastService(session, scheduler=fake_scheduler, dispatcher=dispatcher)


def _payload(**overrides):
    data = {
        "subject": "Weekly news",
        "content": "<p>News</p>",
        "schedule_day": "Monday",
        "schedule_time": "09:30",
        "recipients": "selected",
        "selected_clients": [],
        "attachment": None,
    }
    data.update(overrides)
    return data


@pytest.mark.parametrize("value,expected", [("09:30", (9, 30)), ("0:00", (0, 0)), ("23:59", (23, 59)), ("7:5", (7, 5))])
def test_parse_schedule_time(value, expected):
    assert parse_schedule_time(value) == expected


@pytest.mark.parametrize("value", ["24:00", "12:60", "-1:00", "noon", "", "9", "9:30:00"])
def test_parse_schedule_time_rejects(value):
    with pytest.raises(ValidationError, match="Invalid schedule time"):
        parse_schedule_time(value)


def test_validate_schedule_day():
    assert validate_schedule_day("Sunday") == "Sunday"
    with pytest.raises(ValidationError, match="Invalid schedule day"):
        validate_schedule_day("Funday")
    with pytest.raises(ValidationError):
        validate_schedule_day("monday")


def test_required_fields(service):
    with pytest.raises(ValidationError, match="Subject, content, scheduleDay, and scheduleTime are required"):
        service.schedule_weekly_email(_payload(subject=""))


def test_bad_day_and_time_are_rejected(service, fake_scheduler):
    with pytest.raises(ValidationError, match="Invalid schedule day"):
        service.schedule_weekly_email(_payload(schedule_day="Someday"))
    with pytest.raises(ValidationError, match="Invalid schedule time"):
        service.schedule_weekly_email(_payload(schedule_time="25:00"))
    assert fake_scheduler.jobs == {}
    assert service.list_schedules() == []


def test_all_recipients_resolve_at_registration(service, make_client, make_subscription):
    a = make_client(email="a@example.com")
    b = make_client(email="b@example.com")
    loner = make_client(email="loner@example.com")
    make_subscription([a, b])
    make_subscription([b])

    schedule = service.schedule_weekly_email(_payload(recipients="all"))

    assert schedule.recipients == "all"
    assert schedule.client_ids == [str(a.id), str(b.id)]
    assert str(loner.id) not in schedule.client_ids

    late = make_client(email="late@example.com")
    make_subscription([late])
    assert service.get_schedule(schedule.id).client_ids == [str(a.id), str(b.id)]


def test_selected_recipients_keep_only_existing_clients(service, make_client):
    a = make_client()
    schedule = service.schedule_weekly_email(
        _payload(selected_clients=[str(a.id), "00000000-0000-0000-0000-000000000000", "junk"])
    )
    assert schedule.client_ids == [str(a.id)]


def test_registration_adds_weekly_cron_job(service, fake_scheduler):
    schedule = service.schedule_weekly_email(_payload(schedule_day="Monday", schedule_time="09:30"))

    job = fake_scheduler.jobs[job_id_for(schedule.id)]
    assert job["func"] is run_broadcast
    assert job["args"] == [str(schedule.id)]
    trigger = str(job["trigger"])
    assert "day_of_week='mon'" in trigger
    assert "hour='9'" in trigger
    assert "minute='30'" in trigger
    assert schedule.time == "09:30"


def test_attachment_must_be_base64(service):
    with pytest.raises(ValidationError):
        service.schedule_weekly_email(
            _payload(attachment={"name": "a.txt", "content": "%%%not base64%%%", "type": "text/plain"})
        )


def test_send_broadcast_isolates_failures(session, fake_scheduler, make_client):
    ok = make_client(email="ok@example.com")
    broken = make_client(email="broken@example.com")
    gone = make_client(email="gone@example.com")
    transport = FakeTransport(fail_for=["broken@example.com"])
    service = BroadcastService(session, scheduler=fake_scheduler, dispatcher=EmailDispatcher(session, transport))
    attachment = {"name": "menu.txt", "content": base64.b64encode(b"soup").decode(), "type": "text/plain"}
    schedule = service.schedule_weekly_email(
        _payload(selected_clients=[str(broken.id), str(gone.id), str(ok.id)], attachment=attachment)
    )
    session.delete(gone)
    session.commit()

    stats = service.send_broadcast(schedule)

    assert stats == {"sent": 1, "failed": 1, "missing": 1}
    assert [m.to for m in transport.sent] == ["ok@example.com"]
    assert transport.sent[0].attachment.content == b"soup"
    logs = session.exec(select(EmailLog)).all()
    assert sorted(log.status for log in logs) == ["failed", "sent"]
    assert all(log.type == "weekly" for log in logs)
    assert service.get_schedule(schedule.id).last_run_at is not None


def test_cancel_schedule_removes_job(service, fake_scheduler):
    schedule = service.schedule_weekly_email(_payload())

    cancelled = service.cancel_schedule(schedule.id)

    assert cancelled.is_active is False
    assert fake_scheduler.jobs == {}
    # A second cancel finds no job and still succeeds
    service.cancel_schedule(schedule.id)

    with pytest.raises(NotFoundError):
        service.cancel_schedule("00000000-0000-0000-0000-000000000000")


def test_restore_registers_only_active_schedules(session, service, fake_scheduler):
    from .conftest import FakeScheduler

    keep = service.schedule_weekly_email(_payload(subject="keep"))
    drop = service.schedule_weekly_email(_payload(subject="drop"))
    service.cancel_schedule(drop.id)

    fresh = FakeScheduler()
    assert restore_schedules(fresh, session) == 1
    assert list(fresh.jobs) == [job_id_for(keep.id)]
