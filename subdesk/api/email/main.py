# subdesk/api/email/main.py
from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from ...core.audit import log_action
from ...core.users import current_active_user
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...services.broadcast_service import BroadcastService
from ...services.email_dispatcher import list_email_logs
from ...services.reminder_service import ReminderService
from .models import (
    BroadcastSchedule,
    EmailLog,
    ReminderTemplate,
    ReminderTemplatesUpdate,
    WeeklyEmailCreate,
)

router = APIRouter(prefix="/email")


# --- Dependency Injectors ---
def get_scheduler():
    from ...scheduler import scheduler

    return scheduler


def get_reminder_service(session: Session = Depends(get_sync_session)) -> ReminderService:
    return ReminderService(session)


def get_broadcast_service(
    session: Session = Depends(get_sync_session),
    scheduler=Depends(get_scheduler),
) -> BroadcastService:
    return BroadcastService(session, scheduler=scheduler)


# --- Reminder templates ---


@router.get("/reminder-templates", response_model=list[ReminderTemplate])
def api_get_reminder_templates(
    service: ReminderService = Depends(get_reminder_service),
    current_user: User = Depends(current_active_user),
):
    return service.get_templates()


@router.put("/reminder-templates")
def api_update_reminder_templates(
    templates: ReminderTemplatesUpdate,
    service: ReminderService = Depends(get_reminder_service),
    current_user: User = Depends(current_active_user),
):
    service.update_templates(templates.model_dump())
    return {"message": "Templates updated successfully"}


@router.post("/test-reminder-emails")
def api_test_reminder_emails(
    service: ReminderService = Depends(get_reminder_service),
    current_user: User = Depends(current_active_user),
):
    """Run the overdue reminder scan now instead of waiting for midnight."""
    stats = service.send_due_reminders()
    return {"message": "Test reminder emails processed successfully", "stats": stats}


# --- Weekly broadcasts ---


@router.post("/weekly-email")
def api_schedule_weekly_email(
    payload: WeeklyEmailCreate,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(current_active_user),
):
    data = payload.model_dump()
    schedule = service.schedule_weekly_email(data)
    return {
        "message": "Weekly email scheduled successfully",
        "schedule": BroadcastSchedule.model_validate(schedule),
    }


@router.get("/weekly-email", response_model=list[BroadcastSchedule])
def api_list_weekly_emails(
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(current_active_user),
):
    return service.list_schedules()


@router.delete("/weekly-email/{schedule_id}")
def api_cancel_weekly_email(
    schedule_id: str,
    request: Request,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(current_active_user),
):
    schedule = service.cancel_schedule(schedule_id)
    log_action("DELETE", "broadcast_schedule", str(schedule.id), user=current_user, request=request)
    return {"message": "Weekly email cancelled"}


# --- Logs ---


@router.get("/email-logs", response_model=list[EmailLog])
def api_get_email_logs(
    session: Session = Depends(get_sync_session),
    current_user: User = Depends(current_active_user),
):
    return list_email_logs(session)
