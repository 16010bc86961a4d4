# subdesk/services/broadcast_service.py
"""
Weekly broadcast emails.

A broadcast is registered once (subject, body, optional attachment, weekday
and time) and then fires every week at that slot. The recipient list is
resolved at registration and stored with the schedule; clients added later
are not included. Schedules live in the database and are re-registered with
the scheduler when the process starts.
"""
import base64
import binascii
import logging
import re
import uuid
from typing import Any, Dict, List, Optional, Tuple

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.cron import CronTrigger
from sqlmodel import Session, col, select

from ..core.clock import utcnow
from ..core.errors import NotFoundError, ValidationError
from ..models.broadcast import BroadcastSchedule
from ..models.client import Client
from ..models.subscription import Subscription
from .email_dispatcher import EmailDispatcher
from .mail_transport import Attachment

logger = logging.getLogger(__name__)

WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
CRON_DAYS = {day: day[:3].lower() for day in WEEKDAYS}

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{1,2})$")


def parse_schedule_time(value: str) -> Tuple[int, int]:
    """'HH:MM' -> (hour, minute); hour 0-23, minute 0-59."""
    match = _TIME_RE.match((value or "").strip())
    if not match:
        raise ValidationError("Invalid schedule time")
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValidationError("Invalid schedule time")
    return hour, minute


def validate_schedule_day(value: str) -> str:
    if value not in WEEKDAYS:
        raise ValidationError("Invalid schedule day")
    return value


def job_id_for(schedule_id: Any) -> str:
    return f"broadcast_{schedule_id}"


class BroadcastService:
    def __init__(self, session: Session, scheduler=None, dispatcher: Optional[EmailDispatcher] = None):
        """
        Args:
            session: SQLModel Session instance
            scheduler: APScheduler scheduler receiving the weekly jobs (optional)
            dispatcher: EmailDispatcher used when a broadcast fires
        """
        self.session = session
        self.scheduler = scheduler
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> EmailDispatcher:
        if self._dispatcher is None:
            self._dispatcher = EmailDispatcher(self.session)
        return self._dispatcher

    # --- Registration ---
    def schedule_weekly_email(self, data: Dict[str, Any]) -> BroadcastSchedule:
        subject = (data.get("subject") or "").strip()
        content = data.get("content") or ""
        schedule_day = data.get("schedule_day")
        schedule_time = data.get("schedule_time")
        if not subject or not content or not schedule_day or not schedule_time:
            raise ValidationError("Subject, content, scheduleDay, and scheduleTime are required")

        validate_schedule_day(schedule_day)
        hour, minute = parse_schedule_time(schedule_time)

        attachment = data.get("attachment") or None
        if attachment:
            if not attachment.get("name") or not attachment.get("content"):
                raise ValidationError("Attachment needs a name and base64 content")
            try:
                base64.b64decode(attachment["content"], validate=True)
            except (binascii.Error, ValueError):
                raise ValidationError("Attachment content is not valid base64")

        mode = "all" if data.get("recipients") == "all" else "selected"
        if mode == "all":
            client_ids = self.resolve_all_recipients()
        else:
            client_ids = self.resolve_selected_recipients(data.get("selected_clients") or [])

        schedule = BroadcastSchedule(
            subject=subject,
            content=content,
            attachment_name=attachment.get("name") if attachment else None,
            attachment_type=(attachment.get("type") or "application/octet-stream") if attachment else None,
            attachment_content=attachment.get("content") if attachment else None,
            recipients=mode,
            client_ids=client_ids,
            day_of_week=schedule_day,
            time=f"{hour:02d}:{minute:02d}",
        )
        self.session.add(schedule)
        self.session.commit()
        self.session.refresh(schedule)

        self.register_job(schedule)
        logger.info(
            f"Weekly email '{subject}' scheduled for {schedule_day} {schedule.time} "
            f"({len(client_ids)} recipient(s))"
        )
        return schedule

    def resolve_all_recipients(self) -> List[str]:
        """Every existing client referenced by any subscription, in first-seen order."""
        ordered: List[str] = []
        for subscription in self.session.exec(select(Subscription)).all():
            for cid in subscription.client_ids:
                if cid not in ordered:
                    ordered.append(cid)
        return self._existing(ordered)

    def resolve_selected_recipients(self, selected: List[Any]) -> List[str]:
        ordered: List[str] = []
        for cid in selected:
            cid = str(cid).strip()
            if cid and cid not in ordered:
                ordered.append(cid)
        return self._existing(ordered)

    def register_job(self, schedule: BroadcastSchedule) -> None:
        if self.scheduler is None:
            logger.debug(f"No scheduler attached; schedule {schedule.id} stored only")
            return
        hour, minute = parse_schedule_time(schedule.time)
        self.scheduler.add_job(
            run_broadcast,
            trigger=CronTrigger(day_of_week=CRON_DAYS[schedule.day_of_week], hour=hour, minute=minute),
            args=[str(schedule.id)],
            id=job_id_for(schedule.id),
            name=f"Weekly broadcast: {schedule.subject}",
            replace_existing=True,
        )

    # --- Queries / cancellation ---
    def list_schedules(self) -> List[BroadcastSchedule]:
        return self.session.exec(
            select(BroadcastSchedule).order_by(col(BroadcastSchedule.created_at).desc())
        ).all()

    def get_schedule(self, schedule_id: Any) -> BroadcastSchedule:
        try:
            sid = uuid.UUID(str(schedule_id))
        except ValueError:
            raise NotFoundError("Schedule not found")
        schedule = self.session.get(BroadcastSchedule, sid)
        if not schedule:
            raise NotFoundError("Schedule not found")
        return schedule

    def cancel_schedule(self, schedule_id: Any) -> BroadcastSchedule:
        schedule = self.get_schedule(schedule_id)
        schedule.is_active = False
        self.session.add(schedule)
        self.session.commit()
        self.session.refresh(schedule)
        if self.scheduler is not None:
            try:
                self.scheduler.remove_job(job_id_for(schedule.id))
            except JobLookupError:
                logger.warning(f"Job for schedule {schedule.id} was not registered")
        return schedule

    # --- Firing ---
    def send_broadcast(self, schedule: BroadcastSchedule) -> Dict[str, int]:
        """Send the schedule's email to each stored recipient; failures don't stop the batch."""
        stats = {"sent": 0, "failed": 0, "missing": 0}
        attachment = self._attachment(schedule)

        for cid in schedule.client_ids:
            client = self._get_client(cid)
            if not client:
                logger.warning(f"Broadcast {schedule.id}: client {cid} no longer exists")
                stats["missing"] += 1
                continue
            try:
                self.dispatcher.send_email(
                    to=client.email,
                    subject=schedule.subject,
                    html=schedule.content,
                    attachment=attachment,
                    invoice=None,
                    email_type="weekly",
                )
                stats["sent"] += 1
            except Exception as e:
                stats["failed"] += 1
                logger.warning(f"Failed to send weekly email to {client.email}: {e}")

        schedule.last_run_at = utcnow()
        self.session.add(schedule)
        self.session.commit()
        return stats

    # --- Helpers ---
    def _existing(self, ids: List[str]) -> List[str]:
        parsed = []
        for cid in ids:
            try:
                parsed.append(uuid.UUID(cid))
            except ValueError:
                continue
        if not parsed:
            return []
        found = {
            str(c.id) for c in self.session.exec(select(Client).where(col(Client.id).in_(parsed))).all()
        }
        return [str(uid) for uid in parsed if str(uid) in found]

    def _get_client(self, cid: str) -> Optional[Client]:
        try:
            return self.session.get(Client, uuid.UUID(cid))
        except ValueError:
            return None

    @staticmethod
    def _attachment(schedule: BroadcastSchedule) -> Optional[Attachment]:
        if not schedule.attachment_name or not schedule.attachment_content:
            return None
        return Attachment(
            filename=schedule.attachment_name,
            content=base64.b64decode(schedule.attachment_content),
            content_type=schedule.attachment_type or "application/octet-stream",
        )


def run_broadcast(schedule_id: str) -> Optional[Dict[str, int]]:
    """APScheduler job body for one weekly broadcast."""
    from ..db.engine_sync import new_session

    with new_session() as session:
        service = BroadcastService(session)
        try:
            schedule = service.get_schedule(schedule_id)
        except NotFoundError:
            logger.warning(f"Broadcast schedule {schedule_id} no longer exists")
            return None
        if not schedule.is_active:
            logger.info(f"Broadcast schedule {schedule_id} is inactive, skipping")
            return None
        stats = service.send_broadcast(schedule)
        logger.info(f"Broadcast '{schedule.subject}' finished: {stats}")
        return stats


def restore_schedules(scheduler, session: Optional[Session] = None) -> int:
    """Re-register every active schedule with ``scheduler``. Returns how many were registered."""
    if session is None:
        from ..db.engine_sync import new_session

        with new_session() as own_session:
            return restore_schedules(scheduler, own_session)

    restored = 0
    service = BroadcastService(session, scheduler=scheduler)
    active = session.exec(select(BroadcastSchedule).where(BroadcastSchedule.is_active == True)).all()  # noqa: E712
    for schedule in active:
        try:
            service.register_job(schedule)
            restored += 1
        except Exception as e:
            logger.error(f"Could not restore broadcast schedule {schedule.id}: {e}")
    return restored
