# subdesk/scheduler.py
import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger("Scheduler")

scheduler = BackgroundScheduler(
    job_defaults={
        "coalesce": True,  # collapse missed runs into one
        "max_instances": 1,
        "misfire_grace_time": 300,
    }
)


def job_listener(event):
    """Log the outcome of every scheduled job."""
    if event.exception:
        logger.error(f"Job {event.job_id} failed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully")


scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)


def start_scheduler():
    """
    Register the daily reminder scan and every stored weekly broadcast, then
    start the scheduler thread.
    """
    # Late imports avoid a cycle through the services package
    from .services.broadcast_service import restore_schedules
    from .services.reminder_job import run_reminder_check

    if scheduler.running:
        return scheduler

    logger.info("Scheduling reminder scan daily at 00:00")
    scheduler.add_job(
        run_reminder_check,
        trigger=CronTrigger(hour=0, minute=0),
        id="reminder_job",
        name="Overdue invoice reminders",
        replace_existing=True,
    )

    restored = restore_schedules(scheduler)
    logger.info(f"Restored {restored} weekly broadcast schedule(s)")

    scheduler.start()
    logger.info("Scheduler started")
    return scheduler


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
