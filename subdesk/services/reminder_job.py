# subdesk/services/reminder_job.py
import logging

from ..db.engine_sync import new_session
from .reminder_service import ReminderService

logger = logging.getLogger("ReminderJob")


def run_reminder_check():
    """
    Run ONE reminder scan over unpaid invoices.
    Called daily at midnight by APScheduler.
    """
    logger.info("--- RUNNING OVERDUE REMINDER SCAN ---")
    try:
        with new_session() as session:
            stats = ReminderService(session).send_due_reminders()
            logger.info(f"--- REMINDER SCAN FINISHED. Summary: {stats} ---")
            return stats
    except Exception as e:
        logger.critical(f"Critical error in reminder scan: {e}", exc_info=True)
        return None
