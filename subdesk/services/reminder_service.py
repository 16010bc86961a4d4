# subdesk/services/reminder_service.py
"""
Reminder templates and the overdue-invoice reminder scan.

Reminders fire only when an unpaid invoice is exactly 3, 7 or 14 days past
its due date. The day count is recomputed from the clock on every run, so no
state transition is stored on the invoice apart from the audit list
``reminders_sent``.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlmodel import Session, select

from ..core.clock import utcnow
from ..core.config import get_settings
from ..core.errors import NotFoundError, ValidationError
from ..models.client import Client
from ..models.invoice import Invoice
from ..models.reminder_template import REMINDER_TYPES, ReminderTemplate
from ..models.subscription import Subscription
from .email_dispatcher import EmailDispatcher

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES = {
    "day3": "Hi, your payment is due. Please pay within 3 days.",
    "day7": "Reminder: Your payment is still pending after 7 days.",
    "day14": "Final notice: Payment overdue for 14 days.",
}

THRESHOLDS = {3: "day3", 7: "day7", 14: "day14"}


def days_overdue(due_date: datetime, now: datetime) -> int:
    """Whole days elapsed since ``due_date`` (negative before it), floored."""
    return (now - due_date) // timedelta(days=1)


def threshold_for(days: int) -> Optional[str]:
    """Template type for an overdue day count, or None when no reminder is due."""
    return THRESHOLDS.get(days)


class ReminderService:
    def __init__(self, session: Session, dispatcher: Optional[EmailDispatcher] = None):
        self.session = session
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> EmailDispatcher:
        if self._dispatcher is None:
            self._dispatcher = EmailDispatcher(self.session)
        return self._dispatcher

    # --- Templates ---
    def seed_default_templates(self) -> int:
        """Insert any missing template with its default text. Returns how many were created."""
        created = 0
        for template_type, content in DEFAULT_TEMPLATES.items():
            if not self.session.get(ReminderTemplate, template_type):
                self.session.add(ReminderTemplate(type=template_type, content=content))
                created += 1
        self.session.commit()
        if created:
            logger.info(f"Seeded {created} default reminder template(s)")
        return created

    def get_templates(self) -> List[ReminderTemplate]:
        return self.session.exec(select(ReminderTemplate)).all()

    def update_templates(self, contents: Dict[str, Optional[str]]) -> List[ReminderTemplate]:
        if any(not contents.get(t) for t in REMINDER_TYPES):
            raise ValidationError("All template contents are required")

        for template_type in REMINDER_TYPES:
            template = self.session.get(ReminderTemplate, template_type)
            if template:
                template.content = contents[template_type]
                template.updated_at = utcnow()
            else:
                template = ReminderTemplate(type=template_type, content=contents[template_type])
            self.session.add(template)
        self.session.commit()
        return self.get_templates()

    # --- Scan ---
    def send_due_reminders(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Send the matching reminder for every unpaid invoice that is exactly
        3, 7 or 14 days overdue. Each invoice is handled independently.
        """
        now = now or datetime.now()
        skip_already_sent = get_settings().reminder_skip_already_sent
        stats = {"scanned": 0, "sent": 0, "failed": 0, "skipped": 0}

        invoices = self.session.exec(select(Invoice).where(Invoice.status == "Unpaid")).all()
        for invoice in invoices:
            stats["scanned"] += 1
            template_type = threshold_for(days_overdue(invoice.due_date, now))
            if template_type is None:
                continue

            number = invoice.invoice_number
            try:
                if skip_already_sent and template_type in (invoice.reminders_sent or []):
                    logger.info(f"Invoice {number}: {template_type} reminder already sent, skipping")
                    stats["skipped"] += 1
                    continue

                template = self.session.get(ReminderTemplate, template_type)
                if not template:
                    logger.warning(f"Invoice {number}: no '{template_type}' template, skipping")
                    stats["skipped"] += 1
                    continue

                client = self.session.get(Client, invoice.client_id)
                if not client:
                    raise NotFoundError(f"Client {invoice.client_id} not found")
                subscription = self.session.get(Subscription, invoice.subscription_id)
                if not subscription:
                    raise NotFoundError(f"Subscription {invoice.subscription_id} not found")

                self.dispatcher.send_reminder_email(invoice, client, subscription, template.content)

                if template_type not in (invoice.reminders_sent or []):
                    invoice.reminders_sent = [*(invoice.reminders_sent or []), template_type]
                    self.session.add(invoice)
                    self.session.commit()
                stats["sent"] += 1
                logger.info(f"Invoice {number}: {template_type} reminder sent to {client.email}")
            except Exception as e:
                self.session.rollback()
                stats["failed"] += 1
                logger.error(f"Invoice {number}: {template_type} reminder failed: {e}")

        return stats
