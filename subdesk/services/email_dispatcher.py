# subdesk/services/email_dispatcher.py
"""
Email dispatcher: renders invoice documents, sends mail through the
transport and records exactly one EmailLog row per send attempt.
"""
import logging
import re
from html import escape
from typing import Any, Dict, List, Optional

from sqlmodel import Session, col, select

from ..core.errors import TransportError
from ..models.client import Client
from ..models.email_log import EmailLog
from ..models.invoice import Invoice
from ..models.subscription import Subscription
from .invoice_pdf import (
    format_date,
    format_money,
    format_months,
    invoice_filename,
    render_invoice_pdf,
)
from .mail_transport import Attachment, MailMessage, SmtpTransport

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


def html_to_text(html: str) -> str:
    return _TAG_RE.sub("", html)


def invoice_email_html(invoice: Invoice, client: Client, subscription: Subscription) -> str:
    company_name = escape((invoice.company or {}).get("name") or "MyCompany Inc.")
    sub_name = escape(subscription.name)
    return f"""
<p>Dear {escape(client.name)},</p>
<p>Thank you for your subscription to {sub_name}. Please find your invoice ({invoice.invoice_number}) attached.</p>
<p><strong>Invoice Details:</strong></p>
<ul>
    <li>Invoice ID: {invoice.invoice_number}</li>
    <li>Subscription: {sub_name}</li>
    <li>Duration: {format_months(invoice.duration_months)}</li>
    <li>Amount Due: {format_money(invoice.total, invoice.currency)}</li>
    <li>Due Date: {format_date(invoice.due_date)}</li>
</ul>
<p>Best regards,<br>{company_name}</p>
"""


def reminder_email_html(
    invoice: Invoice, client: Client, subscription: Subscription, message: str
) -> str:
    # Template content is stored HTML-ready and inserted as-is.
    company_name = escape((invoice.company or {}).get("name") or "MyCompany Inc.")
    return f"""
<p>Dear {escape(client.name)},</p>
<p>{message}</p>
<p><strong>Invoice Details:</strong></p>
<ul>
    <li>Invoice ID: {invoice.invoice_number}</li>
    <li>Subscription: {escape(subscription.name)}</li>
    <li>Amount Due: {format_money(invoice.total, invoice.currency)}</li>
    <li>Due Date: {format_date(invoice.due_date)}</li>
</ul>
<p>Please find the invoice attached.</p>
<p>Best regards,<br>{company_name}</p>
"""


class EmailDispatcher:
    def __init__(self, session: Session, transport=None):
        """
        Args:
            session: SQLModel Session used to write EmailLog rows
            transport: object with a ``send(MailMessage)`` method;
                defaults to the SMTP transport built from settings
        """
        self.session = session
        self.transport = transport or SmtpTransport.from_settings()

    def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        attachment: Optional[Attachment] = None,
        invoice: Optional[Invoice] = None,
        email_type: str = "weekly",
        sender: Optional[str] = None,
    ) -> EmailLog:
        """
        Send one email and log the outcome.

        Returns the EmailLog on success. On transport failure a ``failed``
        EmailLog is written and TransportError is raised.
        """
        message = MailMessage(
            sender=sender,
            to=to,
            subject=subject,
            text=html_to_text(html),
            html=html,
            attachment=attachment,
        )

        error: Optional[Exception] = None
        try:
            self.transport.send(message)
        except Exception as e:
            error = e
            logger.error(f"Failed to send email to {to}: {e}")

        log = EmailLog(
            recipient=to,
            subject=subject,
            content=html,
            attachment=attachment.filename if attachment else None,
            type=email_type,
            status="failed" if error else "sent",
            error=str(error) if error else None,
            invoice_id=invoice.id if invoice else None,
        )
        self.session.add(log)
        self.session.commit()
        self.session.refresh(log)

        if error is not None:
            if isinstance(error, TransportError):
                raise error
            raise TransportError(f"Failed to send email to {to}: {error}") from error
        return log

    def send_invoice_email(
        self, invoice: Invoice, client: Client, subscription: Subscription
    ) -> EmailLog:
        pdf = render_invoice_pdf(invoice, client, subscription)
        company_name = (invoice.company or {}).get("name")
        return self.send_email(
            to=client.email,
            subject=f"Invoice {invoice.invoice_number} for Your {subscription.name} Subscription",
            html=invoice_email_html(invoice, client, subscription),
            attachment=Attachment(invoice_filename(invoice), pdf, "application/pdf"),
            invoice=invoice,
            email_type="invoice",
            sender=self._company_sender(company_name),
        )

    def send_reminder_email(
        self,
        invoice: Invoice,
        client: Client,
        subscription: Subscription,
        template_content: str,
    ) -> EmailLog:
        pdf = render_invoice_pdf(invoice, client, subscription)
        return self.send_email(
            to=client.email,
            subject=f"Payment Reminder: Invoice {invoice.invoice_number}",
            html=reminder_email_html(invoice, client, subscription, template_content),
            attachment=Attachment(invoice_filename(invoice), pdf, "application/pdf"),
            invoice=invoice,
            email_type="reminder",
        )

    def _company_sender(self, company_name: Optional[str]) -> Optional[str]:
        address = getattr(self.transport, "username", None)
        if company_name and address:
            return f'"{company_name}" <{address}>'
        return None


def list_email_logs(session: Session) -> List[Dict[str, Any]]:
    """Every EmailLog, newest first, with the related invoice number when known."""
    logs = session.exec(select(EmailLog).order_by(col(EmailLog.sent_at).desc())).all()
    invoice_ids = {log.invoice_id for log in logs if log.invoice_id}
    numbers = {}
    if invoice_ids:
        rows = session.exec(select(Invoice).where(col(Invoice.id).in_(invoice_ids))).all()
        numbers = {row.id: row.invoice_number for row in rows}
    result = []
    for log in logs:
        data = log.model_dump()
        data["invoice_number"] = numbers.get(log.invoice_id)
        result.append(data)
    return result
