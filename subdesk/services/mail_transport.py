# subdesk/services/mail_transport.py
"""
SMTP mail transport.

Builds a multipart message (plaintext + HTML alternative, optional binary
attachment) and hands it to the configured SMTP server. Any failure is
raised as TransportError; there is no retry.
"""
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from ..core.config import get_settings
from ..core.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class MailMessage:
    sender: Optional[str]
    to: str
    subject: str
    text: str
    html: str
    attachment: Optional[Attachment] = None

    def to_email_message(self, default_sender: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender or default_sender
        msg["To"] = self.to
        msg["Subject"] = self.subject
        msg.set_content(self.text)
        msg.add_alternative(self.html, subtype="html")

        if self.attachment:
            maintype, subtype = ("application", "octet-stream")
            if "/" in self.attachment.content_type:
                maintype, subtype = self.attachment.content_type.split("/", 1)
            msg.add_attachment(
                self.attachment.content,
                maintype=maintype,
                subtype=subtype,
                filename=self.attachment.filename,
            )
        return msg


class SmtpTransport:
    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: int = 30,
        from_name: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.from_name = from_name

    @classmethod
    def from_settings(cls) -> "SmtpTransport":
        settings = get_settings()
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_pass,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout,
            from_name=settings.company_name,
        )

    @property
    def default_sender(self) -> str:
        address = self.username or "no-reply@localhost"
        return f'"{self.from_name}" <{address}>' if self.from_name else address

    def send(self, message: MailMessage) -> None:
        email_message = message.to_email_message(self.default_sender)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(email_message)
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"Failed to send email to {message.to}: {e}") from e
        logger.debug(f"Mail '{message.subject}' delivered to {message.to}")
