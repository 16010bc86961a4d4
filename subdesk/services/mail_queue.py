# subdesk/services/mail_queue.py
"""
In-process send queue.

Request handlers enqueue invoice emails instead of sending them inline; a
worker thread consumes the queue so request latency never depends on the
mail transport. Each task runs in its own database session and failures are
logged (the EmailLog row is the record of a failed send).
"""
import logging
import queue
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from sqlmodel import Session

from ..core.errors import TransportError
from ..models.client import Client
from ..models.invoice import Invoice
from ..models.subscription import Subscription
from .email_dispatcher import EmailDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceEmailTask:
    invoice_id: uuid.UUID


class MailQueue:
    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        transport_factory: Optional[Callable[[], object]] = None,
    ):
        self._queue: "queue.Queue[InvoiceEmailTask]" = queue.Queue()
        self._session_factory = session_factory
        self._transport_factory = transport_factory
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --- producer side ---
    def put(self, task: InvoiceEmailTask) -> None:
        self._queue.put(task)

    def enqueue_invoice_email(self, invoice_id: uuid.UUID) -> None:
        self.put(InvoiceEmailTask(invoice_id=invoice_id))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # --- consumer side ---
    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="mail-queue", daemon=True)
        self._thread.start()
        logger.info("Mail queue worker started")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Mail queue worker stopped")

    def process_pending(self) -> int:
        """Drain the queue on the calling thread. Returns the number of tasks handled."""
        handled = 0
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                return handled
            try:
                self._handle(task)
            finally:
                self._queue.task_done()
            handled += 1

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                task = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self._handle(task)
            finally:
                self._queue.task_done()

    def _new_session(self) -> Session:
        if self._session_factory is None:
            from ..db.engine_sync import new_session

            return new_session()
        return self._session_factory()

    def _handle(self, task: InvoiceEmailTask) -> None:
        try:
            with self._new_session() as session:
                invoice = session.get(Invoice, task.invoice_id)
                if not invoice:
                    logger.warning(f"Invoice {task.invoice_id} vanished before its email was sent")
                    return
                client = session.get(Client, invoice.client_id)
                subscription = session.get(Subscription, invoice.subscription_id)
                if not client or not subscription:
                    logger.warning(
                        f"Invoice {invoice.invoice_number}: client or subscription missing, email skipped"
                    )
                    return

                transport = self._transport_factory() if self._transport_factory else None
                dispatcher = EmailDispatcher(session, transport)
                dispatcher.send_invoice_email(invoice, client, subscription)
                logger.info(f"Invoice email for {invoice.invoice_number} sent to {client.email}")
        except TransportError as e:
            logger.error(f"Invoice email for {task.invoice_id} failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error sending invoice email {task.invoice_id}: {e}", exc_info=True)


mail_queue = MailQueue()
