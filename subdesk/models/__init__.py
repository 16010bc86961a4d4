from .broadcast import BroadcastSchedule
from .client import Client
from .email_log import EmailLog
from .invoice import Invoice, InvoiceSequence
from .reminder_template import ReminderTemplate
from .subscription import Subscription
from .user import User
