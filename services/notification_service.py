# services/notification_service.py
"""
Notification Service - tells an order's owner about payment and completion events.

Delivery is best-effort: callers schedule notify() after their own commit and
nothing waits on the result.
"""
from typing import Optional

from config import Settings
from database import get_session_context
from logging_config import get_logger
from models import Order, Payment
from utils.email import send_email

logger = get_logger(__name__)

SUBJECTS = {
     "payment_completed": "Payment received for order #{order_id}",
     "order_closed": "Your order #{order_id} is complete",
}


class NotificationService:
     """Email notifications through the Brevo transactional API."""

     def __init__(self, settings: Settings, session_factory=get_session_context):
          self.settings = settings
          self.session_factory = session_factory

     def build_message(self, event_type: str, order: Order, payment: Optional[Payment] = None) -> tuple[str, str]:
          subject = SUBJECTS.get(event_type, "Update for order #{order_id}").format(order_id=order.id)
          name = order.customer.full_name if order.customer else ""
          lines = [f"<p>Hello {name or 'there'},</p>"]
          if event_type == "payment_completed" and payment is not None:
               lines.append(
                    f"<p>We received your payment of {payment.amount} {payment.currency} "
                    f"for order #{order.id}.</p>"
               )
               if payment.tx_hash:
                    lines.append(f"<p>Transaction: {payment.tx_hash}</p>")
          elif event_type == "order_closed":
               lines.append(f"<p>Work on order #{order.id} has been completed.</p>")
          else:
               lines.append(f"<p>Order #{order.id} has a new update.</p>")
          return subject, "\n".join(lines)

     def notify(self, event_type: str, order_id: int, payment_id: Optional[int] = None) -> bool:
          """
          Send ``event_type`` to the order's customer.

          Returns:
               True if an email was handed to the provider, False if skipped
          """
          if not self.settings.brevo_api_key:
               logger.info("notification_skipped", reason="no_api_key", event_type=event_type, order_id=order_id)
               return False

          with self.session_factory() as db:
               order = db.get(Order, order_id)
               if order is None or order.customer is None or not order.customer.email:
                    logger.info("notification_skipped", reason="no_recipient", event_type=event_type, order_id=order_id)
                    return False
               payment = db.get(Payment, payment_id) if payment_id is not None else None
               subject, html = self.build_message(event_type, order, payment)
               recipient = order.customer.email

          send_email(self.settings.brevo_api_key, self.settings.mail_sender, recipient, subject, html)
          logger.info("notification_sent", event_type=event_type, order_id=order_id, payment_id=payment_id)
          return True
