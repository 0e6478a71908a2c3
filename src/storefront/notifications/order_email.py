"""Email notifier: turns order events into customer emails.

Only events that carry an email address produce a message; everything else
is ignored. A channel that reports a failed send raises, which the event
publisher logs and swallows.
"""

import structlog

from storefront.notifications.channel import get_email_channel
from storefront.notifications.channel.email_port import EmailPort
from storefront.notifications.port import Notifier
from storefront.order.events import OrderCancelled, OrderCreated, OrderPaid

logger = structlog.get_logger(__name__)


def _order_received(event: OrderCreated) -> tuple[str, str]:
    return (
        f"Order {event.order_number} received",
        f"Thanks for your order {event.order_number}. "
        f"Total: {event.total:.2f} {event.currency}. We will confirm once payment completes.",
    )


def _order_confirmed(event: OrderPaid) -> tuple[str, str]:
    return (
        f"Order {event.order_number} confirmed",
        f"Payment of {event.amount:.2f} {event.currency} received. Your order {event.order_number} is confirmed.",
    )


def _order_cancelled(event: OrderCancelled) -> tuple[str, str]:
    return (
        f"Order {event.order_number} cancelled",
        f"Your order {event.order_number} was cancelled: {event.reason}.",
    )


_TEMPLATES = {
    OrderCreated: _order_received,
    OrderPaid: _order_confirmed,
    OrderCancelled: _order_cancelled,
}


class EmailNotifier(Notifier):
    def __init__(self, channel: EmailPort | None = None) -> None:
        self._channel = channel

    @property
    def channel(self) -> EmailPort:
        return self._channel or get_email_channel()

    def notify(self, event) -> None:
        template = _TEMPLATES.get(type(event))
        if template is None or not getattr(event, "email", None):
            return

        subject, body = template(event)
        result = self.channel.send(to=event.email, subject=subject, body=body)
        if result.get("status") != "sent":
            raise RuntimeError(result.get("error") or "Email delivery failed")
        logger.info("Order email sent", order_number=event.order_number, subject=subject)
