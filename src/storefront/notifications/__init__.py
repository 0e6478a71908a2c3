"""Notifier factory and the fire-and-forget event publisher.

Provides get_notifier() / set_notifier() to swap implementations:
- EmailNotifier by default, sending order emails through the email channel
- RecordingNotifier for tests
"""

from collections.abc import Iterable

import structlog

from storefront.notifications.port import Notifier

logger = structlog.get_logger(__name__)

_current_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Return the current notifier. Defaults to EmailNotifier."""
    global _current_notifier
    if _current_notifier is None:
        from storefront.notifications.order_email import EmailNotifier

        _current_notifier = EmailNotifier()
    return _current_notifier


def set_notifier(notifier: Notifier) -> None:
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    global _current_notifier
    _current_notifier = None


def publish_events(notifier: Notifier | None, events: Iterable) -> None:
    """Hand each event to ``notifier``. Delivery failures are logged, never raised."""
    notifier = notifier or get_notifier()
    for event in events:
        try:
            notifier.notify(event)
        except Exception as exc:
            logger.warning(
                "Notification failed",
                event_type=type(event).__name__,
                order_id=getattr(event, "order_id", None),
                error=str(exc),
            )


def pending_events(aggregate, *event_types) -> list:
    """Events raised on ``aggregate`` and not yet published, filtered by type."""
    return [event for event in aggregate._events if isinstance(event, event_types)]
