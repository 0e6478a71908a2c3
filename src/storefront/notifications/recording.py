"""Notifier that keeps events in memory for test assertions."""

from storefront.notifications.port import Notifier


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.events: list = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, event) -> None:
        if not self.should_succeed:
            raise RuntimeError(self.failure_reason)
        self.events.append(event)

    def of_type(self, event_cls) -> list:
        return [event for event in self.events if isinstance(event, event_cls)]

    def reset(self) -> None:
        self.events.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
