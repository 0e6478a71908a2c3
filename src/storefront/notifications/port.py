"""Notifier port: where the core hands off domain events for customer messaging."""

from abc import ABC, abstractmethod


class Notifier(ABC):
    @abstractmethod
    def notify(self, event) -> None:
        """Deliver one domain event. May raise; callers treat delivery as best effort."""
        ...
