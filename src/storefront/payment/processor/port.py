"""Payment processor port (abstract interface).

Defines the contract that processor adapters implement. Adapters raise
``ProcessorUnavailable`` for transient trouble (timeouts, 5xx, rate limits)
and ``ProcessorRejected`` when the processor refuses a request outright.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProcessorResult:
    """Outcome of a confirmation, in the processor's own status vocabulary."""

    processor_intent_id: str
    status: str
    failure_reason: str | None = None


class PaymentProcessor(ABC):
    @abstractmethod
    def create_intent(
        self,
        amount: float,
        currency: str,
        metadata: dict,
        idempotency_key: str,
        timeout: float,
    ) -> str:
        """Open a payment intent with the processor and return its id."""
        ...

    @abstractmethod
    def confirm(
        self,
        processor_intent_id: str,
        method_ref: str | None,
        timeout: float,
    ) -> ProcessorResult:
        """Attempt to collect payment on an intent."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the processor."""
        ...
