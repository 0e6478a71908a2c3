"""Configurable fake payment processor for development and testing.

Simulates a processor without any external calls. Besides the plain
succeed/fail switch it can replay a script of confirmation statuses and
simulate outages, which covers duplicate webhooks, repeated declines and
retry behaviour in tests.
"""

from collections import deque
from uuid import uuid4

from storefront.errors import ProcessorUnavailable
from storefront.payment.processor.port import PaymentProcessor, ProcessorResult


class FakeProcessor(PaymentProcessor):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self._scripted: deque[str] = deque()
        self._outages: int = 0
        self._intents_by_key: dict[str, str] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        """Configure processor behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def script(self, *statuses: str) -> None:
        """Queue statuses returned by the next confirmations, in order."""
        self._scripted.extend(statuses)

    def fail_next(self, times: int = 1) -> None:
        """Make the next ``times`` calls raise ``ProcessorUnavailable``."""
        self._outages = times

    def _maybe_unavailable(self, method: str) -> None:
        if self._outages > 0:
            self._outages -= 1
            raise ProcessorUnavailable(f"Processor unavailable during {method}")

    def create_intent(
        self,
        amount: float,
        currency: str,
        metadata: dict,
        idempotency_key: str,
        timeout: float,
    ) -> str:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount,
                "currency": currency,
                "metadata": dict(metadata),
                "idempotency_key": idempotency_key,
                "timeout": timeout,
            }
        )
        self._maybe_unavailable("create_intent")

        # Same key, same intent: the way real processors dedupe retried requests
        if idempotency_key not in self._intents_by_key:
            self._intents_by_key[idempotency_key] = f"fake_pi_{uuid4().hex[:12]}"
        return self._intents_by_key[idempotency_key]

    def confirm(self, processor_intent_id: str, method_ref: str | None, timeout: float) -> ProcessorResult:
        self.calls.append(
            {
                "method": "confirm",
                "processor_intent_id": processor_intent_id,
                "method_ref": method_ref,
                "timeout": timeout,
            }
        )
        self._maybe_unavailable("confirm")

        if self._scripted:
            status = self._scripted.popleft()
        else:
            status = "succeeded" if self.should_succeed else "payment_failed"

        failure_reason = self.failure_reason if status in ("payment_failed", "canceled") else None
        return ProcessorResult(processor_intent_id=processor_intent_id, status=status, failure_reason=failure_reason)

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == "test-signature"

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]
