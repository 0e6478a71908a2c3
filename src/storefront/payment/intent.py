"""PaymentIntent aggregate (CQRS): one attempt to collect payment for an order.

An order accumulates intents over its life, one per attempt. At most one of
them is open (not Succeeded, Failed or Canceled) at any time; the payment
orchestrator enforces that when it creates intents.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront
from storefront.errors import InvalidTransition
from storefront.payment.events import (
    PaymentIntentCanceled,
    PaymentIntentCreated,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
)
from storefront.utils.db import fetch_all


class IntentStatus(Enum):
    REQUIRES_CONFIRMATION = "Requires_Confirmation"
    PROCESSING = "Processing"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"


TERMINAL_STATUSES = {IntentStatus.SUCCEEDED, IntentStatus.FAILED, IntentStatus.CANCELED}


@storefront.aggregate
class PaymentIntent:
    order_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    status = String(choices=IntentStatus, default=IntentStatus.REQUIRES_CONFIRMATION.value)
    processor_intent_id = String(max_length=255)
    method_ref = String(max_length=255)
    failure_reason = String(max_length=500)
    attempt_number = Integer(default=1, min_value=1)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, order_id, amount, currency, processor_intent_id, attempt_number=1, method_ref=None):
        now = datetime.now(UTC)
        intent = cls(
            order_id=order_id,
            amount=amount,
            currency=currency,
            processor_intent_id=processor_intent_id,
            method_ref=method_ref,
            attempt_number=attempt_number,
            status=IntentStatus.REQUIRES_CONFIRMATION.value,
            created_at=now,
            updated_at=now,
        )
        intent.raise_(
            PaymentIntentCreated(
                intent_id=str(intent.id),
                order_id=str(order_id),
                processor_intent_id=processor_intent_id,
                amount=amount,
                currency=currency,
                attempt_number=attempt_number,
                created_at=now,
            )
        )
        return intent

    @property
    def is_terminal(self):
        return IntentStatus(self.status) in TERMINAL_STATUSES

    def _assert_open(self, target):
        if self.is_terminal:
            raise InvalidTransition(self.status, target.value)

    def mark_processing(self):
        self._assert_open(IntentStatus.PROCESSING)
        self.status = IntentStatus.PROCESSING.value
        self.updated_at = datetime.now(UTC)

    def mark_succeeded(self):
        self._assert_open(IntentStatus.SUCCEEDED)
        self._succeed()

    def record_late_capture(self):
        """Succeed a cancelled intent whose payment the processor captured anyway."""
        if self.status != IntentStatus.CANCELED.value:
            raise InvalidTransition(self.status, IntentStatus.SUCCEEDED.value)
        self._succeed()

    def _succeed(self):
        now = datetime.now(UTC)
        self.status = IntentStatus.SUCCEEDED.value
        self.updated_at = now
        self.raise_(
            PaymentIntentSucceeded(
                intent_id=str(self.id),
                order_id=str(self.order_id),
                processor_intent_id=self.processor_intent_id,
                succeeded_at=now,
            )
        )

    def mark_failed(self, reason=None):
        self._assert_open(IntentStatus.FAILED)
        now = datetime.now(UTC)
        self.status = IntentStatus.FAILED.value
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(
            PaymentIntentFailed(intent_id=str(self.id), order_id=str(self.order_id), reason=reason, failed_at=now)
        )

    def cancel(self, reason=None):
        self._assert_open(IntentStatus.CANCELED)
        now = datetime.now(UTC)
        self.status = IntentStatus.CANCELED.value
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(
            PaymentIntentCanceled(intent_id=str(self.id), order_id=str(self.order_id), reason=reason, canceled_at=now)
        )

    def attach_method(self, method_ref):
        if not method_ref:
            raise ValidationError({"method_ref": ["A payment method is required to confirm"]})
        self.method_ref = method_ref


def intents_for(order_id) -> list[PaymentIntent]:
    """Every intent recorded for the order, oldest attempt first."""
    return sorted(fetch_all(PaymentIntent, order_id=str(order_id)), key=lambda intent: intent.attempt_number)


def open_intents_for(order_id) -> list[PaymentIntent]:
    return [intent for intent in intents_for(order_id) if not intent.is_terminal]
