"""Tests for the PaymentIntent aggregate and processor status mapping."""

import pytest
from protean.exceptions import ValidationError

from storefront.errors import InvalidTransition
from storefront.order.state_machine import PaymentStatus
from storefront.payment.events import (
    PaymentIntentCanceled,
    PaymentIntentCreated,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
)
from storefront.payment.intent import IntentStatus, PaymentIntent
from storefront.payment.orchestrator import map_processor_status


def _intent():
    return PaymentIntent.create(
        order_id="order-1",
        amount=42.0,
        currency="USD",
        processor_intent_id="fake_pi_1",
        attempt_number=1,
    )


class TestIntentLifecycle:
    def test_created_intent_awaits_confirmation(self):
        intent = _intent()
        assert intent.status == IntentStatus.REQUIRES_CONFIRMATION.value
        assert not intent.is_terminal
        assert isinstance(intent._events[-1], PaymentIntentCreated)

    def test_succeeded(self):
        intent = _intent()
        intent.mark_processing()
        intent.mark_succeeded()

        assert intent.status == IntentStatus.SUCCEEDED.value
        assert intent.is_terminal
        assert isinstance(intent._events[-1], PaymentIntentSucceeded)

    def test_failed_keeps_reason(self):
        intent = _intent()
        intent.mark_failed("Card declined")

        assert intent.failure_reason == "Card declined"
        assert isinstance(intent._events[-1], PaymentIntentFailed)

    def test_canceled(self):
        intent = _intent()
        intent.cancel("Order cancelled")
        assert intent.status == IntentStatus.CANCELED.value
        assert isinstance(intent._events[-1], PaymentIntentCanceled)

    @pytest.mark.parametrize("settle", ["mark_succeeded", "mark_failed", "cancel", "mark_processing"])
    def test_terminal_intent_cannot_change(self, settle):
        intent = _intent()
        intent.mark_succeeded()
        with pytest.raises(InvalidTransition):
            getattr(intent, settle)()
        assert intent.status == IntentStatus.SUCCEEDED.value

    def test_late_capture_succeeds_cancelled_intent(self):
        intent = _intent()
        intent.cancel("Order cancelled")
        intent.record_late_capture()

        assert intent.status == IntentStatus.SUCCEEDED.value
        assert isinstance(intent._events[-1], PaymentIntentSucceeded)

    @pytest.mark.parametrize("settle", [None, "mark_succeeded", "mark_failed"])
    def test_late_capture_only_applies_to_cancelled_intents(self, settle):
        intent = _intent()
        if settle:
            getattr(intent, settle)()
        status = intent.status

        with pytest.raises(InvalidTransition):
            intent.record_late_capture()
        assert intent.status == status

    def test_attach_method_requires_a_value(self):
        intent = _intent()
        with pytest.raises(ValidationError):
            intent.attach_method("")
        intent.attach_method("pm_card_visa")
        assert intent.method_ref == "pm_card_visa"


class TestProcessorStatusMapping:
    @pytest.mark.parametrize("status", ["succeeded", "SUCCEEDED"])
    def test_paid(self, status):
        assert map_processor_status(status) == PaymentStatus.PAID

    @pytest.mark.parametrize("status", ["payment_failed", "canceled", "failed"])
    def test_failed(self, status):
        assert map_processor_status(status) == PaymentStatus.FAILED

    @pytest.mark.parametrize("status", ["processing", "requires_action", "something_new", ""])
    def test_everything_else_stays_pending(self, status):
        assert map_processor_status(status) == PaymentStatus.PENDING
