"""Payment Orchestrator: bridges orders to the external processor's intent lifecycle.

Settlement rules:

- success: intent Succeeded, order PAID + CONFIRMED, reservations committed,
  OrderPaid published. A success for an order that is already PAID changes
  nothing.
- failure: intent Failed, order payment FAILED with the failure counted.
  Reservations stay put until the failure count reaches
  ``max_payment_attempts``; then the order is cancelled by the system and its
  stock released.
- anything else the processor reports (processing, requires_action, ...)
  leaves the order PENDING.
- success for an intent cancelled together with its order: the intent still
  becomes Succeeded and the order PAID but stays CANCELLED, and
  OrderPaymentCapturedAfterCancel tells the refund side to return the money.

Confirmations for one intent are serialized on the intent's id, so concurrent
duplicates from the processor cannot settle twice. Order cancellation takes
the same intent locks first, so it waits for a confirmation in flight.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.config import Settings, get_settings
from storefront.errors import (
    DuplicateIntent,
    InvalidTransition,
    LockTimeout,
    PaymentProcessorError,
    ProcessorRejected,
    ProcessorUnavailable,
)
from storefront.inventory.ledger import InventoryLedger
from storefront.notifications import pending_events, publish_events
from storefront.notifications.port import Notifier
from storefront.order.events import OrderCancelled, OrderPaid, OrderPaymentCapturedAfterCancel
from storefront.order.service import release_reservations
from storefront.order.state_machine import CancellationActor, PaymentStatus
from storefront.order.store import OrderStore
from storefront.payment.intent import IntentStatus, PaymentIntent, intents_for, open_intents_for
from storefront.payment.processor import get_processor
from storefront.payment.processor.port import PaymentProcessor
from storefront.utils.db import fetch_all, persist
from storefront.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)

_PAID_STATUSES = {"succeeded"}
_FAILED_STATUSES = {"payment_failed", "canceled", "failed"}
_PENDING_STATUSES = {
    "processing",
    "requires_action",
    "requires_capture",
    "requires_confirmation",
    "requires_payment_method",
}


def map_processor_status(status: str) -> PaymentStatus:
    """Translate the processor's status vocabulary into our payment status."""
    normalized = (status or "").lower()
    if normalized in _PAID_STATUSES:
        return PaymentStatus.PAID
    if normalized in _FAILED_STATUSES:
        return PaymentStatus.FAILED
    if normalized not in _PENDING_STATUSES:
        logger.warning("Unrecognized processor status treated as pending", status=status)
    return PaymentStatus.PENDING


def _log_retry(retry_state) -> None:
    logger.warning(
        "Payment processor unavailable, retrying",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )


class PaymentOrchestrator:
    def __init__(
        self,
        ledger: InventoryLedger,
        orders: OrderStore | None = None,
        processor: PaymentProcessor | None = None,
        notifier: Notifier | None = None,
        order_locks: KeyedLocks | None = None,
        intent_locks: KeyedLocks | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.ledger = ledger
        self.orders = orders or OrderStore()
        self._processor = processor
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.order_locks = order_locks or KeyedLocks("order", timeout=self.settings.lock_timeout_seconds)
        self.intent_locks = intent_locks or KeyedLocks("payment-intent", timeout=self.settings.lock_timeout_seconds)

    @property
    def processor(self) -> PaymentProcessor:
        return self._processor or get_processor()

    def _call_processor(self, operation, **kwargs):
        """Call the processor with a timeout, retrying while it reports itself unavailable."""
        retrying = Retrying(
            retry=retry_if_exception_type(ProcessorUnavailable),
            stop=stop_after_attempt(self.settings.processor_max_attempts),
            wait=wait_exponential(
                multiplier=self.settings.processor_backoff_seconds,
                max=self.settings.processor_backoff_max_seconds,
            ),
            before_sleep=_log_retry,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                return operation(timeout=self.settings.processor_timeout_seconds, **kwargs)

    # -------------------------------------------------------------------
    # Intents
    # -------------------------------------------------------------------
    def create_intent(self, order_id, method_ref=None) -> PaymentIntent:
        """Open a new payment attempt for an order.

        Raises ``DuplicateIntent`` while another attempt is still open.
        """
        with self.order_locks.hold(str(order_id)):
            order = self.orders.get(order_id)
            if order.is_cancelled:
                raise InvalidTransition(
                    order.fulfillment_status,
                    PaymentStatus.PENDING.value,
                    field="fulfillment_status",
                    detail=f"Order {order.order_number} is cancelled",
                )
            if order.is_paid:
                raise InvalidTransition(
                    order.payment_status,
                    PaymentStatus.PENDING.value,
                    field="payment_status",
                    detail=f"Order {order.order_number} is already paid",
                )

            open_intents = open_intents_for(order.id)
            if open_intents:
                raise DuplicateIntent(str(order.id), str(open_intents[0].id))

            attempt_number = len(intents_for(order.id)) + 1
            try:
                processor_intent_id = self._call_processor(
                    self.processor.create_intent,
                    amount=order.pricing.total,
                    currency=order.pricing.currency,
                    metadata={"order_id": str(order.id), "order_number": order.order_number},
                    idempotency_key=f"{order.id}:{attempt_number}",
                )
            except PaymentProcessorError as exc:
                exc.order_id = str(order.id)
                exc.order_number = order.order_number
                logger.error(
                    "Payment intent creation failed",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    error=str(exc),
                )
                raise

            if order.payment_status == PaymentStatus.FAILED.value:
                order.reopen_payment()

            intent = PaymentIntent.create(
                order_id=str(order.id),
                amount=order.pricing.total,
                currency=order.pricing.currency,
                processor_intent_id=processor_intent_id,
                attempt_number=attempt_number,
                method_ref=method_ref,
            )
            persist(intent, order)

        logger.info(
            "Payment intent created",
            intent_id=str(intent.id),
            order_id=str(order.id),
            attempt=attempt_number,
        )
        return intent

    def confirm(self, intent_id, method_ref=None) -> PaymentIntent:
        """Ask the processor to collect payment on an intent and settle the order.

        Confirming an intent that has already settled returns it unchanged.
        """
        with self.intent_locks.hold(str(intent_id)):
            intent = self.get_intent(intent_id)
            if intent.is_terminal:
                logger.info("Duplicate confirmation ignored", intent_id=str(intent.id), status=intent.status)
                return intent

            if method_ref:
                intent.attach_method(method_ref)

            try:
                result = self._call_processor(
                    self.processor.confirm,
                    processor_intent_id=intent.processor_intent_id,
                    method_ref=intent.method_ref,
                )
                status, reason = result.status, result.failure_reason
            except ProcessorRejected as exc:
                status, reason = "payment_failed", str(exc)
            except ProcessorUnavailable as exc:
                order = self.orders.get(intent.order_id)
                exc.order_id = str(order.id)
                exc.order_number = order.order_number
                logger.error("Payment confirmation unavailable", intent_id=str(intent.id), error=str(exc))
                raise

            # The order may have been cancelled while the processor was working
            method_ref = intent.method_ref
            intent = self.get_intent(intent_id)
            intent.method_ref = method_ref
            return self._settle(intent, status, reason)

    def apply_processor_status(self, processor_intent_id, status, failure_reason=None) -> PaymentIntent:
        """Settle an intent from a processor callback (webhook)."""
        matches = fetch_all(PaymentIntent, processor_intent_id=str(processor_intent_id))
        if not matches:
            raise ValidationError({"processor_intent_id": [f"Unknown processor intent {processor_intent_id}"]})

        with self.intent_locks.hold(str(matches[0].id)):
            intent = self.get_intent(matches[0].id)
            return self._settle(intent, status, failure_reason)

    def get_intent(self, intent_id) -> PaymentIntent:
        return current_domain.repository_for(PaymentIntent).get(str(intent_id))

    # -------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------
    def _settle(self, intent: PaymentIntent, status: str, reason=None) -> PaymentIntent:
        outcome = map_processor_status(status)

        if intent.is_terminal:
            if outcome == PaymentStatus.PAID and intent.status == IntentStatus.CANCELED.value:
                return self._record_late_capture(intent)
            logger.info(
                "Processor status for settled intent ignored",
                intent_id=str(intent.id),
                status=intent.status,
                reported=status,
            )
            return intent

        if outcome == PaymentStatus.PENDING:
            if intent.status != IntentStatus.PROCESSING.value:
                intent.mark_processing()
            persist(intent)
            logger.info("Payment still pending", intent_id=str(intent.id), processor_status=status)
            return intent

        newly_paid = False
        auto_cancelled = False
        with self.order_locks.hold(str(intent.order_id)):
            order = self.orders.get(intent.order_id)

            if outcome == PaymentStatus.PAID:
                intent.mark_succeeded()
                newly_paid = order.confirm_payment(intent.id, amount=intent.amount)
            else:
                intent.mark_failed(reason)
                failures = order.record_payment_failure(intent.id, reason)
                if failures >= self.settings.max_payment_attempts:
                    order.cancel(
                        reason=f"Payment failed after {failures} attempts",
                        cancelled_by=CancellationActor.SYSTEM.value,
                    )
                    auto_cancelled = True

            events = pending_events(order, OrderPaid, OrderCancelled)
            persist(intent, order)

        # Payment is recorded at this point; stock bookkeeping must not stop the events
        try:
            if newly_paid:
                self._commit_reservations(order)
                logger.info(
                    "Order paid", order_id=str(order.id), order_number=order.order_number, intent_id=str(intent.id)
                )
            elif outcome == PaymentStatus.PAID:
                logger.info(
                    "Order already paid; confirmation ignored", order_id=str(order.id), intent_id=str(intent.id)
                )
            else:
                logger.warning(
                    "Payment failed",
                    order_id=str(order.id),
                    intent_id=str(intent.id),
                    reason=reason,
                    failures=order.failed_payment_count,
                )

            if auto_cancelled:
                released = release_reservations(self.ledger, order)
                logger.warning(
                    "Order cancelled after repeated payment failures",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    reservations_released=released,
                )
        finally:
            publish_events(self.notifier, events)
        return intent

    def _commit_reservations(self, order) -> int:
        """Commit each of the order's reservations, logging the ones that cannot be committed."""
        committed = 0
        for handle in order.reservation_handles():
            try:
                if self.ledger.commit(handle):
                    committed += 1
            except (ValidationError, LockTimeout) as exc:
                logger.error(
                    "Reservation could not be committed for a paid order",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    unit_id=handle.unit_id,
                    reservation_id=handle.reservation_id,
                    error=str(exc),
                )
        return committed

    def _record_late_capture(self, intent: PaymentIntent) -> PaymentIntent:
        """The processor took the money after the order was cancelled: record it for a refund."""
        with self.order_locks.hold(str(intent.order_id)):
            order = self.orders.get(intent.order_id)
            intent.record_late_capture()
            order.record_capture_after_cancel(intent.id, amount=intent.amount)
            events = pending_events(order, OrderPaymentCapturedAfterCancel)
            persist(intent, order)

        logger.error(
            "Payment captured for a cancelled order; refund required",
            order_id=str(order.id),
            order_number=order.order_number,
            intent_id=str(intent.id),
            amount=intent.amount,
        )
        publish_events(self.notifier, events)
        return intent
