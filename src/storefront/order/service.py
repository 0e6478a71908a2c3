"""Administrative order transitions: cancellation and fulfillment advances.

Cancelling also closes any payment intent still open for the order and hands
the order's reserved stock back to the ledger.
"""

import structlog

from storefront.config import get_settings
from storefront.inventory.ledger import InventoryLedger
from storefront.notifications import pending_events, publish_events
from storefront.notifications.port import Notifier
from storefront.order.events import OrderCancelled
from storefront.order.order import Order
from storefront.order.state_machine import CancellationActor
from storefront.order.store import OrderStore
from storefront.payment.intent import PaymentIntent, open_intents_for
from storefront.utils.db import persist
from storefront.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)


def release_reservations(ledger: InventoryLedger, order: Order) -> int:
    """Return every reservation the order holds to stock. Returns how many changed."""
    released = 0
    for handle in order.reservation_handles():
        if ledger.return_to_stock(handle):
            released += 1
    return released


class OrderService:
    def __init__(
        self,
        ledger: InventoryLedger,
        orders: OrderStore | None = None,
        notifier: Notifier | None = None,
        locks: KeyedLocks | None = None,
        intent_locks: KeyedLocks | None = None,
    ) -> None:
        timeout = get_settings().lock_timeout_seconds
        self.ledger = ledger
        self.orders = orders or OrderStore()
        self.notifier = notifier
        self.locks = locks or KeyedLocks("order", timeout=timeout)
        self.intent_locks = intent_locks or KeyedLocks("payment-intent", timeout=timeout)

    def cancel(self, order_id, reason, cancelled_by=CancellationActor.CUSTOMER.value, refunded=None) -> Order:
        """Cancel an order, its open payment intents and its reservations.

        The intents' locks are taken before the order's, the same order the
        payment orchestrator uses, so a confirmation in flight finishes first.
        """
        while True:
            intent_ids = {str(intent.id) for intent in open_intents_for(order_id)}
            with self.intent_locks.hold(*intent_ids), self.locks.hold(str(order_id)):
                intents: list[PaymentIntent] = open_intents_for(order_id)
                if not {str(intent.id) for intent in intents} <= intent_ids:
                    # An intent was opened before we got the order lock
                    continue

                order = self.orders.get(order_id)
                order.cancel(reason=reason, cancelled_by=cancelled_by, refunded=refunded)
                events = pending_events(order, OrderCancelled)
                for intent in intents:
                    intent.cancel(reason)
                persist(order, *intents)
                break

        released = release_reservations(self.ledger, order)
        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            cancelled_by=cancelled_by,
            reservations_released=released,
        )
        publish_events(self.notifier, events)
        return order

    def _advance(self, order_id, action) -> Order:
        with self.locks.hold(str(order_id)):
            order = self.orders.get(order_id)
            getattr(order, action)()
            persist(order)
        logger.info("Order fulfillment advanced", order_id=str(order.id), status=order.fulfillment_status)
        return order

    def mark_processing(self, order_id) -> Order:
        return self._advance(order_id, "mark_processing")

    def mark_shipped(self, order_id) -> Order:
        """Ship the order. Its sold stock can no longer come back, so the reservations are closed."""
        order = self._advance(order_id, "mark_shipped")
        for handle in order.reservation_handles():
            self.ledger.close(handle)
        return order

    def mark_delivered(self, order_id) -> Order:
        return self._advance(order_id, "mark_delivered")
