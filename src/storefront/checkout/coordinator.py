"""Checkout Transaction Coordinator.

Turns an owner's cart into a PENDING order and opens the first payment
intent:

1. snapshot the cart (``EmptyCart`` when there is nothing to buy)
2. reserve stock per line in ascending unit order
3. copy current catalog prices onto the order lines and total them
   (prices and addresses are also checked before step 2, so bad input never
   touches stock)
4. store the order together with the emptied cart and the order-number
   counter in one unit of work
5. open a payment intent

Until step 4 commits, any failure, including the caller aborting, releases
every reservation taken so far. Once the order exists it is never rolled
back: a processor outage in step 5 is raised to the caller with the order
attached, and the order waits in PENDING for a retry or the sweeper.
"""

import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4

import structlog

from storefront.cart.cart import CartOwner
from storefront.cart.service import CartLineView, CartService
from storefront.catalog import get_catalog
from storefront.catalog.port import Catalog, CatalogEntry
from storefront.config import Settings, get_settings
from storefront.errors import CheckoutAborted, EmptyCart, InsufficientStock
from storefront.inventory.ledger import InventoryLedger, ReservationHandle
from storefront.notifications import pending_events, publish_events
from storefront.notifications.port import Notifier
from storefront.order.events import OrderCreated
from storefront.order.numbering import OrderNumberAllocator
from storefront.order.order import Address, Order, compute_pricing
from storefront.order.store import OrderStore
from storefront.payment.intent import PaymentIntent
from storefront.payment.orchestrator import PaymentOrchestrator
from storefront.utils.db import persist

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    intent: PaymentIntent



@dataclass(frozen=True)
class CartIssue:
    """A cart line that checkout would currently reject."""

    unit_id: str
    requested: int
    available: int
    message: str


class CheckoutCoordinator:
    def __init__(
        self,
        carts: CartService,
        ledger: InventoryLedger,
        payments: PaymentOrchestrator,
        orders: OrderStore | None = None,
        catalog: Catalog | None = None,
        numbering: OrderNumberAllocator | None = None,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.carts = carts
        self.ledger = ledger
        self.payments = payments
        self.orders = orders or OrderStore()
        self._catalog = catalog
        self.settings = settings or get_settings()
        self.numbering = numbering or OrderNumberAllocator(lock_timeout=self.settings.lock_timeout_seconds)
        self.notifier = notifier

    @property
    def catalog(self) -> Catalog:
        return self._catalog or get_catalog()

    def checkout(
        self,
        owner: CartOwner,
        shipping_address: dict,
        billing_address: dict | None = None,
        payment_method_ref: str | None = None,
        email: str | None = None,
        tax: float = 0.0,
        shipping: float = 0.0,
        discount: float = 0.0,
        cancel_event: threading.Event | None = None,
    ) -> CheckoutResult:
        with self.carts.locks.hold(owner.key):
            lines = self.carts.snapshot(owner)
            if not lines:
                raise EmptyCart(owner.key)

            # Everything that can be rejected up front is checked before touching stock
            entries = self._price_lines(lines)
            Address(**shipping_address)
            if billing_address:
                Address(**billing_address)
            self._snapshot_prices(lines, entries, tax, shipping, discount)

            attempt_id = uuid4().hex
            handles = self._reserve(owner, lines, entries, attempt_id, cancel_event)
            try:
                self._check_not_aborted(owner, cancel_event)
                # Prices are read once the stock is held
                priced, pricing = self._snapshot_prices(lines, self._price_lines(lines), tax, shipping, discount)
                order, events = self._place_order(
                    owner, priced, handles, pricing, shipping_address, billing_address, email
                )
            except BaseException:
                self._release_all(handles)
                raise

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            owner=owner.key,
            total=order.pricing.total,
        )
        publish_events(self.notifier, events)

        intent = self.payments.create_intent(order.id, method_ref=payment_method_ref)
        return CheckoutResult(order=order, intent=intent)

    def validate_cart(self, owner: CartOwner) -> list[CartIssue]:
        """Check the cart against the catalog and current stock without reserving anything.

        Units that are not inventory-tracked are always available.
        """
        issues = []
        for line in self.carts.snapshot(owner):
            entry = self.catalog.lookup(line.unit_id)
            if entry is None:
                issues.append(CartIssue(line.unit_id, line.quantity, 0, "No longer available"))
                continue
            if not entry.tracked:
                continue
            available = self.ledger.available(line.unit_id)
            if available == 0:
                issues.append(CartIssue(line.unit_id, line.quantity, 0, "Out of stock"))
            elif line.quantity > available:
                issues.append(CartIssue(line.unit_id, line.quantity, available, f"Only {available} available"))
        return issues

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def _price_lines(self, lines: list[CartLineView]) -> dict[str, CatalogEntry]:
        entries = {}
        missing = []
        for line in lines:
            entry = self.catalog.lookup(line.unit_id)
            if entry is None:
                missing.append(line.unit_id)
            else:
                entries[line.unit_id] = entry
        if missing:
            raise InsufficientStock(missing, detail=f"No longer for sale: {', '.join(sorted(missing))}")
        return entries

    def _snapshot_prices(self, lines, entries, tax, shipping, discount):
        priced = [
            {"unit_id": line.unit_id, "quantity": line.quantity, "unit_price": entries[line.unit_id].price}
            for line in lines
        ]
        pricing = compute_pricing(
            priced, tax=tax, shipping=shipping, discount=discount, currency=self.settings.currency
        )
        return priced, pricing

    def _reserve(self, owner, lines, entries, attempt_id, cancel_event) -> dict[str, ReservationHandle]:
        tracked = sorted((line for line in lines if entries[line.unit_id].tracked), key=lambda line: line.unit_id)
        handles: dict[str, ReservationHandle] = {}
        try:
            for index, line in enumerate(tracked):
                self._check_not_aborted(owner, cancel_event)
                try:
                    handles[line.unit_id] = self.ledger.reserve(line.unit_id, line.quantity, reference=attempt_id)
                except InsufficientStock as exc:
                    short = set(exc.unit_ids)
                    short.update(
                        later.unit_id
                        for later in tracked[index + 1 :]
                        if self.ledger.available(later.unit_id) < later.quantity
                    )
                    logger.info("Checkout short on stock", owner=owner.key, unit_ids=sorted(short))
                    raise InsufficientStock(short) from exc
        except BaseException:
            self._release_all(handles)
            raise
        return handles

    def _place_order(self, owner, priced, handles, pricing, shipping_address, billing_address, email):
        now = datetime.now(UTC)
        order_lines = [
            {**line, "reservation_id": handles[line["unit_id"]].reservation_id if line["unit_id"] in handles else None}
            for line in priced
        ]

        with self.numbering.hold(now):
            sequence = self.numbering.sequence_for(now)
            order = Order.create(
                order_number=sequence.next_number(),
                owner_key=owner.key,
                user_id=owner.user_id,
                email=email,
                lines=order_lines,
                shipping_address=shipping_address,
                billing_address=billing_address,
                pricing=pricing,
            )
            events = pending_events(order, OrderCreated)

            cart = self.carts.active_cart(owner)
            cart.convert(order.id)
            persist(sequence, order, cart)

        return order, events

    def _release_all(self, handles: dict[str, ReservationHandle]) -> None:
        for handle in reversed(list(handles.values())):
            try:
                self.ledger.release(handle)
            except Exception as exc:
                # The sweeper picks up whatever is left behind
                logger.error(
                    "Failed to release reservation during rollback",
                    unit_id=handle.unit_id,
                    reservation_id=handle.reservation_id,
                    error=str(exc),
                )
        handles.clear()

    @staticmethod
    def _check_not_aborted(owner: CartOwner, cancel_event: threading.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CheckoutAborted(owner.key)
