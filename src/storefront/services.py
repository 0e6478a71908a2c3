"""Wiring of the storefront services.

``build_services()`` assembles one set of collaborating services that share
their ledger, order store and the order and payment-intent locks. The API
layer reads the active set through ``get_services()``; tests replace it with
``set_services()``.
"""

from dataclasses import dataclass

from storefront.cart.service import CartService
from storefront.catalog.port import Catalog
from storefront.checkout.coordinator import CheckoutCoordinator
from storefront.checkout.sweep import ReservationSweeper
from storefront.config import Settings, get_settings
from storefront.inventory.ledger import InventoryLedger
from storefront.notifications.port import Notifier
from storefront.order.service import OrderService
from storefront.order.store import OrderStore
from storefront.payment.orchestrator import PaymentOrchestrator
from storefront.payment.processor.port import PaymentProcessor
from storefront.utils.locks import KeyedLocks


@dataclass
class Services:
    ledger: InventoryLedger
    carts: CartService
    orders: OrderStore
    order_service: OrderService
    payments: PaymentOrchestrator
    checkout: CheckoutCoordinator
    sweeper: ReservationSweeper


def build_services(
    catalog: Catalog | None = None,
    processor: PaymentProcessor | None = None,
    notifier: Notifier | None = None,
    settings: Settings | None = None,
) -> Services:
    settings = settings or get_settings()
    ledger = InventoryLedger(lock_timeout=settings.lock_timeout_seconds)
    carts = CartService(lock_timeout=settings.lock_timeout_seconds)
    orders = OrderStore()
    order_locks = KeyedLocks("order", timeout=settings.lock_timeout_seconds)
    intent_locks = KeyedLocks("payment-intent", timeout=settings.lock_timeout_seconds)
    order_service = OrderService(
        ledger, orders=orders, notifier=notifier, locks=order_locks, intent_locks=intent_locks
    )
    payments = PaymentOrchestrator(
        ledger,
        orders=orders,
        processor=processor,
        notifier=notifier,
        order_locks=order_locks,
        intent_locks=intent_locks,
        settings=settings,
    )
    checkout = CheckoutCoordinator(
        carts,
        ledger,
        payments,
        orders=orders,
        catalog=catalog,
        notifier=notifier,
        settings=settings,
    )
    sweeper = ReservationSweeper(ledger, order_service, orders=orders, settings=settings)
    return Services(
        ledger=ledger,
        carts=carts,
        orders=orders,
        order_service=order_service,
        payments=payments,
        checkout=checkout,
        sweeper=sweeper,
    )


_current_services: Services | None = None


def get_services() -> Services:
    global _current_services
    if _current_services is None:
        _current_services = build_services()
    return _current_services


def set_services(services: Services) -> None:
    global _current_services
    _current_services = services


def reset_services() -> None:
    global _current_services
    _current_services = None
