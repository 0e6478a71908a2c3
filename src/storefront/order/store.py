"""Order store: loading, saving and querying orders.

Passed explicitly into the checkout coordinator and payment orchestrator so
the persistence behind orders can be swapped without touching them.
"""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.cart.cart import CartOwner
from storefront.order.order import Order
from storefront.order.state_machine import FulfillmentStatus, PaymentStatus
from storefront.utils.db import fetch_all, persist


@dataclass(frozen=True)
class OrderSummary:
    total_orders: int
    total_revenue: float
    pending_orders: int
    completed_orders: int
    average_order_value: float


class OrderStore:
    def get(self, order_id) -> Order:
        """Load an order by id. Raises ``ObjectNotFoundError`` when missing."""
        return current_domain.repository_for(Order).get(str(order_id))

    def find_by_number(self, order_number) -> Order | None:
        matches = fetch_all(Order, order_number=str(order_number))
        if not matches:
            return None
        return self.get(matches[0].id)

    def list_for_owner(self, owner: CartOwner, status=None, payment_status=None) -> list[Order]:
        """Orders placed by ``owner``, newest first, optionally filtered by status."""
        filters = {"owner_key": owner.key}
        if status:
            filters["fulfillment_status"] = FulfillmentStatus(status).value
        if payment_status:
            filters["payment_status"] = PaymentStatus(payment_status).value
        orders = fetch_all(Order, **filters)
        return sorted(orders, key=lambda order: order.created_at, reverse=True)

    def list_by_status(self, status) -> list[Order]:
        return fetch_all(Order, fulfillment_status=FulfillmentStatus(status).value)

    def all(self) -> list[Order]:
        return fetch_all(Order)

    def summary(self, owner: CartOwner) -> OrderSummary:
        orders = self.list_for_owner(owner)
        paid = [order for order in orders if order.payment_status == PaymentStatus.PAID.value]
        revenue = round(sum(order.pricing.total for order in paid), 2)
        return OrderSummary(
            total_orders=len(orders),
            total_revenue=revenue,
            pending_orders=sum(1 for o in orders if o.fulfillment_status == FulfillmentStatus.PENDING.value),
            completed_orders=sum(1 for o in orders if o.fulfillment_status == FulfillmentStatus.DELIVERED.value),
            average_order_value=round(revenue / len(paid), 2) if paid else 0.0,
        )

    def save(self, *orders: Order) -> None:
        persist(*orders)

    def exists(self, order_id) -> bool:
        try:
            self.get(order_id)
        except ObjectNotFoundError:
            return False
        return True
