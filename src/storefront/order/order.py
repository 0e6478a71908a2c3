"""Order aggregate (CQRS): an immutable purchase snapshot plus two mutable statuses.

Lines, prices, addresses and totals are copied in at checkout and never
recomputed. What changes afterwards is the fulfillment status and the payment
status, and only through the transitions in ``storefront.order.state_machine``.
Orders are never deleted; cancellation is a status.
"""

import json
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from storefront.domain import storefront
from storefront.errors import InvalidTransition
from storefront.inventory.ledger import ReservationHandle
from storefront.order.events import (
    OrderCancelled,
    OrderCreated,
    OrderFulfillmentAdvanced,
    OrderPaid,
    OrderPaymentCapturedAfterCancel,
    OrderPaymentFailed,
    OrderPaymentReopened,
)
from storefront.order.state_machine import (
    CancellationActor,
    FulfillmentStatus,
    PaymentStatus,
    assert_transition,
)

_CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_pricing(lines, tax=0.0, shipping=0.0, discount=0.0, currency="USD"):
    """Totals for ``lines`` (dicts with quantity and unit_price) and the caller-supplied extras."""
    errors = {}
    for name, value in (("tax", tax), ("shipping", shipping), ("discount", discount)):
        if value is None or value < 0:
            errors[name] = [f"{name.capitalize()} cannot be negative"]
    if errors:
        raise ValidationError(errors)

    subtotal = sum((_money(line["unit_price"]) * line["quantity"] for line in lines), Decimal("0"))
    total = subtotal + _money(tax) + _money(shipping) - _money(discount)
    if total < 0:
        raise ValidationError({"discount": ["Discount cannot exceed the order amount"]})

    return {
        "subtotal": float(subtotal),
        "tax": float(_money(tax)),
        "shipping": float(_money(shipping)),
        "discount": float(_money(discount)),
        "total": float(total),
        "currency": currency,
    }


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class Address:
    """Shipping or billing address as captured at checkout."""

    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    company = String(max_length=255)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=30)


@storefront.value_object(part_of="Order")
class OrderPricing:
    subtotal = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="USD")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderLine:
    """One purchased unit with the price it sold at."""

    unit_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(required=True, min_value=0.0)
    reservation_id = Identifier()  # Empty for units that are not inventory-tracked


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=32, unique=True)
    user_id = Identifier()  # Empty for guest orders
    email = String(max_length=255)
    owner_key = String(required=True, max_length=300)
    lines = HasMany(OrderLine)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    pricing = ValueObject(OrderPricing)
    fulfillment_status = String(choices=FulfillmentStatus, default=FulfillmentStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    failed_payment_count = Integer(default=0)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=50)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cancelled_orders_record_a_reason(self):
        if self.fulfillment_status == FulfillmentStatus.CANCELLED.value and not self.cancellation_reason:
            raise ValidationError({"cancellation_reason": ["A cancelled order must record why"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number,
        owner_key,
        lines,
        shipping_address,
        pricing,
        billing_address=None,
        user_id=None,
        email=None,
    ):
        """Place an order from checkout data.

        Args:
            order_number: Human-legible unique number.
            owner_key: Key of the cart owner that checked out.
            lines: List of dicts with unit_id, quantity, unit_price and
                   (for tracked units) reservation_id.
            shipping_address: Dict of Address fields.
            pricing: Dict as returned by ``compute_pricing``.
            billing_address: Dict of Address fields; defaults to shipping.
        """
        if not lines:
            raise ValidationError({"lines": ["An order needs at least one line"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            owner_key=owner_key,
            user_id=user_id,
            email=email,
            shipping_address=Address(**shipping_address),
            billing_address=Address(**(billing_address or shipping_address)),
            pricing=OrderPricing(**pricing),
            fulfillment_status=FulfillmentStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            failed_payment_count=0,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_lines(
                OrderLine(
                    unit_id=line["unit_id"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    line_total=float(_money(line["unit_price"]) * line["quantity"]),
                    reservation_id=line.get("reservation_id"),
                )
            )

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                order_number=order_number,
                user_id=user_id,
                email=email,
                lines=json.dumps(
                    [
                        {
                            "unit_id": str(line["unit_id"]),
                            "quantity": line["quantity"],
                            "unit_price": line["unit_price"],
                        }
                        for line in lines
                    ]
                ),
                total=pricing["total"],
                currency=pricing["currency"],
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_cancelled(self):
        return self.fulfillment_status == FulfillmentStatus.CANCELLED.value

    @property
    def is_paid(self):
        return self.payment_status == PaymentStatus.PAID.value

    def reservation_handles(self):
        return [
            ReservationHandle(
                unit_id=str(line.unit_id), reservation_id=str(line.reservation_id), quantity=line.quantity
            )
            for line in (self.lines or [])
            if line.reservation_id
        ]

    # -------------------------------------------------------------------
    # Payment path
    # -------------------------------------------------------------------
    def confirm_payment(self, intent_id, amount=None):
        """Record captured payment: PAID and CONFIRMED together.

        Returns False when the order was already paid, so a duplicate
        confirmation changes nothing and raises no second event.
        """
        if self.is_paid:
            return False

        payment = PaymentStatus(self.payment_status)
        fulfillment = FulfillmentStatus(self.fulfillment_status)
        assert_transition(payment, PaymentStatus.PAID)
        assert_transition(fulfillment, FulfillmentStatus.CONFIRMED)

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.PAID.value
        self.fulfillment_status = FulfillmentStatus.CONFIRMED.value
        self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                order_number=self.order_number,
                intent_id=str(intent_id),
                amount=amount if amount is not None else self.pricing.total,
                currency=self.pricing.currency,
                email=self.email,
                paid_at=now,
            )
        )
        return True

    def record_capture_after_cancel(self, intent_id, amount=None):
        """Record money the processor captured after the order was cancelled.

        Fulfillment stays CANCELLED and payment becomes PAID, which leaves the
        refund to the payment side. Returns False when the capture was
        already recorded.
        """
        if not self.is_cancelled:
            raise InvalidTransition(
                self.fulfillment_status,
                FulfillmentStatus.CANCELLED.value,
                field="fulfillment_status",
                detail=f"Order {self.order_number} is not cancelled",
            )
        if self.payment_status in (PaymentStatus.PAID.value, PaymentStatus.REFUNDED.value):
            return False
        assert_transition(PaymentStatus(self.payment_status), PaymentStatus.PAID)

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.PAID.value
        self.updated_at = now

        self.raise_(
            OrderPaymentCapturedAfterCancel(
                order_id=str(self.id),
                order_number=self.order_number,
                intent_id=str(intent_id),
                amount=amount if amount is not None else self.pricing.total,
                currency=self.pricing.currency,
                email=self.email,
                captured_at=now,
            )
        )
        return True

    def record_payment_failure(self, intent_id, reason=None):
        """Mark the current payment attempt failed and return the running failure count."""
        assert_transition(PaymentStatus(self.payment_status), PaymentStatus.FAILED)

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.FAILED.value
        self.failed_payment_count = (self.failed_payment_count or 0) + 1
        self.updated_at = now

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                order_number=self.order_number,
                intent_id=str(intent_id),
                reason=reason,
                failed_payment_count=self.failed_payment_count,
                failed_at=now,
            )
        )
        return self.failed_payment_count

    def reopen_payment(self):
        """Move a failed payment back to PENDING ahead of a new intent."""
        if self.is_cancelled:
            raise InvalidTransition(self.fulfillment_status, PaymentStatus.PENDING.value, field="fulfillment_status")
        assert_transition(PaymentStatus(self.payment_status), PaymentStatus.PENDING)

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.PENDING.value
        self.updated_at = now
        self.raise_(OrderPaymentReopened(order_id=str(self.id), order_number=self.order_number, reopened_at=now))

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason, cancelled_by=CancellationActor.CUSTOMER.value, refunded=None):
        """Cancel from PENDING or CONFIRMED.

        A paid order can only be cancelled once the payment side has decided
        about the money: ``refunded=True`` records REFUNDED, ``refunded=False``
        keeps PAID. Leaving it as None on a paid order is rejected.
        """
        current = FulfillmentStatus(self.fulfillment_status)
        assert_transition(current, FulfillmentStatus.CANCELLED)

        if self.is_paid and refunded is None:
            raise InvalidTransition(
                current.value,
                FulfillmentStatus.CANCELLED.value,
                field="refunded",
                detail="Cancelling a paid order requires a refund decision",
            )

        now = datetime.now(UTC)
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.fulfillment_status = FulfillmentStatus.CANCELLED.value
        if self.is_paid and refunded:
            self.payment_status = PaymentStatus.REFUNDED.value
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                cancelled_by=cancelled_by,
                previous_status=current.value,
                payment_status=self.payment_status,
                email=self.email,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment (driven by the fulfillment side once CONFIRMED)
    # -------------------------------------------------------------------
    def _advance(self, target):
        current = FulfillmentStatus(self.fulfillment_status)
        assert_transition(current, target)

        now = datetime.now(UTC)
        self.fulfillment_status = target.value
        self.updated_at = now
        self.raise_(
            OrderFulfillmentAdvanced(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                new_status=target.value,
                advanced_at=now,
            )
        )

    def mark_processing(self):
        self._advance(FulfillmentStatus.PROCESSING)

    def mark_shipped(self):
        self._advance(FulfillmentStatus.SHIPPED)

    def mark_delivered(self):
        self._advance(FulfillmentStatus.DELIVERED)
