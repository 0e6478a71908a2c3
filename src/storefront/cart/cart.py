"""Shopping Cart aggregate (CQRS): what an owner intends to buy.

An owner is either a signed-in user or an anonymous session. The owner has at
most one Active cart; carts that were merged away or checked out keep their
final state as history and are never addressed again.

Carts never look at inventory. Availability is checked at checkout only.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from storefront.cart.events import (
    CartCleared,
    CartConverted,
    CartLineAdded,
    CartLineRemoved,
    CartLineUpdated,
    CartsMerged,
)
from storefront.domain import storefront
from storefront.errors import InvalidQuantity


class CartStatus(Enum):
    ACTIVE = "Active"
    MERGED = "Merged"
    CONVERTED = "Converted"


class OwnerKind(Enum):
    USER = "User"
    SESSION = "Session"


@dataclass(frozen=True)
class CartOwner:
    """Who a cart belongs to: a persistent user or an ephemeral session token."""

    kind: OwnerKind
    owner_id: str

    @classmethod
    def user(cls, user_id) -> "CartOwner":
        return cls(OwnerKind.USER, str(user_id))

    @classmethod
    def session(cls, token) -> "CartOwner":
        return cls(OwnerKind.SESSION, str(token))

    @property
    def key(self) -> str:
        return f"{self.kind.value.lower()}:{self.owner_id}"

    @property
    def user_id(self) -> str | None:
        return self.owner_id if self.kind == OwnerKind.USER else None


def validate_quantity(quantity, allow_zero=False):
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise InvalidQuantity(quantity, allow_zero=allow_zero)
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise InvalidQuantity(quantity, allow_zero=allow_zero)
    return quantity


@storefront.entity(part_of="ShoppingCart")
class CartLine:
    unit_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()
    sequence = Integer(default=0)


@storefront.aggregate
class ShoppingCart:
    owner_key = String(required=True, max_length=300)
    owner_kind = String(choices=OwnerKind, required=True)
    owner_id = String(required=True, max_length=255)
    lines = HasMany(CartLine)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    merged_into = Identifier()
    order_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner: CartOwner):
        now = datetime.now(UTC)
        return cls(
            owner_key=owner.key,
            owner_kind=owner.kind.value,
            owner_id=owner.owner_id,
            status=CartStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

    def _assert_active(self, action):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": [f"Cannot {action} a cart that is {self.status}"]})

    def line_for(self, unit_id):
        return next((line for line in (self.lines or []) if str(line.unit_id) == str(unit_id)), None)

    def ordered_lines(self):
        return sorted(self.lines or [], key=lambda line: (line.sequence or 0, line.added_at))

    def _next_sequence(self):
        return max((line.sequence or 0 for line in (self.lines or [])), default=0) + 1

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_line(self, unit_id, quantity):
        """Add ``quantity`` of a unit, summing into the existing line when present."""
        validate_quantity(quantity)
        self._assert_active("add to")

        now = datetime.now(UTC)
        line = self.line_for(unit_id)
        if line:
            line.quantity += quantity
        else:
            line = CartLine(unit_id=unit_id, quantity=quantity, added_at=now, sequence=self._next_sequence())
            self.add_lines(line)

        self.updated_at = now
        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                owner_key=self.owner_key,
                unit_id=str(unit_id),
                quantity_added=quantity,
                new_quantity=line.quantity,
            )
        )

    def update_line(self, unit_id, quantity):
        """Set an absolute quantity. Zero removes the line."""
        validate_quantity(quantity, allow_zero=True)
        self._assert_active("update")

        if quantity == 0:
            self.remove_line(unit_id)
            return

        line = self.line_for(unit_id)
        if line is None:
            self.add_line(unit_id, quantity)
            return

        previous_quantity = line.quantity
        if previous_quantity == quantity:
            return
        line.quantity = quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartLineUpdated(
                cart_id=str(self.id),
                owner_key=self.owner_key,
                unit_id=str(unit_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_line(self, unit_id):
        """Drop the line for ``unit_id``. Absent lines are ignored."""
        self._assert_active("remove from")

        line = self.line_for(unit_id)
        if line is None:
            return

        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartLineRemoved(cart_id=str(self.id), owner_key=self.owner_key, unit_id=str(unit_id)))

    def clear(self):
        """Remove every line. Returns how many lines were dropped."""
        self._assert_active("clear")

        lines = list(self.lines or [])
        if not lines:
            return 0
        for line in lines:
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCleared(cart_id=str(self.id), owner_key=self.owner_key, lines_removed=len(lines)))
        return len(lines)

    # -------------------------------------------------------------------
    # Merge and checkout
    # -------------------------------------------------------------------
    def absorb(self, source: "ShoppingCart"):
        """Sum every line of ``source`` into this cart and retire ``source``.

        Returns the number of lines taken over.
        """
        self._assert_active("merge into")
        source._assert_active("merge from")

        now = datetime.now(UTC)
        lines = source.ordered_lines()
        for source_line in lines:
            line = self.line_for(source_line.unit_id)
            if line:
                line.quantity += source_line.quantity
            else:
                self.add_lines(
                    CartLine(
                        unit_id=source_line.unit_id,
                        quantity=source_line.quantity,
                        added_at=source_line.added_at or now,
                        sequence=self._next_sequence(),
                    )
                )

        for source_line in lines:
            source.remove_lines(source_line)
        source.status = CartStatus.MERGED.value
        source.merged_into = self.id
        source.updated_at = now
        self.updated_at = now

        self.raise_(
            CartsMerged(
                cart_id=str(self.id),
                owner_key=self.owner_key,
                source_cart_id=str(source.id),
                source_owner_key=source.owner_key,
                lines_merged=len(lines),
            )
        )
        return len(lines)

    def convert(self, order_id):
        """Empty the cart once its contents have become an order."""
        self._assert_active("check out")

        for line in list(self.lines or []):
            self.remove_lines(line)
        self.status = CartStatus.CONVERTED.value
        self.order_id = order_id
        self.updated_at = datetime.now(UTC)
        self.raise_(CartConverted(cart_id=str(self.id), owner_key=self.owner_key, order_id=str(order_id)))
