"""InventoryRecord aggregate: available quantity for one sellable unit.

A record exists for every inventory-tracked unit. Checkout takes stock out of
``available_quantity`` through reservations; a reservation is later either
committed (the sale stands) or released (the stock returns). ``version``
increases with every mutation so readers can tell two states apart.

Only reservations that still matter stay on the record: released and
restored ones are dropped as they settle, committed ones once the goods ship.
The events keep the full history.

The record only enforces its own arithmetic. Serializing concurrent callers
is the ledger's job.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from storefront.domain import storefront
from storefront.errors import InsufficientStock, InvalidQuantity, InvalidTransition
from storefront.inventory.events import (
    ReservationClosed,
    ReservationCommitted,
    ReservationReleased,
    ReservationRestored,
    StockAdjusted,
    StockReserved,
)


class ReservationStatus(Enum):
    ACTIVE = "Active"
    COMMITTED = "Committed"
    RELEASED = "Released"
    RESTORED = "Restored"  # Committed, then put back when the order was cancelled


@storefront.entity(part_of="InventoryRecord")
class Reservation:
    quantity = Integer(required=True, min_value=1)
    reference = String(max_length=255)
    status = String(choices=ReservationStatus, default=ReservationStatus.ACTIVE.value)
    reserved_at = DateTime(required=True)
    settled_at = DateTime()


@storefront.aggregate
class InventoryRecord:
    unit_id = Identifier(identifier=True, required=True)
    available_quantity = Integer(default=0, min_value=0)
    version = Integer(default=0)
    reservations = HasMany(Reservation)
    updated_at = DateTime()

    @invariant.post
    def available_quantity_is_never_negative(self):
        if self.available_quantity is not None and self.available_quantity < 0:
            raise ValidationError({"available_quantity": ["Available quantity cannot be negative"]})

    @classmethod
    def create(cls, unit_id):
        return cls(unit_id=unit_id, available_quantity=0, version=0, updated_at=datetime.now(UTC))

    def find_reservation(self, reservation_id):
        return next(
            (r for r in (self.reservations or []) if str(r.id) == str(reservation_id)),
            None,
        )

    def _touch(self, now):
        self.version = (self.version or 0) + 1
        self.updated_at = now

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, quantity, reference=None):
        """Take ``quantity`` out of available stock. Returns the new Reservation."""
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise InvalidQuantity(quantity)

        available = self.available_quantity or 0
        if available < quantity:
            raise InsufficientStock(
                [self.unit_id],
                detail=f"Insufficient stock for {self.unit_id}: {available} available, {quantity} requested",
            )

        now = datetime.now(UTC)
        reservation = Reservation(
            id=str(uuid4()),
            quantity=quantity,
            reference=reference,
            status=ReservationStatus.ACTIVE.value,
            reserved_at=now,
        )
        self.add_reservations(reservation)
        self.available_quantity = available - quantity
        self._touch(now)

        self.raise_(
            StockReserved(
                unit_id=str(self.unit_id),
                reservation_id=str(reservation.id),
                quantity=quantity,
                previous_available=available,
                new_available=self.available_quantity,
                reference=reference,
                reserved_at=now,
            )
        )
        return reservation

    def release(self, reservation_id):
        """Return a reservation's quantity to stock.

        Releasing a reservation that is already released, or that this record
        never held, changes nothing and returns False.
        """
        reservation = self.find_reservation(reservation_id)
        if reservation is None:
            return False
        if reservation.status == ReservationStatus.COMMITTED.value:
            raise InvalidTransition(
                ReservationStatus.COMMITTED.value,
                ReservationStatus.RELEASED.value,
                field="reservation",
            )

        now = datetime.now(UTC)
        self.remove_reservations(reservation)
        self.available_quantity = (self.available_quantity or 0) + reservation.quantity
        self._touch(now)

        self.raise_(
            ReservationReleased(
                unit_id=str(self.unit_id),
                reservation_id=str(reservation.id),
                quantity=reservation.quantity,
                new_available=self.available_quantity,
                released_at=now,
            )
        )
        return True

    def commit(self, reservation_id):
        """Make a reservation permanent. Committing twice is a no-op."""
        reservation = self.find_reservation(reservation_id)
        if reservation is None:
            # Settled reservations that gave their stock back are dropped from the record
            raise InvalidTransition(
                ReservationStatus.RELEASED.value,
                ReservationStatus.COMMITTED.value,
                field="reservation",
                detail=f"Reservation {reservation_id} no longer holds stock of {self.unit_id}",
            )
        if reservation.status == ReservationStatus.COMMITTED.value:
            return False

        now = datetime.now(UTC)
        reservation.status = ReservationStatus.COMMITTED.value
        reservation.settled_at = now
        self._touch(now)

        self.raise_(
            ReservationCommitted(
                unit_id=str(self.unit_id),
                reservation_id=str(reservation.id),
                quantity=reservation.quantity,
                committed_at=now,
            )
        )
        return True

    def restore(self, reservation_id):
        """Put a committed reservation's quantity back into available stock.

        Used when a confirmed order is cancelled before it ships. Restoring
        twice, or restoring something that is not committed, returns False.
        """
        reservation = self.find_reservation(reservation_id)
        if reservation is None or reservation.status != ReservationStatus.COMMITTED.value:
            return False

        now = datetime.now(UTC)
        self.remove_reservations(reservation)
        self.available_quantity = (self.available_quantity or 0) + reservation.quantity
        self._touch(now)

        self.raise_(
            ReservationRestored(
                unit_id=str(self.unit_id),
                reservation_id=str(reservation.id),
                quantity=reservation.quantity,
                new_available=self.available_quantity,
                restored_at=now,
            )
        )
        return True

    def close(self, reservation_id):
        """Drop a committed reservation once the sale can no longer be undone.

        Returns False when there is no committed reservation by that id.
        """
        reservation = self.find_reservation(reservation_id)
        if reservation is None or reservation.status != ReservationStatus.COMMITTED.value:
            return False

        now = datetime.now(UTC)
        self.remove_reservations(reservation)
        self._touch(now)

        self.raise_(
            ReservationClosed(
                unit_id=str(self.unit_id),
                reservation_id=str(reservation.id),
                quantity=reservation.quantity,
                closed_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def adjust(self, delta, reason=None):
        """Restock (positive delta) or correct (negative delta) available stock."""
        if not isinstance(delta, int) or isinstance(delta, bool):
            raise InvalidQuantity(delta)

        available = self.available_quantity or 0
        if available + delta < 0:
            raise InsufficientStock(
                [self.unit_id],
                detail=f"Cannot adjust {self.unit_id} by {delta}: only {available} available",
            )

        now = datetime.now(UTC)
        self.available_quantity = available + delta
        self._touch(now)

        self.raise_(
            StockAdjusted(
                unit_id=str(self.unit_id),
                delta=delta,
                previous_available=available,
                new_available=self.available_quantity,
                reason=reason,
                adjusted_at=now,
            )
        )
