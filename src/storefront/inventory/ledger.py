"""Inventory Ledger: the single source of truth for "can this be sold right now".

Every mutation of one unit runs under that unit's lock: load the record,
apply the change, persist, release. Two reserves against the same unit are
therefore linearized, while units never wait on each other.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.config import get_settings
from storefront.errors import InsufficientStock, InvalidQuantity
from storefront.inventory.record import InventoryRecord, ReservationStatus
from storefront.utils.db import fetch_all, persist
from storefront.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservationHandle:
    """Reference to a reservation, enough to release or commit it later."""

    unit_id: str
    reservation_id: str
    quantity: int
    reserved_at: datetime | None = None


class InventoryLedger:
    def __init__(self, lock_timeout: float | None = None) -> None:
        timeout = get_settings().lock_timeout_seconds if lock_timeout is None else lock_timeout
        self._locks = KeyedLocks("inventory", timeout=timeout)

    def _load(self, unit_id):
        try:
            return current_domain.repository_for(InventoryRecord).get(str(unit_id))
        except ObjectNotFoundError:
            return None

    def available(self, unit_id) -> int:
        record = self._load(unit_id)
        return record.available_quantity if record else 0

    def reserve(self, unit_id, quantity, reference=None) -> ReservationHandle:
        """Decrement available stock for ``unit_id`` or raise ``InsufficientStock``."""
        unit_id = str(unit_id)
        with self._locks.hold(unit_id):
            record = self._load(unit_id)
            if record is None:
                logger.info("Reserve rejected for untracked unit", unit_id=unit_id, quantity=quantity)
                raise InsufficientStock([unit_id], detail=f"No stock recorded for {unit_id}")

            reservation = record.reserve(quantity, reference=reference)
            persist(record)

        logger.debug(
            "Stock reserved",
            unit_id=unit_id,
            reservation_id=str(reservation.id),
            quantity=quantity,
            available=record.available_quantity,
        )
        return ReservationHandle(
            unit_id=unit_id,
            reservation_id=str(reservation.id),
            quantity=quantity,
            reserved_at=reservation.reserved_at,
        )

    def release(self, handle: ReservationHandle) -> bool:
        """Return a reservation's stock. Safe to call any number of times."""
        with self._locks.hold(handle.unit_id):
            record = self._load(handle.unit_id)
            if record is None or not record.release(handle.reservation_id):
                return False
            persist(record)

        logger.info("Reservation released", unit_id=handle.unit_id, reservation_id=handle.reservation_id)
        return True

    def commit(self, handle: ReservationHandle) -> bool:
        """Finalize a reservation. Returns False when it was already committed."""
        with self._locks.hold(handle.unit_id):
            record = self._load(handle.unit_id)
            if record is None:
                raise ValidationError({"unit_id": [f"No inventory record for {handle.unit_id}"]})
            if not record.commit(handle.reservation_id):
                return False
            persist(record)

        logger.info("Reservation committed", unit_id=handle.unit_id, reservation_id=handle.reservation_id)
        return True

    def return_to_stock(self, handle: ReservationHandle) -> bool:
        """Give a reservation's quantity back whether it is still held or already sold.

        Active reservations are released, committed ones restored. Returns
        False when there was nothing left to give back.
        """
        with self._locks.hold(handle.unit_id):
            record = self._load(handle.unit_id)
            reservation = record.find_reservation(handle.reservation_id) if record else None
            if reservation is None:
                return False
            if reservation.status == ReservationStatus.COMMITTED.value:
                changed = record.restore(handle.reservation_id)
            else:
                changed = record.release(handle.reservation_id)
            if not changed:
                return False
            persist(record)

        logger.info(
            "Reservation returned to stock",
            unit_id=handle.unit_id,
            reservation_id=handle.reservation_id,
            available=record.available_quantity,
        )
        return True

    def close(self, handle: ReservationHandle) -> bool:
        """Forget a committed reservation whose goods have left the warehouse."""
        with self._locks.hold(handle.unit_id):
            record = self._load(handle.unit_id)
            if record is None or not record.close(handle.reservation_id):
                return False
            persist(record)

        logger.debug("Reservation closed", unit_id=handle.unit_id, reservation_id=handle.reservation_id)
        return True

    def adjust(self, unit_id, delta, reason=None) -> int:
        """Apply an administrative stock correction and return the new availability."""
        unit_id = str(unit_id)
        with self._locks.hold(unit_id):
            record = self._load(unit_id)
            if record is None:
                record = InventoryRecord.create(unit_id)
            record.adjust(delta, reason=reason)
            persist(record)

        logger.info("Stock adjusted", unit_id=unit_id, delta=delta, available=record.available_quantity, reason=reason)
        return record.available_quantity

    def set_available(self, unit_id, quantity, reason=None) -> int:
        """Set availability to an absolute stock count, recorded as an adjustment."""
        unit_id = str(unit_id)
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
            raise InvalidQuantity(quantity, allow_zero=True)
        with self._locks.hold(unit_id):
            record = self._load(unit_id) or InventoryRecord.create(unit_id)
            delta = quantity - (record.available_quantity or 0)
            if delta:
                record.adjust(delta, reason=reason)
                persist(record)

        logger.info("Stock level set", unit_id=unit_id, available=quantity, delta=delta, reason=reason)
        return record.available_quantity

    def active_reservations(self, older_than: datetime | None = None) -> list[ReservationHandle]:
        """List reservations still holding stock, optionally only those reserved before ``older_than``."""
        handles = []
        for record in fetch_all(InventoryRecord):
            for reservation in record.reservations or []:
                if reservation.status != ReservationStatus.ACTIVE.value:
                    continue
                reserved_at = _as_utc(reservation.reserved_at)
                if older_than is not None and reserved_at >= older_than:
                    continue
                handles.append(
                    ReservationHandle(
                        unit_id=str(record.unit_id),
                        reservation_id=str(reservation.id),
                        quantity=reservation.quantity,
                        reserved_at=reserved_at,
                    )
                )
        return handles


def _as_utc(value: datetime) -> datetime:
    # Some providers hand datetimes back without tzinfo
    return value if value.tzinfo else value.replace(tzinfo=UTC)
