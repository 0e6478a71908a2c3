"""Reservation sweeper: reconciles stock and orders that a checkout left behind.

A checkout that dies between reserving stock and storing its order leaves
reservations that no order references. Orders whose payment never completes
stay PENDING forever. The sweep resolves both:

- an unreferenced reservation older than the grace window is released
- a reservation whose order is PAID is committed, one whose order is
  CANCELLED is released
- a PENDING order older than ``stale_order_seconds`` is cancelled by the
  system, which releases its stock
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import structlog

from storefront.config import Settings, get_settings
from storefront.inventory.ledger import InventoryLedger
from storefront.order.service import OrderService
from storefront.order.state_machine import CancellationActor, FulfillmentStatus, PaymentStatus
from storefront.order.store import OrderStore

logger = structlog.get_logger(__name__)


@dataclass
class SweepReport:
    released: list[str] = field(default_factory=list)
    committed: list[str] = field(default_factory=list)
    cancelled_orders: list[str] = field(default_factory=list)


class ReservationSweeper:
    def __init__(
        self,
        ledger: InventoryLedger,
        order_service: OrderService,
        orders: OrderStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.ledger = ledger
        self.order_service = order_service
        self.orders = orders or order_service.orders
        self.settings = settings or get_settings()

    def sweep(self, as_of: datetime | None = None) -> SweepReport:
        as_of = as_of or datetime.now(UTC)
        report = SweepReport()

        self._cancel_stale_orders(as_of, report)
        self._reconcile_reservations(as_of, report)

        logger.info(
            "Sweep completed",
            released=len(report.released),
            committed=len(report.committed),
            cancelled_orders=len(report.cancelled_orders),
        )
        return report

    def _cancel_stale_orders(self, as_of: datetime, report: SweepReport) -> None:
        cutoff = as_of - timedelta(seconds=self.settings.stale_order_seconds)
        for order in self.orders.list_by_status(FulfillmentStatus.PENDING):
            created_at = order.created_at if order.created_at.tzinfo else order.created_at.replace(tzinfo=UTC)
            if created_at >= cutoff or order.payment_status == PaymentStatus.PAID.value:
                continue
            self.order_service.cancel(
                order.id,
                reason="Payment not completed in time",
                cancelled_by=CancellationActor.SYSTEM.value,
            )
            report.cancelled_orders.append(order.order_number)

    def _reconcile_reservations(self, as_of: datetime, report: SweepReport) -> None:
        owners = {}
        for order in self.orders.all():
            for handle in order.reservation_handles():
                owners[handle.reservation_id] = order

        cutoff = as_of - timedelta(seconds=self.settings.reservation_grace_seconds)
        for handle in self.ledger.active_reservations(older_than=cutoff):
            order = owners.get(handle.reservation_id)
            if order is None or order.is_cancelled:
                if self.ledger.release(handle):
                    report.released.append(handle.reservation_id)
                    logger.info(
                        "Stale reservation released",
                        unit_id=handle.unit_id,
                        reservation_id=handle.reservation_id,
                        order_id=str(order.id) if order else None,
                    )
            elif order.is_paid:
                if self.ledger.commit(handle):
                    report.committed.append(handle.reservation_id)
