"""Cart operations addressed by owner.

Each call loads the owner's Active cart (creating it on first write), applies
the change and persists it while holding that owner's lock.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from protean.utils.globals import current_domain

from storefront.cart.cart import CartOwner, CartStatus, ShoppingCart, validate_quantity
from storefront.config import get_settings
from storefront.utils.db import fetch_all, persist
from storefront.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLineView:
    unit_id: str
    quantity: int
    added_at: datetime | None = None


class CartService:
    def __init__(self, lock_timeout: float | None = None) -> None:
        timeout = get_settings().lock_timeout_seconds if lock_timeout is None else lock_timeout
        self.locks = KeyedLocks("cart", timeout=timeout)

    def active_cart(self, owner: CartOwner) -> ShoppingCart | None:
        carts = fetch_all(ShoppingCart, owner_key=owner.key, status=CartStatus.ACTIVE.value)
        if not carts:
            return None
        # Reload through the repository so child lines come back attached
        return current_domain.repository_for(ShoppingCart).get(carts[0].id)

    def _cart_for_write(self, owner: CartOwner) -> ShoppingCart:
        return self.active_cart(owner) or ShoppingCart.create(owner)

    def add_line(self, owner: CartOwner, unit_id, quantity) -> None:
        validate_quantity(quantity)
        with self.locks.hold(owner.key):
            cart = self._cart_for_write(owner)
            cart.add_line(str(unit_id), quantity)
            persist(cart)
        logger.info("Cart line added", owner=owner.key, unit_id=str(unit_id), quantity=quantity)

    def update_line(self, owner: CartOwner, unit_id, quantity) -> None:
        validate_quantity(quantity, allow_zero=True)
        with self.locks.hold(owner.key):
            cart = self.active_cart(owner)
            if cart is None:
                if quantity == 0:
                    return
                cart = ShoppingCart.create(owner)
            cart.update_line(str(unit_id), quantity)
            persist(cart)
        logger.info("Cart line updated", owner=owner.key, unit_id=str(unit_id), quantity=quantity)

    def remove_line(self, owner: CartOwner, unit_id) -> None:
        with self.locks.hold(owner.key):
            cart = self.active_cart(owner)
            if cart is None or cart.line_for(unit_id) is None:
                return
            cart.remove_line(str(unit_id))
            persist(cart)
        logger.info("Cart line removed", owner=owner.key, unit_id=str(unit_id))

    def clear(self, owner: CartOwner) -> int:
        """Empty the owner's cart. Returns the number of lines removed."""
        with self.locks.hold(owner.key):
            cart = self.active_cart(owner)
            if cart is None:
                return 0
            removed = cart.clear()
            if removed:
                persist(cart)
        logger.info("Cart cleared", owner=owner.key, lines=removed)
        return removed

    def merge(self, session_owner: CartOwner, user_owner: CartOwner) -> int:
        """Fold the session cart into the user cart and retire the session cart.

        The session cart disappears from the active set in the same unit of
        work that updates the user cart, so replaying the merge finds nothing
        to do and returns 0.
        """
        with self.locks.hold(session_owner.key, user_owner.key):
            session_cart = self.active_cart(session_owner)
            if session_cart is None or not session_cart.lines:
                logger.debug("Nothing to merge", session=session_owner.key, user=user_owner.key)
                return 0

            user_cart = self._cart_for_write(user_owner)
            merged = user_cart.absorb(session_cart)
            persist(user_cart, session_cart)

        logger.info("Carts merged", session=session_owner.key, user=user_owner.key, lines=merged)
        return merged

    def snapshot(self, owner: CartOwner) -> list[CartLineView]:
        """Read-only view of the owner's cart in insertion order."""
        cart = self.active_cart(owner)
        if cart is None:
            return []
        return [
            CartLineView(unit_id=str(line.unit_id), quantity=line.quantity, added_at=line.added_at)
            for line in cart.ordered_lines()
        ]
