"""Storefront bounded context: inventory, carts, orders and payment settlement.

Holds the order-creation and payment-settlement transaction. The inventory
ledger guards stock, carts collect what guests and customers intend to buy,
and orders move through their state machine as the external payment
processor reports back.
"""

from protean.domain import Domain

storefront = Domain(name="storefront")
