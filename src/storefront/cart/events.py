"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="ShoppingCart")
class CartLineAdded:
    """A unit was added to the cart, or its quantity increased."""

    __version__ = 1

    cart_id = Identifier(required=True)
    owner_key = String(required=True)
    unit_id = Identifier(required=True)
    quantity_added = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartLineUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    owner_key = String(required=True)
    unit_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartLineRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    owner_key = String(required=True)
    unit_id = Identifier(required=True)


@storefront.event(part_of="ShoppingCart")
class CartCleared:
    """Every line was removed at the owner's request."""

    __version__ = 1

    cart_id = Identifier(required=True)
    owner_key = String(required=True)
    lines_removed = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartsMerged:
    """A guest session cart was folded into a customer's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    owner_key = String(required=True)
    source_cart_id = Identifier(required=True)
    source_owner_key = String(required=True)
    lines_merged = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartConverted:
    """The cart was checked out; its contents now live on an order."""

    __version__ = 1

    cart_id = Identifier(required=True)
    owner_key = String(required=True)
    order_id = Identifier(required=True)
