from storefront.api.errors import register_exception_handlers
from storefront.api.routes import (
    cart_router,
    checkout_router,
    inventory_router,
    maintenance_router,
    order_router,
    payment_router,
)

routers = [cart_router, inventory_router, checkout_router, order_router, payment_router, maintenance_router]

__all__ = [
    "cart_router",
    "checkout_router",
    "inventory_router",
    "maintenance_router",
    "order_router",
    "payment_router",
    "register_exception_handlers",
    "routers",
]
