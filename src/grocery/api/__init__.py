"""Grocery engine API package."""

from grocery.api.errors import install_error_handlers
from grocery.api.routes import (
    account_router,
    alert_router,
    carrier_router,
    coupon_router,
    customer_router,
    order_router,
    product_router,
)

ROUTERS = [
    product_router,
    order_router,
    carrier_router,
    customer_router,
    coupon_router,
    alert_router,
    account_router,
]

__all__ = ["ROUTERS", "install_error_handlers"]
