"""Post-commit side effects of checkout and delivery.

Each side effect is its own command, processed in its own unit of work after
the order transaction has committed. A failing side effect is logged with its
traceback and dropped: it never undoes or fails the order operation that
triggered it.
"""

import structlog
from protean.utils.globals import current_domain

from grocery.loyalty.accrual import AccruePoints
from grocery.notifications.low_stock import RaiseLowStockAlert
from grocery.promotions.management import RedeemCoupon

logger = structlog.get_logger(__name__)


def dispatch(command, label: str, **context):
    """Process ``command`` synchronously; log and swallow any failure."""
    try:
        return current_domain.process(command, asynchronous=False)
    except Exception:
        logger.exception("side_effect_failed", side_effect=label, **context)
        return None


def redeem_coupon(code: str, order_id: str):
    return dispatch(RedeemCoupon(code=code, order_id=order_id), "coupon_redemption", code=code, order_id=order_id)


def alert_low_stock(product_id: str):
    return dispatch(RaiseLowStockAlert(product_id=product_id), "low_stock_alert", product_id=product_id)


def accrue_loyalty(customer_id: str, order_total: float, order_id: str):
    return dispatch(
        AccruePoints(customer_id=customer_id, order_total=order_total, order_id=order_id),
        "loyalty_accrual",
        customer_id=customer_id,
        order_id=order_id,
    )
