"""Business policy settings.

Each value can be overridden through an environment variable so that a
deployment can change, say, the minimum order amount without a code change.
Values are read at call time.
"""

import os
from datetime import timedelta


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def vat_rate() -> float:
    return _float("GROCERY_VAT_RATE", 0.18)


def min_order_total() -> float:
    """Minimum VAT-inclusive order total accepted at checkout."""
    return _float("GROCERY_MIN_ORDER_TOTAL", 100.0)


def delivery_window() -> tuple[timedelta, timedelta]:
    """Earliest and latest requested delivery, measured from checkout time."""
    return (
        timedelta(hours=_float("GROCERY_DELIVERY_MIN_HOURS", 1)),
        timedelta(hours=_float("GROCERY_DELIVERY_MAX_HOURS", 48)),
    )


def cancellation_window() -> timedelta:
    return timedelta(minutes=_float("GROCERY_CANCELLATION_WINDOW_MINUTES", 60))


def points_unit() -> float:
    """Currency spent per loyalty point earned."""
    return _float("GROCERY_POINTS_UNIT", 10.0)


def stock_update_attempts() -> int:
    """Compare-and-set retries before a stock update reports contention."""
    return _int("GROCERY_STOCK_UPDATE_ATTEMPTS", 5)
