"""Coupon evaluation against a cart.

Stateless: the decision depends only on the coupon, the cart subtotal and the
moment of evaluation. Checkout re-runs it at submission time, so a coupon that
expired or ran out after the customer saw it is simply not applied.
"""

from dataclasses import dataclass
from datetime import datetime

from grocery.promotions.coupon import Coupon
from grocery.shared import policy
from grocery.shared.clock import as_utc


@dataclass(frozen=True)
class CouponDecision:
    accepted: bool
    discount: float = 0.0
    reason: str | None = None
    code: str | None = None

    @classmethod
    def rejected(cls, reason: str, code: str | None = None) -> "CouponDecision":
        return cls(accepted=False, discount=0.0, reason=reason, code=code)


NO_COUPON = CouponDecision(accepted=False, reason="No coupon applied")


def evaluate_coupon(coupon: Coupon | None, subtotal: float, now: datetime) -> CouponDecision:
    """Decide whether ``coupon`` applies to a cart worth ``subtotal`` (before VAT).

    The minimum order amount is compared against the VAT-inclusive total
    before discount. Percent coupons discount the subtotal; flat coupons take
    their amount off, never more than the subtotal.
    """
    if coupon is None:
        return CouponDecision.rejected("Coupon not found")

    code = coupon.code
    now = as_utc(now)

    if not coupon.is_active:
        return CouponDecision.rejected("Coupon is not active", code)
    if coupon.valid_from and now < as_utc(coupon.valid_from):
        return CouponDecision.rejected("Coupon is not valid yet", code)
    if coupon.valid_until and now > as_utc(coupon.valid_until):
        return CouponDecision.rejected("Coupon has expired", code)
    if coupon.is_exhausted:
        return CouponDecision.rejected("Coupon usage limit reached", code)

    gross = subtotal * (1 + policy.vat_rate())
    if gross < (coupon.min_order_amount or 0.0):
        return CouponDecision.rejected(
            f"Order total must be at least {coupon.min_order_amount:.2f} to use this coupon",
            code,
        )

    if coupon.discount_percent:
        discount = subtotal * coupon.discount_percent / 100
    else:
        discount = coupon.discount_amount or 0.0

    return CouponDecision(accepted=True, discount=round(min(discount, subtotal), 2), code=code)
