"""Cart lines and cart pricing."""

import json
from dataclasses import dataclass

from grocery.promotions.validation import CouponDecision
from grocery.shared import policy
from grocery.shared.errors import ValidationFailure


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: float
    unit_price: float
    product_name: str | None = None

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class CartPricing:
    subtotal: float
    discount: float
    vat: float
    total: float
    coupon_code: str | None = None


def parse_cart(raw) -> list[CartLine]:
    """Cart lines from a JSON string or a list of dicts.

    Each line needs ``product_id``, a positive ``quantity`` and a non-negative
    ``unit_price``; ``product_name`` is optional.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationFailure("lines", "Cart lines must be valid JSON") from None

    if not raw:
        raise ValidationFailure("lines", "Cart is empty")

    lines = []
    for index, item in enumerate(raw, start=1):
        try:
            line = CartLine(
                product_id=str(item["product_id"]),
                quantity=float(item["quantity"]),
                unit_price=float(item["unit_price"]),
                product_name=item.get("product_name"),
            )
        except (KeyError, TypeError, ValueError):
            raise ValidationFailure(
                "lines", f"Line {index} needs product_id, quantity and unit_price"
            ) from None

        if line.quantity <= 0:
            raise ValidationFailure("lines", f"Line {index}: quantity must be greater than zero")
        if line.unit_price < 0:
            raise ValidationFailure("lines", f"Line {index}: unit price cannot be negative")
        lines.append(line)
    return lines


def cart_subtotal(lines: list[CartLine]) -> float:
    return round(sum(line.line_total for line in lines), 2)


def price_cart(lines: list[CartLine], coupon: CouponDecision) -> CartPricing:
    """VAT-inclusive totals for ``lines`` with the coupon discount taken off first."""
    subtotal = cart_subtotal(lines)
    discount = coupon.discount if coupon.accepted else 0.0
    taxable = subtotal - discount
    vat = round(taxable * policy.vat_rate(), 2)
    return CartPricing(
        subtotal=subtotal,
        discount=discount,
        vat=vat,
        total=round(taxable + vat, 2),
        coupon_code=coupon.code if coupon.accepted else None,
    )
