"""Coupon aggregate and its repository."""

from datetime import UTC, datetime

import structlog
from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from grocery.domain import grocery
from grocery.shared.clock import as_utc
from grocery.shared.storage import committed, conditional_update

logger = structlog.get_logger(__name__)


def normalize_code(code: str | None) -> str | None:
    return code.strip().upper() if code else None


@grocery.aggregate
class Coupon:
    code: String(required=True, max_length=50, unique=True)
    discount_percent: Float(min_value=0.0, max_value=100.0)
    discount_amount: Float(min_value=0.0)
    min_order_amount: Float(default=0.0, min_value=0.0)
    valid_from: DateTime()
    valid_until: DateTime()
    max_uses: Integer(required=True, min_value=1)
    used_count: Integer(default=0, min_value=0)
    is_active: Boolean(default=True)
    created_at: DateTime(default=lambda: datetime.now(UTC))

    @invariant.post
    def must_grant_a_discount(self):
        if not self.discount_percent and not self.discount_amount:
            raise ValidationError({"discount": ["A coupon needs a discount percent or a discount amount"]})

    @invariant.post
    def usage_cannot_exceed_cap(self):
        if self.used_count is not None and self.max_uses is not None and self.used_count > self.max_uses:
            raise ValidationError({"used_count": ["Used count cannot exceed max uses"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.valid_from and self.valid_until and as_utc(self.valid_from) > as_utc(self.valid_until):
            raise ValidationError({"valid_until": ["Coupon cannot expire before it starts"]})

    @property
    def is_exhausted(self) -> bool:
        return self.used_count >= self.max_uses


@grocery.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code: str) -> Coupon | None:
        rows = self._dao.query.filter(code=normalize_code(code)).all().items
        return rows[0] if rows else None

    def find_fresh(self, code: str) -> Coupon | None:
        """The coupon as committed right now, bypassing any copy held by the unit of work."""
        rows = committed(self._dao).query.filter(code=normalize_code(code)).all().items
        return rows[0] if rows else None

    def set_active(self, code: str, active: bool) -> bool:
        return conditional_update(self._dao, {"is_active": active}, code=normalize_code(code))

    def redeem(self, code: str, attempts: int = 5) -> bool:
        """Consume one use of the coupon.

        The increment only lands while the coupon is active, under its cap and
        still at the used count that was read; a concurrent redemption forces
        a re-read. Returns False when the coupon cannot be redeemed.
        """
        code = normalize_code(code)
        for _ in range(attempts):
            coupon = self.find_fresh(code)
            if coupon is None or not coupon.is_active or coupon.is_exhausted:
                return False

            if conditional_update(
                self._dao,
                {"used_count": coupon.used_count + 1},
                code=code,
                is_active=True,
                used_count=coupon.used_count,
            ):
                return True

            logger.debug("coupon_redemption_retry", code=code)
        return False
