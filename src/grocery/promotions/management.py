"""Coupon management and redemption: commands and handler."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Integer, String
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.promotions.coupon import Coupon, normalize_code
from grocery.shared.errors import ValidationFailure

logger = structlog.get_logger(__name__)


@grocery.command(part_of="Coupon")
class CreateCoupon:
    code: String(required=True, max_length=50)
    discount_percent: Float()
    discount_amount: Float()
    min_order_amount: Float(default=0.0)
    valid_from: DateTime()
    valid_until: DateTime()
    max_uses: Integer(required=True)


@grocery.command(part_of="Coupon")
class ActivateCoupon:
    code: String(required=True, max_length=50)


@grocery.command(part_of="Coupon")
class DeactivateCoupon:
    code: String(required=True, max_length=50)


@grocery.command(part_of="Coupon")
class RedeemCoupon:
    code: String(required=True, max_length=50)
    order_id: String(max_length=50)


@grocery.command_handler(part_of=Coupon)
class CouponHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        code = normalize_code(command.code)
        if repo.find_by_code(code) is not None:
            raise ValidationFailure("code", f"Coupon {code} already exists")

        coupon = Coupon(
            code=code,
            discount_percent=command.discount_percent,
            discount_amount=command.discount_amount,
            min_order_amount=command.min_order_amount or 0.0,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            max_uses=command.max_uses,
        )
        repo.add(coupon)

        logger.info("coupon_created", code=code, max_uses=command.max_uses)
        return code

    @handle(ActivateCoupon)
    def activate_coupon(self, command):
        self._set_active(command.code, True)

    @handle(DeactivateCoupon)
    def deactivate_coupon(self, command):
        self._set_active(command.code, False)

    def _set_active(self, code, active):
        if not current_domain.repository_for(Coupon).set_active(code, active):
            raise ObjectNotFoundError(f"Coupon {normalize_code(code)} does not exist")
        logger.info("coupon_activation_changed", code=normalize_code(code), active=active)

    @handle(RedeemCoupon)
    def redeem_coupon(self, command):
        redeemed = current_domain.repository_for(Coupon).redeem(command.code)
        if redeemed:
            logger.info("coupon_redeemed", code=normalize_code(command.code), order_id=command.order_id)
        else:
            logger.warning("coupon_redemption_rejected", code=normalize_code(command.code), order_id=command.order_id)
        return redeemed
