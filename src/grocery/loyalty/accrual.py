"""Loyalty points accrual and redemption: commands and handler."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, Integer
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.loyalty.account import CustomerLoyalty, points_for
from grocery.shared.errors import ValidationFailure

logger = structlog.get_logger(__name__)


@grocery.command(part_of="CustomerLoyalty")
class AccruePoints:
    customer_id: Identifier(required=True)
    order_total: Float(required=True, min_value=0.0)
    order_id: Identifier()


@grocery.command(part_of="CustomerLoyalty")
class RedeemPoints:
    customer_id: Identifier(required=True)
    points: Integer(required=True)


@grocery.command_handler(part_of=CustomerLoyalty)
class LoyaltyHandler:
    @handle(AccruePoints)
    def accrue_points(self, command):
        repo = current_domain.repository_for(CustomerLoyalty)
        existing = repo.find_by_customer(command.customer_id)
        previous_tier = existing.tier if existing else None

        # Two first accruals may race to open the record; the loser falls
        # through to the same guarded increment as the winner.
        if existing is None and not repo.open_account(command.customer_id):
            logger.debug("loyalty_account_opened_concurrently", customer_id=command.customer_id)

        earned = points_for(command.order_total)
        loyalty = repo.adjust(command.customer_id, earned, command.order_total)
        if loyalty is None:
            raise ValidationFailure("points", f"Could not update points of customer {command.customer_id}")

        logger.info(
            "loyalty_points_accrued",
            customer_id=command.customer_id,
            order_id=command.order_id,
            earned=earned,
            balance=loyalty.points,
        )
        if previous_tier is not None and loyalty.tier != previous_tier:
            logger.info("loyalty_tier_changed", customer_id=command.customer_id, tier=loyalty.tier)
        return earned

    @handle(RedeemPoints)
    def redeem_points(self, command):
        if command.points is None or command.points <= 0:
            raise ValidationFailure("points", "Points to redeem must be greater than zero")

        repo = current_domain.repository_for(CustomerLoyalty)
        if repo.find_by_customer(command.customer_id) is None:
            raise ObjectNotFoundError(f"No loyalty record for customer {command.customer_id}")

        loyalty = repo.adjust(command.customer_id, -command.points)
        if loyalty is None:
            raise ValidationFailure("points", "Not enough points to redeem")

        logger.info("loyalty_points_redeemed", customer_id=command.customer_id, points=command.points)
        return loyalty.points
