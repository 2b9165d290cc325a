"""Customer loyalty: points balance and tier."""

import math
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from grocery.domain import grocery
from grocery.shared import policy
from grocery.shared.storage import committed, conditional_update, create_unique


class LoyaltyTier(Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


# Highest first: (tier, minimum points, advertised discount percent)
_TIER_LADDER = [
    (LoyaltyTier.PLATINUM, 2500, 15),
    (LoyaltyTier.GOLD, 1000, 10),
    (LoyaltyTier.SILVER, 500, 5),
    (LoyaltyTier.BRONZE, 0, 0),
]


def tier_for(points: int) -> LoyaltyTier:
    for tier, minimum, _ in _TIER_LADDER:
        if points >= minimum:
            return tier
    return LoyaltyTier.BRONZE


def tier_discount(tier: str) -> int:
    return next(discount for candidate, _, discount in _TIER_LADDER if candidate.value == tier)


def points_for(order_total: float) -> int:
    """One point per ``policy.points_unit()`` spent, rounded down."""
    if not order_total or order_total <= 0:
        return 0
    return int(math.floor(order_total / policy.points_unit()))


@grocery.aggregate
class CustomerLoyalty:
    customer_id: Identifier(required=True, unique=True)
    points: Integer(default=0, min_value=0)
    total_spent: Float(default=0.0, min_value=0.0)
    tier: String(max_length=20, choices=LoyaltyTier, default=LoyaltyTier.BRONZE.value)
    updated_at: DateTime(default=lambda: datetime.now(UTC))

    def accrue(self, order_total: float) -> int:
        earned = points_for(order_total)
        self.points = (self.points or 0) + earned
        self.total_spent = round((self.total_spent or 0.0) + order_total, 2)
        self.tier = tier_for(self.points).value
        self.updated_at = datetime.now(UTC)
        return earned

    @property
    def discount_percent(self) -> int:
        return tier_discount(self.tier)


@grocery.repository(part_of=CustomerLoyalty)
class CustomerLoyaltyRepository:
    def find_by_customer(self, customer_id: str) -> CustomerLoyalty | None:
        """The customer's record as committed right now."""
        rows = committed(self._dao).query.filter(customer_id=customer_id).all().items
        return rows[0] if rows else None

    def open_account(self, customer_id: str) -> bool:
        """Create an empty record for the customer unless one exists.

        Returns True when this call created it. A record created concurrently
        shows up as a unique violation on ``customer_id`` and is left as is.
        """
        try:
            create_unique(self._dao, customer_id=customer_id)
        except ValidationError as exc:
            if "customer_id" not in exc.messages:
                raise
            return False
        return True

    def adjust(
        self, customer_id: str, points_delta: int, spent_delta: float = 0.0, attempts: int = 5
    ) -> CustomerLoyalty | None:
        """Add ``points_delta`` (negative to redeem) without losing concurrent updates.

        The write only lands while the stored balance is still the one read,
        and never takes the balance below zero. Returns the updated record,
        or None when the balance is insufficient or contention persists.
        """
        for _ in range(attempts):
            current = self.find_by_customer(customer_id)
            if current is None:
                return None
            points = current.points + points_delta
            if points < 0:
                return None

            if conditional_update(
                self._dao,
                {
                    "points": points,
                    "total_spent": round(current.total_spent + spent_delta, 2),
                    "tier": tier_for(points).value,
                    "updated_at": datetime.now(UTC),
                },
                id=current.id,
                points=current.points,
                total_spent=current.total_spent,
            ):
                return self.find_by_customer(customer_id)
        return None
