"""Domain tests for loyalty points and tiers."""

import pytest
from grocery.loyalty.account import CustomerLoyalty, LoyaltyTier, points_for, tier_discount, tier_for


@pytest.mark.parametrize(
    "total,points",
    [(0, 0), (9.99, 0), (10.0, 1), (224.2, 22), (1000.0, 100)],
)
def test_one_point_per_ten_spent(total, points):
    assert points_for(total) == points


@pytest.mark.parametrize(
    "points,tier",
    [
        (0, LoyaltyTier.BRONZE),
        (499, LoyaltyTier.BRONZE),
        (500, LoyaltyTier.SILVER),
        (999, LoyaltyTier.SILVER),
        (1000, LoyaltyTier.GOLD),
        (2499, LoyaltyTier.GOLD),
        (2500, LoyaltyTier.PLATINUM),
    ],
)
def test_tier_depends_only_on_points(points, tier):
    assert tier_for(points) == tier


def test_tier_discounts():
    assert [tier_discount(t.value) for t in LoyaltyTier] == [0, 5, 10, 15]


def test_accrue_updates_balance_and_tier():
    loyalty = CustomerLoyalty(customer_id="cust-001")

    earned = loyalty.accrue(5000.0)

    assert earned == 500
    assert loyalty.points == 500
    assert loyalty.total_spent == 5000.0
    assert loyalty.tier == "SILVER"
    assert loyalty.discount_percent == 5


def test_points_unit_is_configurable(monkeypatch):
    monkeypatch.setenv("GROCERY_POINTS_UNIT", "20")
    assert points_for(100.0) == 5
