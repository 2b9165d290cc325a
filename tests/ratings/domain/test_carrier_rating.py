"""Domain tests for the CarrierRating aggregate."""

import pytest
from grocery.ratings.rating import CarrierRating
from protean.exceptions import ValidationError


def _rating(**overrides):
    defaults = {"order_id": "ord-1", "carrier_id": "carrier-1", "customer_id": "cust-001", "rating": 4}
    defaults.update(overrides)
    return CarrierRating(**defaults)


class TestCarrierRating:
    def test_rated_at_defaults_to_now(self):
        assert _rating().rated_at is not None

    @pytest.mark.parametrize("value", [0, 6, -1])
    def test_rating_stays_within_one_to_five(self, value):
        with pytest.raises(ValidationError) as exc:
            _rating(rating=value)
        assert "rating" in exc.value.messages

    @pytest.mark.parametrize("field", ["order_id", "carrier_id", "customer_id"])
    def test_required_identities(self, field):
        with pytest.raises(ValidationError):
            _rating(**{field: None})
