"""Carrier ratings left by customers on their delivered orders."""

from dataclasses import dataclass
from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer, Text

from grocery.domain import grocery

MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class CarrierRatingSummary:
    carrier_id: str
    average_rating: float
    rating_count: int


@grocery.aggregate
class CarrierRating:
    order_id: Identifier(required=True, unique=True)
    carrier_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    rating: Integer(required=True, min_value=MIN_RATING, max_value=MAX_RATING)
    comment: Text()
    rated_at: DateTime(default=lambda: datetime.now(UTC))


def _average(ratings: list[CarrierRating]) -> float:
    if not ratings:
        return 0.0
    return round(sum(r.rating for r in ratings) / len(ratings), 2)


@grocery.repository(part_of=CarrierRating)
class CarrierRatingRepository:
    def is_order_rated(self, order_id: str) -> bool:
        return bool(self._dao.query.filter(order_id=order_id).all().items)

    def for_carrier(self, carrier_id: str) -> list[CarrierRating]:
        return self._dao.query.filter(carrier_id=carrier_id).order_by("-rated_at").all().items

    def average_for(self, carrier_id: str) -> float:
        """Mean rating of the carrier, 0.0 while it has none."""
        return _average(self.for_carrier(carrier_id))

    def summaries(self) -> list[CarrierRatingSummary]:
        """One summary per rated carrier, best average first."""
        by_carrier: dict[str, list[CarrierRating]] = {}
        for rating in self._dao.query.all().items:
            by_carrier.setdefault(rating.carrier_id, []).append(rating)

        summaries = [
            CarrierRatingSummary(carrier_id=carrier_id, average_rating=_average(ratings), rating_count=len(ratings))
            for carrier_id, ratings in by_carrier.items()
        ]
        return sorted(summaries, key=lambda s: (-s.average_rating, s.carrier_id))
