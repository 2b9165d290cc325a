"""Rating a carrier: command and handler.

A customer rates the carrier of one of their delivered orders, once. The
"rated" flag on the order is claimed with a guarded update before the rating is
stored, so two submissions for the same order cannot both land.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, Text
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.ordering.order import Order, OrderStatus
from grocery.ratings.rating import MAX_RATING, MIN_RATING, CarrierRating
from grocery.shared.clock import resolve_now
from grocery.shared.errors import AlreadyRated, UnauthorizedActor, ValidationFailure

logger = structlog.get_logger(__name__)


@grocery.command(part_of="CarrierRating")
class RateCarrier:
    order_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    rating: Integer(required=True)
    comment: Text()
    as_of: DateTime()


@grocery.command_handler(part_of=CarrierRating)
class CarrierRatingHandler:
    @handle(RateCarrier)
    def rate_carrier(self, command):
        if command.rating is None or not MIN_RATING <= command.rating <= MAX_RATING:
            raise ValidationFailure("rating", f"Rating must be between {MIN_RATING} and {MAX_RATING}")

        orders = current_domain.repository_for(Order)
        order = orders.find_fresh(command.order_id)
        if order is None:
            raise ObjectNotFoundError(f"Order with id {command.order_id} does not exist")
        if order.customer_id != command.customer_id:
            raise UnauthorizedActor(order.id, command.customer_id)
        if order.status != OrderStatus.DELIVERED.value:
            raise ValidationFailure("order_id", f"Order {order.id} has not been delivered yet")

        if not orders.mark_rated(order.id, command.customer_id):
            raise AlreadyRated(order.id)

        rating = CarrierRating(
            order_id=order.id,
            carrier_id=order.carrier_id,
            customer_id=command.customer_id,
            rating=command.rating,
            comment=(command.comment or "").strip() or None,
            rated_at=resolve_now(command.as_of),
        )
        current_domain.repository_for(CarrierRating).add(rating)

        logger.info("carrier_rated", order_id=order.id, carrier_id=order.carrier_id, rating=command.rating)
        return str(rating.id)
