"""Order aggregate, its lines, and the order repository.

Status changes after checkout never go through ``repository.add``: they are
single conditional updates on the repository (``claim``, ``mark_delivered``,
``cancel``) so that the storage engine, not the caller, decides which of two
concurrent requests wins. They commit as soon as they land, ahead of the
unit of work of the command that issued them.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from grocery.domain import grocery
from grocery.shared.errors import ConcurrentUpdate
from grocery.shared.storage import committed, conditional_update


class OrderStatus(Enum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# Valid state transitions: from_state -> set of allowed to_states
_VALID_TRANSITIONS = {
    OrderStatus.NEW: {OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED},
    OrderStatus.IN_PROGRESS: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return OrderStatus(target) in _VALID_TRANSITIONS[OrderStatus(current)]


@grocery.entity(part_of="Order")
class OrderLine:
    line_number: Integer(required=True, min_value=1)
    product_id: Identifier(required=True)
    product_name: String(max_length=100)
    quantity: Float(required=True, min_value=0.0)
    unit_price: Float(required=True, min_value=0.0)

    @property
    def line_total(self) -> float:
        return round(self.quantity * self.unit_price, 2)


@grocery.aggregate
class Order:
    customer_id: Identifier(required=True)
    status: String(max_length=20, choices=OrderStatus, default=OrderStatus.NEW.value)
    lines: HasMany(OrderLine)
    requested_delivery_at: DateTime(required=True)
    created_at: DateTime(required=True)
    delivered_at: DateTime()
    cancelled_at: DateTime()
    cancel_reason: String(max_length=500)
    carrier_id: Identifier()
    subtotal: Float(default=0.0, min_value=0.0)
    discount_total: Float(default=0.0, min_value=0.0)
    vat_total: Float(default=0.0, min_value=0.0)
    total: Float(required=True, min_value=0.0)
    coupon_code: String(max_length=50)
    rated: Boolean(default=False)
    # Highest history sequence number handed out for this order
    last_sequence: Integer(default=0, min_value=0)

    @invariant.post
    def carrier_is_set_with_progress(self):
        if self.status in (OrderStatus.IN_PROGRESS.value, OrderStatus.DELIVERED.value) and not self.carrier_id:
            raise ValidationError({"carrier_id": ["An order in progress must have a carrier"]})
        if self.status == OrderStatus.NEW.value and self.carrier_id:
            raise ValidationError({"carrier_id": ["A new order cannot have a carrier"]})

    @classmethod
    def place(cls, customer_id, requested_delivery_at, lines, pricing, created_at=None):
        """Build a NEW order from priced cart lines.

        ``lines`` holds ``(product_id, product_name, quantity, unit_price)``
        tuples; the unit prices are frozen onto the order as given.
        """
        order = cls(
            customer_id=customer_id,
            requested_delivery_at=requested_delivery_at,
            created_at=created_at or datetime.now(UTC),
            subtotal=pricing.subtotal,
            discount_total=pricing.discount,
            vat_total=pricing.vat,
            total=pricing.total,
            coupon_code=pricing.coupon_code,
            last_sequence=1,
        )
        for number, (product_id, product_name, quantity, unit_price) in enumerate(lines, start=1):
            order.add_lines(
                OrderLine(
                    line_number=number,
                    product_id=product_id,
                    product_name=product_name,
                    quantity=quantity,
                    unit_price=unit_price,
                )
            )
        return order

    def sorted_lines(self) -> list[OrderLine]:
        return sorted(self.lines, key=lambda line: line.line_number)


@grocery.repository(part_of=Order)
class OrderRepository:
    def find_fresh(self, order_id: str) -> Order | None:
        """The order as committed right now, bypassing any copy held by the unit of work."""
        rows = committed(self._dao).query.filter(id=order_id).all().items
        return rows[0] if rows else None

    def claim(self, order_id: str, carrier_id: str) -> bool:
        return conditional_update(
            self._dao,
            {"status": OrderStatus.IN_PROGRESS.value, "carrier_id": carrier_id},
            id=order_id,
            status=OrderStatus.NEW.value,
            carrier_id__isnull=True,
        )

    def mark_delivered(self, order_id: str, carrier_id: str, delivered_at: datetime) -> bool:
        return conditional_update(
            self._dao,
            {"status": OrderStatus.DELIVERED.value, "delivered_at": delivered_at},
            id=order_id,
            status=OrderStatus.IN_PROGRESS.value,
            carrier_id=carrier_id,
        )

    def cancel(self, order_id: str, customer_id: str, cancelled_at: datetime, reason: str | None) -> bool:
        return conditional_update(
            self._dao,
            {"status": OrderStatus.CANCELLED.value, "cancelled_at": cancelled_at, "cancel_reason": reason},
            id=order_id,
            status=OrderStatus.NEW.value,
            customer_id=customer_id,
        )

    def mark_rated(self, order_id: str, customer_id: str) -> bool:
        """Flag a delivered order as rated by its customer, at most once."""
        return conditional_update(
            self._dao,
            {"rated": True},
            id=order_id,
            status=OrderStatus.DELIVERED.value,
            customer_id=customer_id,
            rated=False,
        )

    def next_history_sequence(self, order_id: str, attempts: int = 5) -> int:
        """Reserve the next history sequence number of the order."""
        for _ in range(attempts):
            order = self.find_fresh(order_id)
            if order is None:
                raise ObjectNotFoundError(f"Order with id {order_id} does not exist")
            taken = order.last_sequence or 0
            if conditional_update(self._dao, {"last_sequence": taken + 1}, id=order_id, last_sequence=taken):
                return taken + 1
        raise ConcurrentUpdate("sequence", f"History of order {order_id}", attempts)

    def available_for_claim(self) -> list[Order]:
        return (
            self._dao.query.filter(status=OrderStatus.NEW.value, carrier_id__isnull=True)
            .order_by("requested_delivery_at")
            .all()
            .items
        )

    def assigned_to(self, carrier_id: str, status: str | None = None) -> list[Order]:
        query = self._dao.query.filter(carrier_id=carrier_id)
        if status:
            query = query.filter(status=status)
        return query.order_by("-created_at").all().items

    def placed_by(self, customer_id: str) -> list[Order]:
        return self._dao.query.filter(customer_id=customer_id).order_by("-created_at").all().items

    def open_with_product(self, product_id: str) -> list[Order]:
        """NEW or IN_PROGRESS orders with a line for ``product_id``."""
        open_orders = self._dao.query.filter(
            status__in=[OrderStatus.NEW.value, OrderStatus.IN_PROGRESS.value]
        ).all().items
        return [order for order in open_orders if any(line.product_id == product_id for line in order.lines)]
