"""Order status state machine: claim (one order or a batch), deliver and cancel.

Every transition is one conditional update on the order repository keyed on
the state the transition starts from. When the update matches nothing, the
order is read back only to explain the refusal with a typed failure. A batch
claim skips the orders it lost instead of explaining them.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, List, String
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.inventory.ledger import ledger
from grocery.ordering import history, side_effects
from grocery.ordering.order import Order, OrderStatus, can_transition
from grocery.shared import policy
from grocery.shared.clock import as_utc, resolve_now
from grocery.shared.errors import (
    CancellationWindowExpired,
    InvalidTransition,
    OrderAlreadyClaimed,
    UnauthorizedActor,
    ValidationFailure,
)

logger = structlog.get_logger(__name__)


@grocery.command(part_of="Order")
class ClaimOrder:
    """A carrier takes a NEW, unassigned order."""

    order_id: Identifier(required=True)
    carrier_id: Identifier(required=True)
    as_of: DateTime()


@grocery.command(part_of="Order")
class ClaimOrders:
    """A carrier takes several orders at once; the ones already gone are skipped."""

    order_ids: List(String(max_length=50), required=True)
    carrier_id: Identifier(required=True)
    as_of: DateTime()


@grocery.command(part_of="Order")
class DeliverOrder:
    order_id: Identifier(required=True)
    carrier_id: Identifier(required=True)
    delivered_at: DateTime(required=True)
    as_of: DateTime()


@grocery.command(part_of="Order")
class CancelOrder:
    """The owning customer withdraws a NEW order within the cancellation window."""

    order_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    reason: String(max_length=500)
    as_of: DateTime()


def _load(order_id: str) -> Order:
    order = current_domain.repository_for(Order).find_fresh(order_id)
    if order is None:
        raise ObjectNotFoundError(f"Order with id {order_id} does not exist")
    return order


def _refuse_claim(order_id: str):
    order = _load(order_id)
    if order.status in (OrderStatus.IN_PROGRESS.value, OrderStatus.DELIVERED.value):
        raise OrderAlreadyClaimed(order_id, order.carrier_id)
    raise InvalidTransition(order_id, order.status, OrderStatus.IN_PROGRESS.value)


def _refuse_delivery(order: Order, carrier_id: str):
    current = _load(order.id)
    if current.status != OrderStatus.IN_PROGRESS.value:
        raise InvalidTransition(order.id, current.status, OrderStatus.DELIVERED.value)
    raise UnauthorizedActor(order.id, carrier_id)


@grocery.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(ClaimOrder)
    def claim_order(self, command):
        repo = current_domain.repository_for(Order)
        if not repo.claim(command.order_id, command.carrier_id):
            logger.info("order_claim_refused", order_id=command.order_id, carrier_id=command.carrier_id)
            _refuse_claim(command.order_id)

        history.record(
            command.order_id,
            OrderStatus.IN_PROGRESS.value,
            actor=command.carrier_id,
            note="Order taken by carrier",
            occurred_at=resolve_now(command.as_of),
        )
        logger.info("order_claimed", order_id=command.order_id, carrier_id=command.carrier_id)

    @handle(ClaimOrders)
    def claim_orders(self, command):
        if not command.order_ids:
            raise ValidationFailure("order_ids", "Select at least one order to take")

        repo = current_domain.repository_for(Order)
        now = resolve_now(command.as_of)
        claimed = []
        for order_id in dict.fromkeys(command.order_ids):
            if not repo.claim(order_id, command.carrier_id):
                logger.info("order_claim_skipped", order_id=order_id, carrier_id=command.carrier_id)
                continue
            history.record(
                order_id,
                OrderStatus.IN_PROGRESS.value,
                actor=command.carrier_id,
                note="Order taken by carrier",
                occurred_at=now,
            )
            claimed.append(order_id)

        logger.info(
            "orders_claimed",
            carrier_id=command.carrier_id,
            requested=len(command.order_ids),
            claimed=len(claimed),
        )
        return claimed

    @handle(DeliverOrder)
    def deliver_order(self, command):
        now = resolve_now(command.as_of)
        order = _load(command.order_id)

        if not can_transition(order.status, OrderStatus.DELIVERED.value):
            raise InvalidTransition(order.id, order.status, OrderStatus.DELIVERED.value)
        if order.carrier_id != command.carrier_id:
            raise UnauthorizedActor(order.id, command.carrier_id)

        delivered_at = as_utc(command.delivered_at)
        if delivered_at < as_utc(order.created_at):
            raise ValidationFailure("delivered_at", "Delivery time cannot be before the order was placed")
        if delivered_at > now:
            raise ValidationFailure("delivered_at", "Delivery time cannot be in the future")

        repo = current_domain.repository_for(Order)
        if not repo.mark_delivered(order.id, command.carrier_id, delivered_at):
            _refuse_delivery(order, command.carrier_id)

        history.record(
            order.id,
            OrderStatus.DELIVERED.value,
            actor=command.carrier_id,
            note=f"Order delivered at {delivered_at.isoformat()}",
            occurred_at=now,
        )
        logger.info("order_delivered", order_id=order.id, carrier_id=command.carrier_id)
        return order.customer_id, order.total

    @handle(CancelOrder)
    def cancel_order(self, command):
        now = resolve_now(command.as_of)
        order = _load(command.order_id)

        if order.customer_id != command.customer_id:
            raise UnauthorizedActor(order.id, command.customer_id)
        if not can_transition(order.status, OrderStatus.CANCELLED.value):
            raise InvalidTransition(order.id, order.status, OrderStatus.CANCELLED.value)

        deadline = as_utc(order.created_at) + policy.cancellation_window()
        if now > deadline:
            raise CancellationWindowExpired(order.id, order.created_at, deadline)

        repo = current_domain.repository_for(Order)
        if not repo.cancel(order.id, command.customer_id, now, command.reason):
            # Claimed or cancelled between the read above and the update
            current = _load(order.id)
            raise InvalidTransition(order.id, current.status, OrderStatus.CANCELLED.value)

        history.record(
            order.id,
            OrderStatus.CANCELLED.value,
            actor=command.customer_id,
            note=command.reason or "Cancelled by customer",
            occurred_at=now,
        )

        stock = ledger()
        for line in order.sorted_lines():
            stock.restore(line.product_id, line.quantity)

        logger.info("order_cancelled", order_id=order.id, customer_id=command.customer_id, reason=command.reason)


def claim(order_id: str, carrier_id: str, as_of=None) -> Order:
    current_domain.process(ClaimOrder(order_id=order_id, carrier_id=carrier_id, as_of=as_of), asynchronous=False)
    return current_domain.repository_for(Order).get(order_id)


def claim_many(order_ids: list[str], carrier_id: str, as_of=None) -> int:
    """Take every order in ``order_ids`` that is still free; returns how many were taken."""
    claimed = current_domain.process(
        ClaimOrders(order_ids=list(order_ids), carrier_id=carrier_id, as_of=as_of),
        asynchronous=False,
    )
    return len(claimed)


def deliver(order_id: str, carrier_id: str, delivered_at, as_of=None) -> Order:
    """Confirm delivery, then credit the customer's loyalty points."""
    customer_id, total = current_domain.process(
        DeliverOrder(order_id=order_id, carrier_id=carrier_id, delivered_at=delivered_at, as_of=as_of),
        asynchronous=False,
    )
    side_effects.accrue_loyalty(customer_id, total, order_id)
    return current_domain.repository_for(Order).get(order_id)


def cancel(order_id: str, customer_id: str, reason: str | None = None, as_of=None) -> Order:
    current_domain.process(
        CancelOrder(order_id=order_id, customer_id=customer_id, reason=reason, as_of=as_of),
        asynchronous=False,
    )
    return current_domain.repository_for(Order).get(order_id)
