"""Checkout: turn a cart into a NEW order while reserving its stock.

The ``PlaceOrder`` handler runs in one unit of work. It validates the cart,
reserves every line through the inventory ledger in ascending product-id
order, persists the order with the cart's frozen unit prices and appends the
"Order created" history entry. Any failure aborts the whole thing: the
reservations already taken are given back before the error propagates, so
stock is left untouched and no order or history entry survives.

Side effects (coupon redemption, low-stock alerts) run from :func:`checkout`
after the handler has committed.
"""

import json
from dataclasses import dataclass

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.inventory.ledger import ledger
from grocery.ordering import history, side_effects
from grocery.ordering.order import Order, OrderStatus
from grocery.ordering.pricing import CartLine, cart_subtotal, parse_cart, price_cart
from grocery.promotions.coupon import Coupon, normalize_code
from grocery.promotions.validation import NO_COUPON, evaluate_coupon
from grocery.shared import policy
from grocery.shared.clock import as_utc, resolve_now
from grocery.shared.errors import ValidationFailure

logger = structlog.get_logger(__name__)


@grocery.command(part_of="Order")
class PlaceOrder:
    customer_id: Identifier(required=True)
    lines: Text(required=True)  # JSON: [{"product_id", "quantity", "unit_price", "product_name"?}]
    requested_delivery_at: DateTime(required=True)
    coupon_code: String(max_length=50)
    as_of: DateTime()


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    coupon_code: str | None
    low_stock_products: tuple[str, ...]


def _check_delivery_window(requested, now):
    earliest, latest = policy.delivery_window()
    requested = as_utc(requested)
    if requested < now + earliest or requested > now + latest:
        raise ValidationFailure(
            "requested_delivery_at",
            f"Delivery must be requested between {earliest} and {latest} from now",
        )


def _coupon_decision(code, lines: list[CartLine], now):
    if not code:
        return NO_COUPON
    coupon = current_domain.repository_for(Coupon).find_by_code(code)
    decision = evaluate_coupon(coupon, cart_subtotal(lines), now)
    if not decision.accepted:
        logger.warning("coupon_dropped_at_checkout", code=normalize_code(code), reason=decision.reason)
    return decision


@grocery.command_handler(part_of=Order)
class CheckoutHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        now = resolve_now(command.as_of)
        lines = parse_cart(command.lines)

        _check_delivery_window(command.requested_delivery_at, now)
        pricing = price_cart(lines, _coupon_decision(command.coupon_code, lines, now))
        if pricing.total < policy.min_order_total():
            raise ValidationFailure(
                "total",
                f"Order total {pricing.total:.2f} is below the minimum of {policy.min_order_total():.2f}",
            )

        stock = ledger()
        reservations = []
        try:
            for line in sorted(lines, key=lambda line: line.product_id):
                reservations.append(stock.reserve(line.product_id, line.quantity))

            order = Order.place(
                customer_id=command.customer_id,
                requested_delivery_at=as_utc(command.requested_delivery_at),
                lines=[(line.product_id, line.product_name, line.quantity, line.unit_price) for line in lines],
                pricing=pricing,
                created_at=now,
            )
            current_domain.repository_for(Order).add(order)
            history.record(
                order.id,
                OrderStatus.NEW.value,
                actor=command.customer_id,
                note="Order created",
                occurred_at=now,
                sequence=order.last_sequence,
            )
        except Exception:
            stock.release(reservations)
            raise

        logger.info(
            "order_placed",
            order_id=str(order.id),
            customer_id=command.customer_id,
            total=pricing.total,
            lines=len(lines),
            coupon_code=pricing.coupon_code,
        )
        return CheckoutResult(
            order_id=str(order.id),
            coupon_code=pricing.coupon_code,
            low_stock_products=tuple(dict.fromkeys(r.product_id for r in reservations if r.low_stock)),
        )


def checkout(customer_id, lines, requested_delivery_at, coupon_code=None, as_of=None) -> Order:
    """Place an order and run its post-commit side effects.

    ``lines`` is a list of dicts (or its JSON encoding) carrying
    ``product_id``, ``quantity`` and ``unit_price``. Returns the persisted
    order; raises a typed failure when nothing was placed.
    """
    command = PlaceOrder(
        customer_id=customer_id,
        lines=lines if isinstance(lines, str) else json.dumps(lines),
        requested_delivery_at=requested_delivery_at,
        coupon_code=coupon_code,
        as_of=as_of,
    )
    result = current_domain.process(command, asynchronous=False)

    if result.coupon_code:
        side_effects.redeem_coupon(result.coupon_code, result.order_id)
    for product_id in result.low_stock_products:
        side_effects.alert_low_stock(product_id)

    return current_domain.repository_for(Order).get(result.order_id)
