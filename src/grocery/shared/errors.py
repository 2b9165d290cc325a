"""Typed failures raised by the order and inventory engine.

All of them are protean ``ValidationError`` subclasses, so they carry a
``messages`` dict keyed by the offending field and abort the unit of work of
the command that raised them. ``kind`` is the stable name reported to API
clients.
"""

from protean.exceptions import ValidationError


class GroceryError(ValidationError):
    kind = "Failure"

    def __init__(self, field: str, message: str):
        super().__init__({field: [message]})


class ValidationFailure(GroceryError):
    kind = "ValidationFailure"


class InsufficientStock(GroceryError):
    kind = "InsufficientStock"

    def __init__(self, product_id: str, requested: float, available: float):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            "stock",
            f"Insufficient stock for product {product_id}: requested {requested} kg, available {available} kg",
        )


class OrderAlreadyClaimed(GroceryError):
    kind = "OrderAlreadyClaimed"

    def __init__(self, order_id: str, carrier_id: str | None = None):
        self.order_id = order_id
        self.carrier_id = carrier_id
        super().__init__("status", f"Order {order_id} has already been taken by another carrier")


class InvalidTransition(GroceryError):
    kind = "InvalidTransition"

    def __init__(self, order_id: str, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__("status", f"Order {order_id} cannot move from {current} to {target}")


class CancellationWindowExpired(GroceryError):
    kind = "CancellationWindowExpired"

    def __init__(self, order_id: str, created_at, deadline):
        self.order_id = order_id
        self.created_at = created_at
        self.deadline = deadline
        super().__init__(
            "cancelled_at",
            f"Order {order_id} can only be cancelled until {deadline.isoformat()}",
        )


class UnauthorizedActor(GroceryError):
    kind = "UnauthorizedActor"

    def __init__(self, order_id: str, actor: str):
        self.order_id = order_id
        self.actor = actor
        super().__init__("actor", f"{actor} is not allowed to act on order {order_id}")


class StockContention(GroceryError):
    """Stock kept changing under every compare-and-set attempt."""

    kind = "StockContention"

    def __init__(self, product_id: str, attempts: int):
        self.product_id = product_id
        self.attempts = attempts
        super().__init__(
            "stock",
            f"Stock of product {product_id} is changing too quickly ({attempts} attempts), try again",
        )


class ConcurrentUpdate(GroceryError):
    """A guarded write other than a stock change kept losing to concurrent writers."""

    kind = "ConcurrentUpdate"

    def __init__(self, field: str, subject: str, attempts: int):
        self.subject = subject
        self.attempts = attempts
        super().__init__(field, f"{subject} is being changed concurrently ({attempts} attempts), try again")


class AlreadyRated(GroceryError):
    kind = "AlreadyRated"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("order_id", f"Order {order_id} has already been rated")
