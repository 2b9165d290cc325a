"""Order status history: an append-only audit trail.

One entry per status change, including the creation of the order. Entries are
never updated or deleted, and the writer does not judge whether a transition
was legal; that is the state machine's job.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.ordering.order import Order, OrderStatus
from grocery.shared.clock import as_utc

logger = structlog.get_logger(__name__)


@grocery.aggregate
class StatusHistoryEntry:
    order_id: Identifier(required=True)
    status: String(required=True, max_length=20, choices=OrderStatus)
    actor: String(max_length=100)
    note: Text()
    occurred_at: DateTime(required=True)
    sequence: Integer(required=True, min_value=1)


@grocery.repository(part_of=StatusHistoryEntry)
class StatusHistoryRepository:
    def entries_for(self, order_id: str) -> list[StatusHistoryEntry]:
        return self._dao.query.filter(order_id=order_id).all().items


def _newest_first(entry: StatusHistoryEntry):
    return (as_utc(entry.occurred_at), entry.sequence, str(entry.id))


def history_for(order_id: str) -> list[StatusHistoryEntry]:
    """All entries of the order, newest first. Reading has no side effects."""
    entries = current_domain.repository_for(StatusHistoryEntry).entries_for(order_id)
    return sorted(entries, key=_newest_first, reverse=True)


def record(
    order_id: str,
    status: str,
    actor: str | None = None,
    note: str | None = None,
    occurred_at=None,
    sequence: int | None = None,
):
    """Append an entry for an order the caller already knows to exist.

    ``sequence`` is only passed for the creation entry, whose number the new
    order already carries. Every other entry takes the next number from a
    guarded increment on the stored order, so concurrent appends for the same
    order never share one.
    """
    if sequence is None:
        sequence = current_domain.repository_for(Order).next_history_sequence(order_id)

    repo = current_domain.repository_for(StatusHistoryEntry)
    entry = StatusHistoryEntry(
        order_id=order_id,
        status=status,
        actor=actor,
        note=note,
        occurred_at=occurred_at or datetime.now(UTC),
        sequence=sequence,
    )
    repo.add(entry)

    logger.debug("status_history_appended", order_id=order_id, status=status, actor=actor, sequence=sequence)
    return entry


def append(order_id: str, status: str, actor: str | None = None, note: str | None = None, occurred_at=None):
    """Append an entry after checking that the order exists."""
    if current_domain.repository_for(Order).find_fresh(order_id) is None:
        raise ObjectNotFoundError(f"Order with id {order_id} does not exist")
    return record(order_id, status, actor=actor, note=note, occurred_at=occurred_at)
