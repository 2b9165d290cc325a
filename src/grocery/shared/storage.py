"""Conditional writes against committed state.

Stock levels, order status, coupon usage, loyalty balances and history
sequence numbers are changed by guarded updates that commit on their own,
outside the unit of work of the command that asks for them. The guard and the
write are evaluated together by the store, so of two concurrent callers
holding the same observed value only one sees its write land.

Reads that feed a guard go through :func:`committed` so they see what other
units of work have already committed, not the snapshot the current unit of
work started with.
"""

from contextlib import nullcontext

from protean.utils import Database
from protean.utils.query import Q


def committed(dao):
    """``dao`` switched to work against committed state, bypassing the unit of work."""
    return dao.outside_uow()


def _write_lock(dao):
    # The memory store filters a private copy of the data; its provider lock
    # makes the check and the write a single step. Relational providers do
    # both inside one statement.
    if dao.provider.__database__ == Database.memory.value:
        return dao._get_session()._db["lock"]
    return nullcontext()


def conditional_update(dao, values: dict, **criteria) -> bool:
    """Write ``values`` to the single record matching ``criteria``.

    Returns True when the record still matched and the write committed.
    """
    dao = committed(dao)
    with _write_lock(dao):
        return dao._update_all(Q(**criteria), values) == 1


def create_unique(dao, **values):
    """Create and commit a record, letting the store's unique checks decide.

    Raises protean's ``ValidationError`` keyed by the clashing field when a
    record with the same unique values already exists.
    """
    dao = committed(dao)
    with _write_lock(dao):
        return dao.create(**values)
