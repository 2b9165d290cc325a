from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to an aware UTC datetime. Naive values are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def resolve_now(as_of: datetime | None) -> datetime:
    """The command's ``as_of`` when supplied, otherwise the wall clock."""
    return as_utc(as_of) if as_of is not None else utc_now()
