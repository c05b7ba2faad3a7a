import datetime

__all__ = ["utc_now", "ensure_utc"]


def utc_now() -> datetime.datetime:
    """Current time as an aware datetime in UTC."""
    return datetime.datetime.now(datetime.UTC)


def ensure_utc(value: datetime.datetime) -> datetime.datetime:
    """
    Convert an aware datetime to UTC.

    :raises ValueError: for naive datetimes, which cannot be placed in time
    """
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"naive datetime is not allowed: {value!r}")
    return value.astimezone(datetime.UTC)
