"""UTC timestamps for stored records.

SQLite keeps wall-clock text without an offset, so everything written to
the store must already be in UTC.
"""

from datetime import datetime, timezone

from festival_pass.domain.errors import InvalidInputError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime | None) -> datetime:
    """Normalize a caller supplied timestamp to UTC.

    Args:
        value: Timezone-aware timestamp, or None for the current time

    Raises:
        InvalidInputError: If the timestamp has no timezone
    """
    if value is None:
        return utc_now()
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidInputError("Timestamps must be timezone-aware")
    return value.astimezone(timezone.utc)
