"""Timestamp coercion for provider payloads.

The provider delivers dates either as parsed date/datetime values or as
already-formatted strings. Stored rows always carry ISO-8601 strings.
"""

from datetime import UTC, date, datetime


def to_iso_timestamp(value: datetime | date | str | None) -> str | None:
    """Coerce a provider timestamp into its canonical ISO-8601 string.

    Datetimes are rendered in UTC with millisecond precision and a ``Z``
    suffix (naive values are taken to be UTC). Plain dates become midnight
    UTC. Strings are returned unchanged and ``None`` stays ``None``.

    Args:
        value: Timestamp as delivered by the provider

    Returns:
        str | None: ISO-8601 string, or None when the value is absent
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        else:
            value = value.astimezone(UTC)
        return (
            value.strftime("%Y-%m-%dT%H:%M:%S")
            + f".{value.microsecond // 1000:03d}Z"
        )
    return f"{value.isoformat()}T00:00:00.000Z"
