"""Timestamp normalization.

Every source stores time differently: Messenger uses epoch milliseconds,
SMS backups store epoch milliseconds as XML attribute strings, ChatGPT uses
epoch-second floats (and sometimes ISO-8601 strings). All of them become an
aware UTC datetime here, before any grouping happens.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Anything above this as "seconds" is far past year 5000, so it must be millis.
_MAX_PLAUSIBLE_SECONDS = 10**11


def from_epoch_millis(value: int | float | str) -> datetime:
    """Epoch milliseconds (int or numeric string) to UTC datetime."""
    millis = _to_decimal(value)
    return _from_epoch_micros(int(millis) * 1000, value)


def from_epoch_seconds(value: int | float | str) -> datetime:
    """Epoch seconds (possibly fractional) to UTC datetime, microsecond precision."""
    seconds = _to_decimal(value)
    micros = int((seconds * 1_000_000).to_integral_value())
    return _from_epoch_micros(micros, value)


def from_iso8601(value: str) -> datetime:
    """ISO-8601 string to UTC datetime. Naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid ISO-8601 timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC)
    except OverflowError as e:
        raise ValueError(f"Timestamp out of range: {value!r}") from e


def from_epoch_auto(value: int | float | str) -> datetime:
    """Epoch value whose unit is unknown: large magnitudes are millis, else seconds."""
    number = _to_decimal(value)
    if abs(number) >= _MAX_PLAUSIBLE_SECONDS:
        return from_epoch_millis(number)
    return from_epoch_seconds(number)


def normalize_timestamp(value: object) -> datetime | None:
    """Best-effort normalization for loosely typed fields. None when absent."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float, Decimal)):
        return from_epoch_auto(value)
    if isinstance(value, str):
        try:
            return from_epoch_auto(value)
        except ValueError:
            return from_iso8601(value)
    raise ValueError(f"Not a timestamp: {value!r}")


def _to_decimal(value: int | float | str | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        # str() first so floats keep their shortest repr, not binary noise
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Not a numeric timestamp: {value!r}") from e
    if not number.is_finite():
        raise ValueError(f"Not a numeric timestamp: {value!r}")
    return number


def _from_epoch_micros(micros: int, original: object) -> datetime:
    """Out-of-range values are reported like any other unreadable timestamp."""
    try:
        return _EPOCH + timedelta(microseconds=micros)
    except OverflowError as e:
        raise ValueError(f"Timestamp out of range: {original!r}") from e
