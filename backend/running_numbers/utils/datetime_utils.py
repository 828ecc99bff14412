"""Datetime utility functions."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

from running_numbers.config import settings
from running_numbers.services.exceptions import InvalidArgument

# Timezone that decides which calendar year "today" belongs to (from config)
LOCAL_TIMEZONE = ZoneInfo(settings.timezone)


def to_local_timezone(dt: datetime) -> datetime:
    """Convert a datetime to the configured local timezone (naive values are assumed UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(LOCAL_TIMEZONE)


def current_period() -> int:
    """Calendar year of today's date in the local timezone."""
    return datetime.now(LOCAL_TIMEZONE).year


def parse_effective_date(value: date | datetime | str | None) -> date | None:
    """Normalize an effective date to a ``date``.

    Accepts ``date``, ``datetime`` (tz-aware values are converted to local
    time first) and ISO strings (``YYYY-MM-DD`` or a full timestamp).
    Returns None for empty or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_local_timezone(value).date() if value.tzinfo is not None else value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = isoparse(text)
        except ValueError:
            return None
        return to_local_timezone(parsed).date() if parsed.tzinfo is not None else parsed.date()
    return None


def is_valid_period(period: object) -> bool:
    """True for an int (not bool) inside the configured period range."""
    return (
        isinstance(period, int)
        and not isinstance(period, bool)
        and settings.period_min <= period <= settings.period_max
    )


def period_from_effective_date(
    value: date | datetime | str | None,
    *,
    fallback_to_today: bool = True,
) -> int:
    """Derive the numbering period (calendar year) from a submission's effective date.

    Back-dated submissions land in the year of their effective date, not the
    server's current year. Missing, unparseable or out-of-range dates fall
    back to the current local year unless ``fallback_to_today`` is False.

    Raises:
        InvalidArgument: if no valid year can be derived and fallback is disabled
    """
    parsed = parse_effective_date(value)
    if parsed is not None and is_valid_period(parsed.year):
        return parsed.year
    if not fallback_to_today:
        raise InvalidArgument(f"Cannot derive period from effective date {value!r}")
    return current_period()
