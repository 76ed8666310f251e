#!/usr/bin/env python3
"""
Date and Timestamp Helpers

Immutable calendar-day wrapper plus the timestamp normalization used by the
fact store, the day-bucketing reports and the reporting date range.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import RangeError

DEFAULT_TIMEZONE = "Asia/Kolkata"
EPOCH_START = "1970-01-01"


def get_timezone(name: str | None) -> ZoneInfo:
    """
    Resolve a timezone name, falling back to the default when unset.

    Raises:
        RangeError: If the name is not a known IANA timezone
    """
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise RangeError(f"Unknown timezone: {name!r}") from e


def ensure_utc(moment: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def to_storage_string(moment: datetime) -> str:
    """Serialize a timestamp as fixed-width UTC ISO text so it sorts lexically."""
    return ensure_utc(moment).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def from_storage_string(text: str) -> datetime:
    """Parse a timestamp written by to_storage_string (or any ISO form)."""
    return ensure_utc(datetime.fromisoformat(text))


@dataclass(frozen=True)
class FinancialDate:
    """Immutable calendar day with consistent formatting."""

    date: date

    @classmethod
    def from_datetime(cls, moment: datetime, tz: ZoneInfo | None = None) -> "FinancialDate":
        """
        Take the calendar day of a timestamp as observed in a timezone.

        Args:
            moment: Timestamp (naive values are treated as UTC)
            tz: Timezone for the day boundary (default: Asia/Kolkata)
        """
        zone = tz or get_timezone(None)
        return cls(date=ensure_utc(moment).astimezone(zone).date())

    def to_iso_string(self) -> str:
        """Format as YYYY-MM-DD."""
        return self.date.isoformat()

    def __str__(self) -> str:
        return self.to_iso_string()

    def __lt__(self, other: "FinancialDate") -> bool:
        return self.date < other.date

    def __le__(self, other: "FinancialDate") -> bool:
        return self.date <= other.date

    def __gt__(self, other: "FinancialDate") -> bool:
        return self.date > other.date

    def __ge__(self, other: "FinancialDate") -> bool:
        return self.date >= other.date


def parse_report_range(
    from_str: str | None,
    to_str: str | None,
    tz: ZoneInfo | None = None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """
    Turn a reporting `from`/`to` pair of ISO dates into an aware datetime range.

    `from` defaults to 1970-01-01 and `to` defaults to now. An explicit `to`
    is inclusive through the end of that day in the reporting timezone.

    Args:
        from_str: Start date (YYYY-MM-DD) or None
        to_str: End date (YYYY-MM-DD) or None
        tz: Reporting timezone (default: Asia/Kolkata)
        now: Override for the current time (testing)

    Returns:
        (start, end) as aware datetimes in the reporting timezone

    Raises:
        RangeError: If either date is malformed or the range is reversed
    """
    zone = tz or get_timezone(None)

    try:
        start_day = date.fromisoformat(from_str or EPOCH_START)
    except (TypeError, ValueError) as e:
        raise RangeError(f"Invalid 'from' date {from_str!r}; expected YYYY-MM-DD") from e

    start = datetime.combine(start_day, time.min, tzinfo=zone)

    if to_str:
        try:
            end_day = date.fromisoformat(to_str)
        except (TypeError, ValueError) as e:
            raise RangeError(f"Invalid 'to' date {to_str!r}; expected YYYY-MM-DD") from e
        end = datetime.combine(end_day, time.max, tzinfo=zone)
    else:
        end = (now or datetime.now(timezone.utc)).astimezone(zone)

    if end < start:
        raise RangeError(f"Date range is reversed: {start.date()} is after {end.date()}")

    return start, end
