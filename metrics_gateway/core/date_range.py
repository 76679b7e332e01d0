"""
Calendar date ranges for metric queries
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional

from metrics_gateway.core.errors import InvalidDateError

DEFAULT_WINDOW_DAYS = 7


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days"""
    date_from: date
    date_to: date

    def days(self) -> Iterator[date]:
        """Yield every day in the range, empty when the range is inverted"""
        current = self.date_from
        while current <= self.date_to:
            yield current
            current += timedelta(days=1)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def default_date_range(today: Optional[date] = None) -> DateRange:
    """Trailing window ending today (UTC)"""
    today = today or utc_today()
    return DateRange(today - timedelta(days=DEFAULT_WINDOW_DAYS), today)


def parse_iso_date(value: str, param: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise InvalidDateError(param, value)


def resolve_date_range(
    from_param: Optional[str] = None,
    to_param: Optional[str] = None,
    today: Optional[date] = None,
) -> DateRange:
    """
    Resolve optional request parameters into a date range

    Args:
        from_param: Start date (YYYY-MM-DD), defaults to 7 days before today
        to_param: End date (YYYY-MM-DD), defaults to today
        today: Override for the current UTC date

    Returns:
        DateRange: The resolved range; ``from > to`` is not rejected
    """
    defaults = default_date_range(today)
    date_from = parse_iso_date(from_param, "from") if from_param else defaults.date_from
    date_to = parse_iso_date(to_param, "to") if to_param else defaults.date_to
    return DateRange(date_from, date_to)
