"""Calendar arithmetic and period windows.

All dates are plain calendar dates; windows are inclusive on both ends.
The helpers here are the only place date math happens, so the single-period
resolver, the trend resolver and the bucket grouping in ``metrics`` all agree
on what "week" and "month" mean (Monday-start weeks, calendar months).
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, Literal, Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings
from models import PeriodKind

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DAILY_TREND_DAYS = 30
WEEKLY_TREND_DAYS = 84
MONTHLY_TREND_MONTHS = 12


class InvalidPeriodKind(ValueError):
    pass


class InvalidDate(ValueError):
    pass


class FutureDate(ValueError):
    pass


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("Start date must be before end date")

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class TimePeriod:
    """A caller's query: which granularity, anchored on which day.

    Values are kept raw so that ``resolve_time_period`` reports bad input
    with the proper error type instead of failing at construction.
    """

    kind: Union[PeriodKind, str]
    anchor_date: Union[date, str]


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def add_months(d: date, months: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + months
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, min(d.day, days_in_month(year, month)))


def week_start(d: date) -> date:
    return d - timedelta(days=d.weekday())


def week_end(d: date) -> date:
    return week_start(d) + timedelta(days=6)


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=days_in_month(d.year, d.month))


def bucket_key(d: date, granularity: PeriodKind) -> date:
    """Start date of the bucket that ``d`` falls into."""
    if granularity == PeriodKind.day:
        return d
    if granularity == PeriodKind.week:
        return week_start(d)
    return month_start(d)


def next_bucket(key: date, granularity: PeriodKind) -> date:
    if granularity == PeriodKind.day:
        return add_days(key, 1)
    if granularity == PeriodKind.week:
        return add_days(key, 7)
    return add_months(key, 1)


def bucket_keys(date_range: DateRange, granularity: PeriodKind) -> Iterator[date]:
    """Every bucket key touching ``date_range``, oldest first, no gaps.

    The first key is the bucket floor of ``date_range.start`` and may lie
    before it (a Monday or a 1st of month).
    """
    current = bucket_key(date_range.start, granularity)
    while current <= date_range.end:
        yield current
        current = next_bucket(current, granularity)


def parse_period_kind(value: Union[PeriodKind, str, None]) -> PeriodKind:
    if isinstance(value, PeriodKind):
        return value
    try:
        return PeriodKind(value)
    except ValueError as exc:
        raise InvalidPeriodKind(
            f"Invalid period type: {value}. Expected 'day', 'week', or 'month'."
        ) from exc


def parse_anchor_date(value: Union[date, str, None]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise InvalidDate(
            f"Invalid anchor date format: {value}. Expected ISO 8601 (YYYY-MM-DD)."
        )
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidDate(f"Invalid anchor date: {value}") from exc


def ensure_not_future(anchor: date, today: date) -> None:
    if anchor > today:
        raise FutureDate("Anchor date cannot be in the future")


def resolve_period_range(kind: PeriodKind, anchor: date) -> DateRange:
    if kind == PeriodKind.day:
        return DateRange(anchor, anchor)
    if kind == PeriodKind.week:
        return DateRange(week_start(anchor), week_end(anchor))
    if kind == PeriodKind.month:
        return DateRange(month_start(anchor), month_end(anchor))
    raise InvalidPeriodKind(f"Invalid period type: {kind}")


def resolve_trend_range(kind: PeriodKind, anchor: date) -> DateRange:
    if kind == PeriodKind.day:
        return DateRange(add_days(anchor, -(DAILY_TREND_DAYS - 1)), anchor)
    if kind == PeriodKind.week:
        return DateRange(add_days(anchor, -(WEEKLY_TREND_DAYS - 1)), anchor)
    if kind == PeriodKind.month:
        first = add_months(month_start(anchor), -(MONTHLY_TREND_MONTHS - 1))
        return DateRange(first, anchor)
    raise InvalidPeriodKind(f"Invalid period type: {kind}")


def resolve_time_period(
    period: TimePeriod,
    *,
    window: Literal["single", "trend"] = "single",
    today: Optional[date] = None,
) -> tuple[PeriodKind, DateRange]:
    kind = parse_period_kind(period.kind)
    anchor = parse_anchor_date(period.anchor_date)
    ensure_not_future(anchor, today or local_today())
    try:
        if window == "trend":
            return kind, resolve_trend_range(kind, anchor)
        return kind, resolve_period_range(kind, anchor)
    except (OverflowError, ValueError) as exc:
        # Lookback from an anchor near date.min leaves the calendar.
        raise InvalidDate(f"Anchor date out of supported range: {anchor}") from exc
