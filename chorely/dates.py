"""UTC calendar helpers.

Everything here works on naive datetimes that represent UTC. Aware values are
converted to UTC before use. Nothing reads the clock except ``utcnow``.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

from .frequency import Frequency

DAY = timedelta(days=1)
WEEK = timedelta(days=7)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc(value: datetime) -> datetime:
    """Drop tzinfo after converting an aware datetime to UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_datetime(value: str) -> datetime:
    """Parse an ISO datetime or a plain ``YYYY-MM-DD`` date into naive UTC."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("must be a valid date")
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValueError("must be a valid date")
    return to_utc(parsed)


def day_key(value: datetime) -> str:
    return to_utc(value).date().isoformat()


def start_of_day(value: datetime) -> datetime:
    value = to_utc(value)
    return datetime(value.year, value.month, value.day)


def start_of_tomorrow(value: datetime) -> datetime:
    return start_of_day(value) + DAY


def start_of_week(value: datetime) -> datetime:
    """Monday 00:00 of the week containing ``value``."""
    start = start_of_day(value)
    return start - timedelta(days=start.weekday())


def end_of_week(value: datetime) -> datetime:
    return start_of_week(value) + WEEK


def iso_week_number(value: datetime) -> int:
    return to_utc(value).isocalendar()[1]


def start_of_biweek(value: datetime) -> datetime:
    """Odd ISO weeks open a pair, even weeks close it."""
    week_start = start_of_week(value)
    if iso_week_number(week_start) % 2 == 0:
        return week_start - WEEK
    return week_start


def end_of_biweek(value: datetime) -> datetime:
    start = start_of_biweek(value)
    second_week = start + WEEK
    # Week 53 is followed by week 1, which opens its own pair
    if start_of_biweek(second_week) == second_week:
        return second_week
    return start + 2 * WEEK


def _first_of(year: int, month_index: int) -> datetime:
    """First day of a month given a zero-based month index that may overflow."""
    return datetime(year + month_index // 12, month_index % 12 + 1, 1)


def start_of_month(value: datetime) -> datetime:
    value = to_utc(value)
    return datetime(value.year, value.month, 1)


def end_of_month(value: datetime) -> datetime:
    value = to_utc(value)
    return _first_of(value.year, value.month)


def start_of_bimonth(value: datetime) -> datetime:
    """Month pairs: Jan-Feb, Mar-Apr, May-Jun, Jul-Aug, Sep-Oct, Nov-Dec."""
    value = to_utc(value)
    month_index = value.month - 1
    return _first_of(value.year, month_index - month_index % 2)


def end_of_bimonth(value: datetime) -> datetime:
    value = to_utc(value)
    month_index = value.month - 1
    return _first_of(value.year, month_index - month_index % 2 + 2)


def start_of_half_year(value: datetime) -> datetime:
    value = to_utc(value)
    return datetime(value.year, 1 if value.month <= 6 else 7, 1)


def end_of_half_year(value: datetime) -> datetime:
    value = to_utc(value)
    if value.month <= 6:
        return datetime(value.year, 7, 1)
    return datetime(value.year + 1, 1, 1)


def start_of_year(value: datetime) -> datetime:
    return datetime(to_utc(value).year, 1, 1)


def end_of_year(value: datetime) -> datetime:
    return datetime(to_utc(value).year + 1, 1, 1)


_CYCLES = {
    Frequency.DAILY: (start_of_day, start_of_tomorrow),
    Frequency.WEEKLY: (start_of_week, end_of_week),
    Frequency.BIWEEKLY: (start_of_biweek, end_of_biweek),
    Frequency.MONTHLY: (start_of_month, end_of_month),
    Frequency.BIMONTHLY: (start_of_bimonth, end_of_bimonth),
    Frequency.SEMIANNUAL: (start_of_half_year, end_of_half_year),
    Frequency.YEARLY: (start_of_year, end_of_year),
}


def cycle_range(frequency: Frequency, now: datetime) -> Tuple[datetime, datetime]:
    """The ``[start, end)`` cycle of ``frequency`` that contains ``now``."""
    start_fn, end_fn = _CYCLES[Frequency(frequency)]
    return start_fn(now), end_fn(now)


def days_between(start: datetime, end: datetime) -> List[datetime]:
    """Day starts from ``start``'s day up to, not including, ``end``'s day."""
    days = []
    cursor = start_of_day(start)
    stop = start_of_day(end)
    while cursor < stop:
        days.append(cursor)
        cursor += DAY
    return days


@dataclass
class MonthGridCell:
    day_key: str
    date: datetime
    in_month: bool


def month_title(year: int, month: int) -> str:
    return datetime(year, month, 1).strftime("%B %Y")


def build_month_grid(year: int, month: int) -> List[MonthGridCell]:
    """Six Monday-first weeks covering the given month."""
    first = datetime(year, month, 1)
    grid_start = first - timedelta(days=first.weekday())
    cells = []
    for offset in range(42):
        date = grid_start + timedelta(days=offset)
        cells.append(MonthGridCell(day_key=day_key(date), date=date, in_month=date.month == month))
    return cells


def today_day_key(now: datetime) -> str:
    return day_key(start_of_day(now))
