from datetime import datetime
from typing import Iterable

from .dates import DAY, day_key, start_of_day


def compute_streak_days(completed_at: Iterable[datetime], now: datetime) -> int:
    """Consecutive UTC days, ending today, that have at least one completion."""
    done_days = {day_key(value) for value in completed_at}
    streak = 0
    cursor = start_of_day(now)
    while day_key(cursor) in done_days:
        streak += 1
        cursor -= DAY
    return streak
