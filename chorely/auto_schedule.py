from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .dates import DAY, days_between, start_of_day, to_utc
from .frequency import Frequency
from .models import Chore, Schedule

logger = logging.getLogger(__name__)


def insert_ignoring_duplicates(db: Session, model, rows, index_elements):
    """Build an INSERT that skips rows colliding with ``index_elements``."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = pg_insert
    elif dialect == "sqlite":
        insert = sqlite_insert
    else:
        raise RuntimeError(f"Unsupported database dialect: {dialect}")
    return insert(model).values(rows).on_conflict_do_nothing(index_elements=index_elements)


def ensure_daily_schedules(db: Session, now: datetime, through: Optional[datetime] = None) -> int:
    """Make sure every DAILY chore has a schedule for today.

    When ``through`` is given, every day after today and before ``through``'s
    day is covered as well. Rows that already exist are skipped by the
    database, so repeated or concurrent calls converge. Returns the number of
    rows actually inserted.
    """
    today = start_of_day(now)

    daily_ids = [row[0] for row in db.query(Chore.id).filter(Chore.frequency == Frequency.DAILY).all()]
    if not daily_ids:
        return 0

    days = [today]
    if through is not None:
        days.extend(days_between(today + DAY, through))

    rows = [
        {
            "chore_id": chore_id,
            "scheduled_for": day,
            "slot_type": Frequency.DAILY,
            "suggested": False,
            "hidden": False,
            "created_at": to_utc(now),
        }
        for day in days
        for chore_id in daily_ids
    ]

    stmt = insert_ignoring_duplicates(db, Schedule, rows, ["chore_id", "scheduled_for"])
    result = db.execute(stmt)
    db.commit()

    created = max(result.rowcount or 0, 0)
    if created:
        logger.info(f"Auto-scheduled {created} daily chore instance(s) across {len(days)} day(s)")
    return created
