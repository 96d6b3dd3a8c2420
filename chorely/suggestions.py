"""Cascade suggestions and pace warnings.

A finer slot (say DAILY) is filled with one chore from the next coarser pool
(WEEKLY). Chores already scheduled in the current cycle of their tier are left
out, so each one is cascaded at most once per cycle.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Set
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from .dates import cycle_range
from .frequency import CASCADE_SOURCES, Frequency, cascade_source, cascade_target
from .models import Chore, ChoreCompletion, Schedule

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    chore: Chore
    last_completed_at: Optional[datetime]
    assigned_to_user: bool = False


@dataclass
class CascadeSuggestion:
    slot_type: Frequency
    source_frequency: Frequency
    cycle_start: datetime
    cycle_end: datetime
    chore: Chore
    last_completed_at: Optional[datetime]
    assigned_to_user: bool


@dataclass
class PaceWarning:
    source_frequency: Frequency
    total_chores: int
    scheduled_chores: int
    remaining_chores: int
    remaining_slots: int
    cycle_start: datetime
    cycle_end: datetime
    message: str


def scheduled_chore_ids(db: Session, frequency: Frequency, start: datetime, end: datetime) -> Set[int]:
    """Chores of ``frequency`` with a visible schedule inside ``[start, end)``."""
    rows = (
        db.query(Schedule.chore_id)
        .join(Chore, Chore.id == Schedule.chore_id)
        .filter(
            Chore.frequency == frequency,
            Schedule.hidden.is_(False),
            Schedule.scheduled_for >= start,
            Schedule.scheduled_for < end,
        )
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def _rank_key(candidate: Candidate):
    never_completed = candidate.last_completed_at is None
    return (
        # Coverage before freshness
        0 if never_completed else 1,
        candidate.last_completed_at or datetime.min,
        0 if candidate.assigned_to_user else 1,
        candidate.chore.title,
    )


def rank_candidates(candidates: Sequence[Candidate]) -> List[Candidate]:
    """Never-completed first, then longest neglected, then assigned, then title."""
    return sorted(candidates, key=_rank_key)


def load_candidates(db: Session, frequency: Frequency, exclude: Set[int], user_id: Optional[str] = None) -> List[Candidate]:
    query = (
        db.query(Chore)
        .options(selectinload(Chore.assignments))
        .filter(Chore.frequency == frequency)
    )
    if exclude:
        query = query.filter(Chore.id.notin_(exclude))
    chores = query.all()
    if not chores:
        return []

    last_done = dict(
        db.query(ChoreCompletion.chore_id, func.max(ChoreCompletion.completed_at))
        .filter(ChoreCompletion.chore_id.in_([chore.id for chore in chores]))
        .group_by(ChoreCompletion.chore_id)
        .all()
    )

    return [
        Candidate(
            chore=chore,
            last_completed_at=last_done.get(chore.id),
            assigned_to_user=bool(user_id) and chore.is_assigned_to(user_id),
        )
        for chore in chores
    ]


def suggest_cascaded_chore(
    db: Session,
    slot_type: Frequency,
    now: datetime,
    user_id: Optional[str] = None,
) -> Optional[CascadeSuggestion]:
    """Pick the chore that should fill a ``slot_type`` slot, if any."""
    source = cascade_source(slot_type)
    if source is None:
        logger.info(f"No cascade source for {Frequency(slot_type).value} slots")
        return None

    cycle_start, cycle_end = cycle_range(source, now)
    already_scheduled = scheduled_chore_ids(db, source, cycle_start, cycle_end)
    candidates = load_candidates(db, source, already_scheduled, user_id)
    if not candidates:
        logger.info(f"No unscheduled {source.value} chores left for this cycle")
        return None

    top = rank_candidates(candidates)[0]
    return CascadeSuggestion(
        slot_type=Frequency(slot_type),
        source_frequency=source,
        cycle_start=cycle_start,
        cycle_end=cycle_end,
        chore=top.chore,
        last_completed_at=top.last_completed_at,
        assigned_to_user=top.assigned_to_user,
    )


def remaining_slots(source: Frequency, now: datetime) -> int:
    """How many cascade-target cycles are left before ``source``'s cycle ends.

    Each target cycle is one chance to place a ``source`` chore, the current
    one included: days left in the week for WEEKLY, half-years left in the
    year for YEARLY. Every tier counts in its own cascade target, so MONTHLY
    counts biweeks rather than weeks and YEARLY counts half-years rather
    than months.
    """
    target = cascade_target(source)
    if target is None:
        return 0
    _, source_end = cycle_range(source, now)
    cursor, _ = cycle_range(target, now)
    count = 0
    while cursor < source_end:
        count += 1
        _, cursor = cycle_range(target, cursor)
    return count


def check_cascade_pace(db: Session, now: datetime) -> List[PaceWarning]:
    """Warn for every tier whose unscheduled chores outnumber its remaining slots."""
    warnings = []
    for source in CASCADE_SOURCES:
        cycle_start, cycle_end = cycle_range(source, now)
        slots = remaining_slots(source, now)

        total = db.query(func.count(Chore.id)).filter(Chore.frequency == source).scalar() or 0
        scheduled = len(scheduled_chore_ids(db, source, cycle_start, cycle_end))
        remaining = max(0, total - scheduled)

        if remaining > slots:
            warnings.append(PaceWarning(
                source_frequency=source,
                total_chores=total,
                scheduled_chores=scheduled,
                remaining_chores=remaining,
                remaining_slots=slots,
                cycle_start=cycle_start,
                cycle_end=cycle_end,
                message=(
                    f"Behind pace for {source.value}: {remaining} remaining "
                    f"with only {slots} slots left in this cycle."
                ),
            ))

    if warnings:
        logger.info(f"Pace check produced {len(warnings)} warning(s)")
    return warnings
