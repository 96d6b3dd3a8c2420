"""Writes against the chore store.

Schedule and completion creation are idempotent. Uniqueness is owned by the
database: a losing insert rolls back and hands back the row that won.
"""
from datetime import datetime
from typing import Iterable, Optional, Tuple
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .dates import start_of_day, to_utc
from .errors import ConflictError, NotFoundError, ValidationFailed
from .frequency import Frequency, can_fill_slot
from .models import Chore, ChoreAssignment, ChoreCompletion, Schedule, User

logger = logging.getLogger(__name__)


def get_chore(db: Session, chore_id: int) -> Chore:
    chore = db.query(Chore).filter(Chore.id == chore_id).first()
    if not chore:
        raise NotFoundError("Chore")
    return chore


def _require_users(db: Session, user_ids: Iterable[str]):
    user_ids = list(dict.fromkeys(user_ids))
    if not user_ids:
        return []
    found = {row[0] for row in db.query(User.id).filter(User.id.in_(user_ids)).all()}
    missing = [user_id for user_id in user_ids if user_id not in found]
    if missing:
        raise ValidationFailed.for_field("assignee_ids", f"Unknown users: {', '.join(missing)}")
    return user_ids


def create_chore(
    db: Session,
    title: str,
    frequency: Frequency,
    description: Optional[str] = None,
    assignee_ids: Iterable[str] = (),
) -> Chore:
    user_ids = _require_users(db, assignee_ids)
    chore = Chore(title=title, frequency=frequency, description=description)
    chore.assignments = [ChoreAssignment(user_id=user_id) for user_id in user_ids]
    db.add(chore)
    db.commit()
    db.refresh(chore)
    logger.info(f"Created {chore.frequency.value} chore {chore.id}: {chore.title}")
    return chore


def update_chore(db: Session, chore_id: int, changes: dict) -> Chore:
    """Apply ``changes``; an ``assignee_ids`` key replaces the whole assignee set."""
    chore = get_chore(db, chore_id)
    try:
        for field in ("title", "description", "frequency"):
            if field in changes:
                setattr(chore, field, changes[field])

        if "assignee_ids" in changes:
            user_ids = _require_users(db, changes["assignee_ids"] or [])
            db.query(ChoreAssignment).filter(ChoreAssignment.chore_id == chore.id).delete(synchronize_session=False)
            db.flush()
            db.expire(chore, ["assignments"])
            for user_id in user_ids:
                db.add(ChoreAssignment(chore_id=chore.id, user_id=user_id))

        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(chore)
    return chore


def delete_chore(db: Session, chore_id: int) -> None:
    chore = get_chore(db, chore_id)
    db.delete(chore)
    db.commit()
    logger.info(f"Deleted chore {chore_id}")


def assign_user(db: Session, chore_id: int, user_id: str) -> ChoreAssignment:
    get_chore(db, chore_id)
    if not db.query(User).filter(User.id == user_id).first():
        raise NotFoundError("User")

    existing = db.query(ChoreAssignment).filter(
        ChoreAssignment.chore_id == chore_id,
        ChoreAssignment.user_id == user_id,
    ).first()
    if existing:
        raise ConflictError("User is already assigned to this chore")

    assignment = ChoreAssignment(chore_id=chore_id, user_id=user_id)
    db.add(assignment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User is already assigned to this chore")
    db.refresh(assignment)
    return assignment


def unassign_user(db: Session, chore_id: int, user_id: str) -> None:
    assignment = db.query(ChoreAssignment).filter(
        ChoreAssignment.chore_id == chore_id,
        ChoreAssignment.user_id == user_id,
    ).first()
    if not assignment:
        raise NotFoundError("Assignment")
    db.delete(assignment)
    db.commit()


def _schedule_for(db: Session, chore_id: int, day: datetime) -> Optional[Schedule]:
    return db.query(Schedule).filter(
        Schedule.chore_id == chore_id,
        Schedule.scheduled_for == day,
    ).first()


def _reuse_schedule(db: Session, schedule: Schedule, suggested: bool) -> Schedule:
    changed = False
    if schedule.hidden:
        schedule.hidden = False
        changed = True
    # Suggested only ever narrows to manual
    if schedule.suggested and not suggested:
        schedule.suggested = False
        changed = True
    if changed:
        db.commit()
        db.refresh(schedule)
    return schedule


def create_schedule(
    db: Session,
    chore_id: int,
    scheduled_for: datetime,
    slot_type: Frequency,
    suggested: bool = False,
) -> Tuple[Schedule, bool]:
    """Schedule a chore on a UTC day; returns ``(schedule, created)``."""
    day = start_of_day(scheduled_for)

    existing = _schedule_for(db, chore_id, day)
    if existing:
        logger.info(f"Schedule for chore {chore_id} on {day.date()} already exists ({existing.id})")
        return _reuse_schedule(db, existing, suggested), False

    chore = get_chore(db, chore_id)
    if not can_fill_slot(chore.frequency, slot_type):
        raise ValidationFailed.for_field(
            "chore_id",
            f"A {chore.frequency.value} chore cannot fill a {Frequency(slot_type).value} slot",
        )

    schedule = Schedule(
        chore_id=chore_id,
        scheduled_for=day,
        slot_type=slot_type,
        suggested=suggested,
        hidden=False,
    )
    db.add(schedule)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = _schedule_for(db, chore_id, day)
        if winner is None:
            raise
        logger.info(f"Lost schedule race for chore {chore_id} on {day.date()}, returning {winner.id}")
        return _reuse_schedule(db, winner, suggested), False

    db.refresh(schedule)
    logger.info(f"Scheduled chore {chore_id} on {day.date()} as {schedule.slot_type.value} slot")
    return schedule, True


def get_schedule(db: Session, schedule_id: int) -> Schedule:
    schedule = db.query(Schedule).filter(Schedule.id == schedule_id).first()
    if not schedule:
        raise NotFoundError("Schedule")
    return schedule


def delete_schedule(db: Session, schedule_id: int) -> None:
    schedule = get_schedule(db, schedule_id)
    db.delete(schedule)
    db.commit()
    logger.info(f"Deleted schedule {schedule_id}")


def hide_schedule(db: Session, schedule_id: int) -> Schedule:
    schedule = get_schedule(db, schedule_id)
    if not schedule.hidden:
        schedule.hidden = True
        db.commit()
        db.refresh(schedule)
        logger.info(f"Hid schedule {schedule_id}")
    return schedule


def _completion_for_schedule(db: Session, schedule_id: int) -> Optional[ChoreCompletion]:
    return db.query(ChoreCompletion).filter(ChoreCompletion.schedule_id == schedule_id).first()


def create_completion(
    db: Session,
    user: User,
    chore_id: int,
    now: datetime,
    schedule_id: Optional[int] = None,
    notes: Optional[str] = None,
    completed_at: Optional[datetime] = None,
) -> Tuple[ChoreCompletion, bool]:
    """Mark a chore done; returns ``(completion, created)``.

    With a schedule, whoever completes it first wins and later callers get
    that same record back.
    """
    get_chore(db, chore_id)

    if schedule_id is not None:
        schedule = get_schedule(db, schedule_id)
        if schedule.chore_id != chore_id:
            raise ValidationFailed.for_field("schedule_id", "Schedule does not belong to this chore")

        existing = _completion_for_schedule(db, schedule_id)
        if existing:
            logger.info(f"Schedule {schedule_id} already completed by {existing.user_id}")
            return existing, False

    completion = ChoreCompletion(
        chore_id=chore_id,
        user_id=user.id,
        schedule_id=schedule_id,
        notes=notes,
        completed_at=to_utc(completed_at) if completed_at else to_utc(now),
    )
    db.add(completion)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = _completion_for_schedule(db, schedule_id) if schedule_id is not None else None
        if winner is None:
            raise
        logger.info(f"Lost completion race for schedule {schedule_id}, returning {winner.id}")
        return winner, False

    db.refresh(completion)
    logger.info(f"User {user.id} completed chore {chore_id}")
    return completion, True


def delete_completion(db: Session, user: User, schedule_id: int) -> None:
    """Undo the caller's own completion of a schedule."""
    completion = db.query(ChoreCompletion).filter(
        ChoreCompletion.schedule_id == schedule_id,
        ChoreCompletion.user_id == user.id,
    ).first()
    if not completion:
        raise NotFoundError("Completion")
    db.delete(completion)
    db.commit()
    logger.info(f"User {user.id} undid completion of schedule {schedule_id}")
