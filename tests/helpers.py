"""Row builders shared by the test modules."""
from datetime import datetime

from chorely.frequency import Frequency
from chorely.models import Chore, ChoreAssignment, ChoreCompletion, Schedule, User


def make_user(db, user_id="user-1", name=None):
    user = User(id=user_id, name=name or user_id.title())
    db.add(user)
    db.commit()
    return user


def make_chore(db, title, frequency=Frequency.WEEKLY, assignees=()):
    chore = Chore(title=title, frequency=frequency)
    chore.assignments = [ChoreAssignment(user_id=user.id) for user in assignees]
    db.add(chore)
    db.commit()
    return chore


def make_schedule(db, chore, day, slot_type=Frequency.DAILY, hidden=False, suggested=False):
    schedule = Schedule(
        chore_id=chore.id,
        scheduled_for=day,
        slot_type=slot_type,
        hidden=hidden,
        suggested=suggested,
    )
    db.add(schedule)
    db.commit()
    return schedule


def make_completion(db, chore, user, completed_at, schedule=None, notes=None):
    completion = ChoreCompletion(
        chore_id=chore.id,
        user_id=user.id,
        schedule_id=schedule.id if schedule else None,
        completed_at=completed_at,
        notes=notes,
    )
    db.add(completion)
    db.commit()
    return completion


def at(value: str) -> datetime:
    """Naive UTC datetime from an ISO string."""
    return datetime.fromisoformat(value)


def as_user(user_id, name=None):
    headers = {"X-User-Id": user_id}
    if name:
        headers["X-User-Name"] = name
    return headers
