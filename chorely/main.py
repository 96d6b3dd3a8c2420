from fastapi import FastAPI, HTTPException, Request, Depends, BackgroundTasks, Query
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy import func
from typing import Optional
from datetime import datetime
import os
from contextlib import asynccontextmanager
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Optional file handler for persistent logs
LOG_FILE = os.getenv("LOG_FILE")
if LOG_FILE:
    file_handler = logging.FileHandler(LOG_FILE)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logging.getLogger().addHandler(file_handler)

from .database import get_db, engine, init_db, test_db_connection, SessionLocal
from .models import Chore, ChoreAssignment, ChoreCompletion, Schedule, User
from .admin import router as admin_router
from .auth import get_current_user
from .auto_schedule import ensure_daily_schedules
from .dates import DAY, build_month_grid, day_key, month_title, parse_datetime, start_of_day, start_of_week, utcnow
from .errors import ChoreAppError, NotFoundError, ValidationFailed
from .frequency import Frequency, cascade_source
from .seed_data import seed_database
from .streak import compute_streak_days
from .suggestions import check_cascade_pace, suggest_cascaded_chore
from .telegram import telegram
from . import operations
from .schemas import (
    AssignmentIn, AssignmentOut, AutoScheduleIn, ChoreDetail, ChoreIn, ChoreOut, ChoreUpdate,
    CompletionIn, CompletionOut, PaceWarningOut, ScheduleIn, ScheduleOut, SuggestIn, SuggestionOut, UserOut,
)

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "").lower() == "true"

# Completion history window used for streaks
STREAK_LOOKBACK = 60 * DAY

# Days ahead that DAILY chores are placed on the calendar
UPCOMING_WINDOW = 14 * DAY


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("Application startup initiated")
    try:
        init_db()
        if SEED_ON_STARTUP:
            with SessionLocal() as db:
                count = db.query(func.count(Chore.id)).scalar()
                if count == 0:
                    logger.info("Database is empty, seeding initial data...")
                    seed_database(db)
                else:
                    logger.info(f"Database already contains {count} chores, skipping seeding")
    except Exception as e:
        logger.error(f"Error during database initialization: {str(e)}", exc_info=True)
        raise

    yield

    logger.info("Application shutdown initiated")
    engine.dispose()
    logger.info("Database connections disposed")


app = FastAPI(
    title="Chorely",
    lifespan=lifespan,
)

app.include_router(admin_router)


# ------------------------------
# Error handling
# ------------------------------

@app.exception_handler(ChoreAppError)
async def chore_app_error_handler(request: Request, exc: ChoreAppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    field_errors = {}
    form_errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        if location:
            field_errors.setdefault(".".join(location), []).append(message)
        else:
            form_errors.append(message)
    return JSONResponse(status_code=400, content=ValidationFailed(field_errors, form_errors).to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def _server_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error {action}: {str(e)}", exc_info=True)
    return HTTPException(status_code=500, detail="Internal server error")


def _query_datetime(name: str, value: Optional[str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        raise ValidationFailed.for_field(name, f"Invalid {name} date")


def _date_range(start: Optional[str], end: Optional[str]):
    start_at = _query_datetime("from", start)
    end_at = _query_datetime("to", end)
    if start_at and end_at and start_at > end_at:
        raise ValidationFailed.for_field("from", "from must not be after to")
    return start_at, end_at


def _dump(schema, obj) -> dict:
    return schema.model_validate(obj).model_dump(mode="json")


# ------------------------------
# Health
# ------------------------------

@app.get("/up")
async def health_check():
    return {"status": "ok"}


@app.get("/health")
def health():
    """Health check that tests the database connection."""
    if not test_db_connection():
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "timestamp": utcnow().isoformat(),
            }
        )
    return {"status": "healthy", "database": "connected", "timestamp": utcnow().isoformat()}


# ------------------------------
# Users
# ------------------------------

@app.get("/api/users")
def list_users(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Household members known to the app."""
    try:
        users = db.query(User).order_by(User.name, User.id).all()
        return [_dump(UserOut, u) for u in users]
    except Exception as e:
        raise _server_error("fetching users", e)


# ------------------------------
# Chores
# ------------------------------

def _chore_query(db: Session):
    return db.query(Chore).options(selectinload(Chore.assignments).joinedload(ChoreAssignment.user))


@app.get("/api/chores")
def list_chores(
    frequency: Optional[str] = None,
    search: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        query = _chore_query(db)
        if frequency:
            try:
                query = query.filter(Chore.frequency == Frequency(frequency))
            except ValueError:
                raise ValidationFailed.for_field(
                    "frequency", f"Must be one of: {', '.join(f.value for f in Frequency)}"
                )
        if search:
            query = query.filter(Chore.title.icontains(search, autoescape=True))
        chores = query.order_by(Chore.created_at.desc(), Chore.id.desc()).all()
        logger.info(f"Found {len(chores)} chores")
        return [_dump(ChoreOut, c) for c in chores]
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("fetching chores", e)


@app.post("/api/chores", status_code=201)
def create_chore(payload: ChoreIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        chore = operations.create_chore(
            db,
            title=payload.title,
            frequency=payload.frequency,
            description=payload.description,
            assignee_ids=payload.assignee_ids,
        )
        return _dump(ChoreOut, chore)
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("creating chore", e)


@app.get("/api/chores/{chore_id}")
def get_chore(chore_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """A chore with its five latest completions."""
    try:
        chore = _chore_query(db).filter(Chore.id == chore_id).first()
        if not chore:
            raise NotFoundError("Chore")

        recent = (
            db.query(ChoreCompletion)
            .options(joinedload(ChoreCompletion.user), joinedload(ChoreCompletion.chore))
            .filter(ChoreCompletion.chore_id == chore_id)
            .order_by(ChoreCompletion.completed_at.desc())
            .limit(5)
            .all()
        )
        count = db.query(func.count(ChoreCompletion.id)).filter(ChoreCompletion.chore_id == chore_id).scalar()

        detail = ChoreDetail(
            **ChoreOut.model_validate(chore).model_dump(),
            recent_completions=[CompletionOut.model_validate(c) for c in recent],
            completion_count=count,
        )
        return detail.model_dump(mode="json")
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("fetching chore", e)


@app.put("/api/chores/{chore_id}")
def update_chore(
    chore_id: int,
    payload: ChoreUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    changes = payload.changes()
    if not changes:
        raise ValidationFailed(form_errors=["At least one field must be provided"])
    try:
        chore = operations.update_chore(db, chore_id, changes)
        return _dump(ChoreOut, chore)
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("updating chore", e)


@app.delete("/api/chores/{chore_id}", status_code=204)
def delete_chore(chore_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        operations.delete_chore(db, chore_id)
        return Response(status_code=204)
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("deleting chore", e)


@app.post("/api/chores/{chore_id}/assignments", status_code=201)
def assign_chore(
    chore_id: int,
    payload: AssignmentIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        assignment = operations.assign_user(db, chore_id, payload.user_id)
        return _dump(AssignmentOut, assignment)
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("assigning chore", e)


@app.delete("/api/chores/{chore_id}/assignments/{user_id}", status_code=204)
def unassign_chore(
    chore_id: int,
    user_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        operations.unassign_user(db, chore_id, user_id)
        return Response(status_code=204)
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("unassigning chore", e)


# ------------------------------
# Schedules
# ------------------------------

def _schedule_query(db: Session):
    return db.query(Schedule).options(
        joinedload(Schedule.chore).selectinload(Chore.assignments).joinedload(ChoreAssignment.user),
        joinedload(Schedule.completion).joinedload(ChoreCompletion.user),
    )


@app.get("/api/schedules")
def list_schedules(
    start: Optional[str] = Query(None, alias="from"),
    end: Optional[str] = Query(None, alias="to"),
    slot_type: Optional[str] = None,
    user_id: Optional[str] = None,
    include_hidden: bool = False,
    limit: int = 100,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        start_at, end_at = _date_range(start, end)
        if limit < 1 or limit > 500:
            raise ValidationFailed.for_field("limit", "limit must be an integer between 1 and 500")

        query = _schedule_query(db)
        if slot_type:
            try:
                query = query.filter(Schedule.slot_type == Frequency(slot_type))
            except ValueError:
                raise ValidationFailed.for_field("slot_type", "Invalid slot_type")
        if start_at:
            query = query.filter(Schedule.scheduled_for >= start_at)
        if end_at:
            query = query.filter(Schedule.scheduled_for <= end_at)
        if not include_hidden:
            query = query.filter(Schedule.hidden.is_(False))
        if user_id:
            query = query.filter(Schedule.chore.has(Chore.assignments.any(ChoreAssignment.user_id == user_id)))

        schedules = query.order_by(Schedule.scheduled_for, Schedule.id).limit(limit).all()
        return [_dump(ScheduleOut, s) for s in schedules]
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("fetching schedules", e)


@app.post("/api/schedules")
def create_schedule(payload: ScheduleIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Schedule a chore; without a chore_id the suggestion engine picks one."""
    try:
        chore_id = payload.chore_id
        suggested = payload.suggested
        if chore_id is None:
            suggestion = suggest_cascaded_chore(db, payload.slot_type, utcnow(), payload.user_id or user.id)
            if suggestion is None:
                raise NotFoundError("Compatible chore")
            chore_id = suggestion.chore.id
            suggested = True

        schedule, created = operations.create_schedule(
            db,
            chore_id=chore_id,
            scheduled_for=payload.scheduled_for,
            slot_type=payload.slot_type,
            suggested=suggested,
        )
        schedule = _schedule_query(db).filter(Schedule.id == schedule.id).one()
        return JSONResponse(
            status_code=201 if created else 200,
            content={"created": created, "schedule": _dump(ScheduleOut, schedule)},
        )
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("creating schedule", e)


@app.post("/api/schedules/auto")
def auto_schedule(
    payload: Optional[AutoScheduleIn] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Make sure DAILY chores are on the calendar, today or through a date."""
    try:
        through = payload.through if payload else None
        created = ensure_daily_schedules(db, utcnow(), through)
        return {"created": created}
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("auto-scheduling", e)


@app.post("/api/schedules/suggest")
def suggest_schedule(payload: SuggestIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        if cascade_source(payload.slot_type) is None:
            raise NotFoundError(f"Cascade source for {payload.slot_type.value} slots")
        suggestion = suggest_cascaded_chore(db, payload.slot_type, utcnow(), payload.user_id or user.id)
        if suggestion is None:
            raise NotFoundError("Unscheduled chore for this slot type")
        return _dump(SuggestionOut, suggestion)
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("suggesting chore", e)


@app.get("/api/schedules/pace")
def schedule_pace(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        return [_dump(PaceWarningOut, w) for w in check_cascade_pace(db, utcnow())]
    except Exception as e:
        raise _server_error("checking pace", e)


@app.delete("/api/schedules/{schedule_id}")
def delete_schedule(
    schedule_id: int,
    hide: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        if hide:
            schedule = operations.hide_schedule(db, schedule_id)
            return {"success": True, "hidden": schedule.hidden}
        operations.delete_schedule(db, schedule_id)
        return {"success": True}
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("deleting schedule", e)


# ------------------------------
# Completions
# ------------------------------

@app.get("/api/completions")
def list_completions(
    chore_id: Optional[int] = None,
    user_id: Optional[str] = None,
    start: Optional[str] = Query(None, alias="from"),
    end: Optional[str] = Query(None, alias="to"),
    limit: int = 50,
    offset: int = 0,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        start_at, end_at = _date_range(start, end)
        limit = min(max(limit, 1), 100)
        offset = max(offset, 0)

        query = db.query(ChoreCompletion)
        if chore_id is not None:
            query = query.filter(ChoreCompletion.chore_id == chore_id)
        if user_id:
            query = query.filter(ChoreCompletion.user_id == user_id)
        if start_at:
            query = query.filter(ChoreCompletion.completed_at >= start_at)
        if end_at:
            query = query.filter(ChoreCompletion.completed_at <= end_at)

        total = query.count()
        completions = (
            query.options(joinedload(ChoreCompletion.user), joinedload(ChoreCompletion.chore))
            .order_by(ChoreCompletion.completed_at.desc(), ChoreCompletion.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "completions": [_dump(CompletionOut, c) for c in completions],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("fetching completions", e)


@app.post("/api/completions")
def create_completion(
    payload: CompletionIn,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark a chore done. Completing an already-completed schedule returns the first completion."""
    try:
        completion, created = operations.create_completion(
            db,
            user,
            chore_id=payload.chore_id,
            now=utcnow(),
            schedule_id=payload.schedule_id,
            notes=payload.notes,
            completed_at=payload.completed_at,
        )
        body = {"created": created, "completion": _dump(CompletionOut, completion)}
        if created:
            background_tasks.add_task(
                telegram.notify_chore_completion,
                user.name or "Someone",
                completion.chore.title,
                completion.completed_at,
            )
        return JSONResponse(status_code=201 if created else 200, content=body)
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("creating completion", e)


@app.delete("/api/completions", status_code=204)
def delete_completion(
    schedule_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Undo the caller's own completion of a schedule."""
    try:
        operations.delete_completion(db, user, schedule_id)
        return Response(status_code=204)
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("deleting completion", e)


# ------------------------------
# Views
# ------------------------------

@app.get("/api/dashboard")
def dashboard(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Everything the home screen needs for the calling user."""
    try:
        now = utcnow()
        ensure_daily_schedules(db, now)

        today = start_of_day(now)
        tomorrow = today + DAY

        chores_count = db.query(func.count(Chore.id)).scalar()
        completed_total = db.query(func.count(ChoreCompletion.id)).filter(ChoreCompletion.user_id == user.id).scalar()
        completed_this_week = (
            db.query(func.count(ChoreCompletion.id))
            .filter(ChoreCompletion.user_id == user.id, ChoreCompletion.completed_at >= start_of_week(now))
            .scalar()
        )
        completion_dates = [
            row[0]
            for row in db.query(ChoreCompletion.completed_at)
            .filter(ChoreCompletion.user_id == user.id, ChoreCompletion.completed_at >= today - STREAK_LOOKBACK)
            .all()
        ]

        schedules = (
            _schedule_query(db)
            .filter(
                Schedule.scheduled_for >= today,
                Schedule.scheduled_for < tomorrow,
                Schedule.hidden.is_(False),
            )
            .order_by(Schedule.scheduled_for, Schedule.id)
            .all()
        )
        todays_tasks = [
            {
                "schedule_id": s.id,
                "chore_id": s.chore.id,
                "title": s.chore.title,
                "frequency": s.chore.frequency.value,
                "slot_type": s.slot_type.value,
                "completed": s.completion is not None,
                "completed_by_user_id": s.completion.user_id if s.completion else None,
            }
            for s in schedules
            if not s.chore.assignments or s.chore.is_assigned_to(user.id)
        ]

        recent = (
            db.query(ChoreCompletion)
            .options(joinedload(ChoreCompletion.user), joinedload(ChoreCompletion.chore))
            .order_by(ChoreCompletion.completed_at.desc(), ChoreCompletion.id.desc())
            .limit(5)
            .all()
        )
        recent_activity = [
            {
                "id": c.id,
                "title": c.chore.title,
                "frequency": c.chore.frequency.value,
                "user_id": c.user.id,
                "user_name": (c.user.name or "").strip() or "Someone",
                "user_image": c.user.image,
                "completed_at": _dump(CompletionOut, c)["completed_at"],
            }
            for c in recent
        ]

        return {
            "stats": {
                "chores_count": chores_count,
                "completed_total": completed_total,
                "completed_this_week": completed_this_week,
                "streak_days": compute_streak_days(completion_dates, now),
            },
            "todays_tasks": todays_tasks,
            "recent_activity": recent_activity,
            "pace_warnings": [_dump(PaceWarningOut, w) for w in check_cascade_pace(db, now)],
        }
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("building dashboard", e)


@app.get("/api/calendar/{year}/{month}")
def calendar_month(
    year: int,
    month: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """A Monday-first month grid with the visible schedules of each day."""
    if month < 1 or month > 12:
        raise ValidationFailed.for_field("month", "month must be between 1 and 12")
    if year < 1970 or year > 9998:
        raise ValidationFailed.for_field("year", "year is out of range")
    try:
        now = utcnow()
        grid = build_month_grid(year, month)
        grid_start = grid[0].date
        grid_end = grid[-1].date + DAY
        ensure_daily_schedules(db, now, through=start_of_day(now) + UPCOMING_WINDOW)

        schedules = (
            _schedule_query(db)
            .filter(
                Schedule.scheduled_for >= grid_start,
                Schedule.scheduled_for < grid_end,
                Schedule.hidden.is_(False),
            )
            .order_by(Schedule.scheduled_for, Schedule.id)
            .all()
        )
        by_day = {}
        for schedule in schedules:
            by_day.setdefault(day_key(schedule.scheduled_for), []).append(_dump(ScheduleOut, schedule))

        today_key = day_key(now)
        return {
            "title": month_title(year, month),
            "year": year,
            "month": month,
            "days": [
                {
                    "day_key": cell.day_key,
                    "in_month": cell.in_month,
                    "is_today": cell.day_key == today_key,
                    "schedules": by_day.get(cell.day_key, []),
                }
                for cell in grid
            ],
        }
    except (ChoreAppError, HTTPException):
        raise
    except Exception as e:
        raise _server_error("building calendar", e)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
