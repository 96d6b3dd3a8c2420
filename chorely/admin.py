from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy import func
from sqlalchemy.orm import Session
import secrets
import os
import logging
from .database import get_db, reset_db
from .models import Chore, ChoreAssignment, ChoreCompletion, Schedule, User
from .seed_data import seed_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")
security = HTTPBasic()


def verify_admin(credentials: HTTPBasicCredentials = Depends(security)):
    correct_username = secrets.compare_digest(credentials.username, os.getenv("ADMIN_USERNAME", "admin"))
    correct_password = secrets.compare_digest(credentials.password, os.getenv("ADMIN_PASSWORD", "admin"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


@router.post("/seed")
def manual_seed(username: str = Depends(verify_admin), db: Session = Depends(get_db)):
    """Replace chore data with the sample household."""
    logger.info(f"Seed requested by {username}")
    created = seed_database(db)
    return {"status": "success", "chores": created}


@router.post("/reset-database")
def reset_database(username: str = Depends(verify_admin)):
    """Drop and recreate every table, then reseed."""
    logger.info(f"Database reset requested by {username}")
    created = reset_db()
    logger.info("Database reset and reseeded successfully")
    return {"status": "success", "chores": created}


@router.get("/debug/db")
def debug_db(username: str = Depends(verify_admin), db: Session = Depends(get_db)):
    """Row counts per table."""
    counts = {}
    for name, model in (
        ("users", User),
        ("chores", Chore),
        ("assignments", ChoreAssignment),
        ("schedules", Schedule),
        ("completions", ChoreCompletion),
    ):
        counts[name] = db.query(func.count(model.id)).scalar()

    per_frequency = dict(
        (frequency.value, count)
        for frequency, count in db.query(Chore.frequency, func.count(Chore.id)).group_by(Chore.frequency).all()
    )
    return {"status": "ok", "counts": counts, "chores_by_frequency": per_frequency}
