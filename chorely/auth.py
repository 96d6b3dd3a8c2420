"""Identity handed to us by the authenticating proxy in front of the app.

Requests arrive already authenticated; we only read who the caller is and
keep the local user table in step with it.
"""
from typing import Optional
import logging

from fastapi import Depends, Header, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database import get_db
from .models import User

logger = logging.getLogger(__name__)


def sync_user(db: Session, user_id: str, name: Optional[str] = None, image: Optional[str] = None) -> User:
    """Insert or refresh the local copy of an authenticated user."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        user = User(id=user_id, name=name, image=image)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Another request synced the same user first
            db.rollback()
            user = db.query(User).filter(User.id == user_id).one()
        else:
            db.refresh(user)
            logger.info(f"Synced new user {user_id}")
            return user

    if (name and name != user.name) or (image and image != user.image):
        user.name = name or user.name
        user.image = image or user.image
        db.commit()
        db.refresh(user)
    return user


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    x_user_image: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return sync_user(db, x_user_id.strip(), x_user_name, x_user_image)
