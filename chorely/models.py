from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Boolean, Text, Enum, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

from .dates import utcnow
from .frequency import Frequency

Base = declarative_base()


class User(Base):
    __tablename__ = "users"

    # Issued by the identity provider
    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    image = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    assignments = relationship("ChoreAssignment", back_populates="user", cascade="all, delete-orphan")
    completions = relationship("ChoreCompletion", back_populates="user")


class Chore(Base):
    __tablename__ = "chores"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    frequency = Column(Enum(Frequency, name="frequency"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    assignments = relationship("ChoreAssignment", back_populates="chore", cascade="all, delete-orphan")
    schedules = relationship("Schedule", back_populates="chore", cascade="all, delete-orphan")
    completions = relationship("ChoreCompletion", back_populates="chore", cascade="all, delete-orphan")

    @property
    def assignees(self):
        return [assignment.user for assignment in self.assignments]

    def is_assigned_to(self, user_id: str) -> bool:
        return any(assignment.user_id == user_id for assignment in self.assignments)


class ChoreAssignment(Base):
    __tablename__ = "chore_assignments"
    __table_args__ = (UniqueConstraint("user_id", "chore_id", name="uq_assignment_user_chore"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    chore_id = Column(Integer, ForeignKey("chores.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="assignments")
    chore = relationship("Chore", back_populates="assignments")


class Schedule(Base):
    __tablename__ = "schedules"
    __table_args__ = (UniqueConstraint("chore_id", "scheduled_for", name="uq_schedule_chore_day"),)

    id = Column(Integer, primary_key=True, index=True)
    chore_id = Column(Integer, ForeignKey("chores.id", ondelete="CASCADE"), nullable=False, index=True)
    # Always a UTC midnight
    scheduled_for = Column(DateTime, nullable=False, index=True)
    slot_type = Column(Enum(Frequency, name="frequency"), nullable=False)
    suggested = Column(Boolean, default=False, nullable=False)
    hidden = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    chore = relationship("Chore", back_populates="schedules")
    completion = relationship("ChoreCompletion", back_populates="schedule", uselist=False)


class ChoreCompletion(Base):
    __tablename__ = "chore_completions"

    id = Column(Integer, primary_key=True, index=True)
    chore_id = Column(Integer, ForeignKey("chores.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    # NULL for ad-hoc entries, otherwise one completion per schedule
    schedule_id = Column(Integer, ForeignKey("schedules.id", ondelete="SET NULL"), nullable=True, unique=True)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    chore = relationship("Chore", back_populates="completions")
    user = relationship("User", back_populates="completions")
    schedule = relationship("Schedule", back_populates="completion")
