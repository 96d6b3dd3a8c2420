"""
Request and response shapes for the chore API.

Response models read straight off the ORM objects (``from_attributes``).
Datetimes are stored as naive UTC and rendered with a trailing ``Z``.
"""
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

from .dates import parse_datetime
from .frequency import Frequency


def _iso_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


UtcDatetime = Annotated[datetime, PlainSerializer(_iso_utc, return_type=str, when_used="json")]


def _parse_optional_datetime(value: Any):
    if value is None or isinstance(value, datetime):
        return value
    return parse_datetime(value)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


# ------------------------------
# Request bodies
# ------------------------------

class ChoreIn(BaseModel):
    title: str
    frequency: Frequency
    description: Optional[str] = None
    assignee_ids: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value

    @field_validator("description")
    @classmethod
    def clean_description(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value)


class ChoreUpdate(BaseModel):
    title: Optional[str] = None
    frequency: Optional[Frequency] = None
    description: Optional[str] = None
    assignee_ids: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Title cannot be empty")
        return value

    @field_validator("description")
    @classmethod
    def clean_description(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value)

    def changes(self) -> Dict[str, Any]:
        changes = self.model_dump(exclude_unset=True)
        if "title" in changes and changes["title"] is None:
            del changes["title"]
        if "frequency" in changes and changes["frequency"] is None:
            del changes["frequency"]
        return changes


class AssignmentIn(BaseModel):
    user_id: str

    @field_validator("user_id")
    @classmethod
    def user_id_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("user_id is required")
        return value


class ScheduleIn(BaseModel):
    scheduled_for: datetime
    slot_type: Frequency
    chore_id: Optional[int] = None
    suggested: bool = False
    # Whose assignments to favour when the chore is picked for us
    user_id: Optional[str] = None

    @field_validator("scheduled_for", mode="before")
    @classmethod
    def parse_scheduled_for(cls, value):
        return _parse_optional_datetime(value)


class AutoScheduleIn(BaseModel):
    through: Optional[datetime] = None

    @field_validator("through", mode="before")
    @classmethod
    def parse_through(cls, value):
        return _parse_optional_datetime(value)


class SuggestIn(BaseModel):
    slot_type: Frequency
    user_id: Optional[str] = None


class CompletionIn(BaseModel):
    chore_id: int
    schedule_id: Optional[int] = None
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value)

    @field_validator("completed_at", mode="before")
    @classmethod
    def parse_completed_at(cls, value):
        return _parse_optional_datetime(value)


# ------------------------------
# Responses
# ------------------------------

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: Optional[str] = None
    image: Optional[str] = None


class ChoreSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    description: Optional[str] = None
    frequency: Frequency


class ChoreOut(ChoreSummary):
    created_at: UtcDatetime
    assignees: List[UserOut] = Field(default_factory=list)


class CompletionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    chore_id: int
    user_id: str
    schedule_id: Optional[int] = None
    notes: Optional[str] = None
    completed_at: UtcDatetime
    user: UserOut
    chore: ChoreSummary


class ChoreDetail(ChoreOut):
    recent_completions: List[CompletionOut] = Field(default_factory=list)
    completion_count: int = 0


class ScheduleCompletion(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    user_id: str
    completed_at: UtcDatetime
    user: UserOut


class ScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    chore_id: int
    scheduled_for: UtcDatetime
    slot_type: Frequency
    suggested: bool
    hidden: bool
    chore: ChoreOut
    completion: Optional[ScheduleCompletion] = None


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    user_id: str
    chore_id: int
    user: UserOut
    chore: ChoreSummary


class SuggestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    slot_type: Frequency
    source_frequency: Frequency
    cycle_start: UtcDatetime
    cycle_end: UtcDatetime
    chore: ChoreSummary
    last_completed_at: Optional[UtcDatetime] = None
    assigned_to_user: bool


class PaceWarningOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    source_frequency: Frequency
    total_chores: int
    scheduled_chores: int
    remaining_chores: int
    remaining_slots: int
    cycle_start: UtcDatetime
    cycle_end: UtcDatetime
    message: str
