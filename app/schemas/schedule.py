import datetime as dt
from enum import Enum
from pydantic import BaseModel, model_validator
from typing import ClassVar, Optional, List, Tuple
from uuid import UUID

from app.db.models.schedule import DAY_OFF, ScheduleStatus
from app.db.models.working_hours import DayOfWeek


class PartialUpdate(BaseModel):
    """Partial update body; fields in `not_null` may be omitted but never sent as null."""
    not_null: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_nulls(self):
        nulls = sorted(name for name in self.model_fields_set if name in self.not_null and getattr(self, name) is None)
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self

class WorkingHoursEntry(BaseModel):
    day_of_week: DayOfWeek
    start_time: dt.time
    end_time: dt.time

    @model_validator(mode="after")
    def check_window(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

class WorkingHoursCreate(WorkingHoursEntry):
    doctor_id: UUID
    is_active: bool = True

class WorkingHoursUpdate(PartialUpdate):
    not_null: ClassVar[Tuple[str, ...]] = ("day_of_week", "start_time", "end_time", "is_active")

    day_of_week: Optional[DayOfWeek] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    is_active: Optional[bool] = None

class WorkingHoursResponse(BaseModel):
    id: UUID
    doctor_id: UUID
    day_of_week: DayOfWeek
    start_time: dt.time
    end_time: dt.time
    is_active: bool

    class Config:
        from_attributes = True


class ScheduleNote(BaseModel):
    author_id: Optional[UUID] = None
    timestamp: dt.datetime
    text: str

class ScheduleCreate(BaseModel):
    doctor_id: UUID
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    is_recurring: bool = False
    repeat_pattern: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_window(self):
        day_off = self.start_time == DAY_OFF and self.end_time == DAY_OFF
        if not day_off and self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time (use 00:00-00:00 for a day off)")
        return self

class ScheduleUpdate(PartialUpdate):
    not_null: ClassVar[Tuple[str, ...]] = ("date", "start_time", "end_time", "is_recurring")

    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    is_recurring: Optional[bool] = None
    repeat_pattern: Optional[str] = None

class ScheduleApproval(BaseModel):
    status: ScheduleStatus
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_status(self):
        if self.status == ScheduleStatus.PENDING:
            raise ValueError("status must be 'approved' or 'rejected'")
        return self

class ScheduleResponse(BaseModel):
    id: UUID
    doctor_id: UUID
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    is_recurring: bool
    repeat_pattern: Optional[str]
    status: ScheduleStatus
    requested_by: Optional[UUID]
    approved_by: Optional[UUID]
    notes: List[ScheduleNote] = []
    created_at: dt.datetime

    class Config:
        from_attributes = True


class CalendarSource(str, Enum):
    SCHEDULE = "schedule"
    WORKING_HOURS = "working_hours"
    NONE = "none"

class CalendarDay(BaseModel):
    date: dt.date
    day_name: str
    is_working: bool
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    source: CalendarSource
    notes: List[ScheduleNote] = []

class CalendarResponse(BaseModel):
    doctor_id: UUID
    start_date: dt.date
    end_date: dt.date
    days: List[CalendarDay]
