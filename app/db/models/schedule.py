import datetime as dt
from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column
from sqlalchemy.dialects.postgresql import JSONB
from typing import Optional, List
from enum import Enum
from uuid import UUID, uuid4

DAY_OFF = dt.time(0, 0)

class ScheduleStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class ScheduleOverride(SQLModel, table=True):
    """Date-specific exception to a doctor's weekly hours. 00:00-00:00 means day off."""
    __tablename__ = "schedules"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="users.id", index=True)
    date: dt.date = Field(index=True)
    start_time: dt.time
    end_time: dt.time
    is_recurring: bool = Field(default=False)
    repeat_pattern: Optional[str] = None
    status: ScheduleStatus = Field(default=ScheduleStatus.PENDING, index=True)
    requested_by: Optional[UUID] = None
    approved_by: Optional[UUID] = None
    # Append-only list of {"author_id", "timestamp", "text"}
    notes: List[dict] = Field(default_factory=list, sa_column=Column(JSON().with_variant(JSONB, "postgresql")))
    created_at: dt.datetime = Field(default_factory=dt.datetime.now)
    updated_at: dt.datetime = Field(default_factory=dt.datetime.now)

    @property
    def is_day_off(self) -> bool:
        return self.start_time == DAY_OFF and self.end_time == DAY_OFF
