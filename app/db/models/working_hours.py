from sqlmodel import SQLModel, Field
from sqlalchemy import Index, text
from datetime import datetime, time
from enum import Enum
from uuid import UUID, uuid4

class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

class WorkingHours(SQLModel, table=True):
    __tablename__ = "working_hours"
    __table_args__ = (
        # At most one active row per doctor and weekday
        Index(
            "uq_working_hours_active_day",
            "doctor_id",
            "day_of_week",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="users.id", index=True)
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.now)
