from sqlmodel import SQLModel, Field
from typing import Optional, List
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4
from sqlalchemy import JSON, Column
from sqlalchemy.dialects.postgresql import JSONB

class AppointmentStatus(str, Enum):
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    CANCELLED_LATE = "cancelled_late"

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.CANCELLED_LATE,
})

# Statuses that free the doctor's calendar
RELEASED_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.CANCELLED_LATE})

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    pet_id: UUID = Field(foreign_key="pets.id")
    doctor_id: UUID = Field(foreign_key="users.id", index=True)
    client_id: UUID = Field(foreign_key="users.id", index=True)
    scheduled_at: datetime = Field(index=True)
    duration_minutes: int = Field(default=30)
    status: AppointmentStatus = Field(index=True)
    reason: Optional[str] = None
    location: Optional[str] = None
    services: List[dict] = Field(default_factory=list, sa_column=Column(JSON().with_variant(JSONB, "postgresql")))
    created_by: UUID
    notes: Optional[str] = None
    late_cancellation_fee: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    cancellation_note: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
