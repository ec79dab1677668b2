from sqlmodel import SQLModel, Field
from sqlalchemy import Index, text
from typing import Optional
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

class RescheduleStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class RescheduleRequest(SQLModel, table=True):
    __tablename__ = "reschedule_requests"
    __table_args__ = (
        # At most one pending request per appointment; enum columns store member names
        Index(
            "uq_reschedule_requests_pending",
            "appointment_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    appointment_id: UUID = Field(foreign_key="appointments.id", index=True)
    old_scheduled_at: datetime
    new_scheduled_at: datetime
    client_note: Optional[str] = None
    status: RescheduleStatus = Field(default=RescheduleStatus.PENDING, index=True)
    requested_by: UUID
    requested_at: datetime = Field(default_factory=datetime.now)
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
