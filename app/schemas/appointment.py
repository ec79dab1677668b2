import datetime as dt
from decimal import Decimal
from pydantic import BaseModel, Field
from uuid import UUID
from typing import Optional, List

from app.db.models.appointment import AppointmentStatus
from app.db.models.reschedule_request import RescheduleStatus

class ServiceItem(BaseModel):
    service_id: UUID
    name: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(ge=0)

class AppointmentCreate(BaseModel):
    pet_id: UUID
    doctor_id: UUID
    scheduled_at: dt.datetime
    # Falls back to the clinic's default duration
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    reason: Optional[str] = None
    location: Optional[str] = None
    services: List[ServiceItem] = []
    notes: Optional[str] = None

class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus

class AppointmentResponse(BaseModel):
    id: UUID
    pet_id: UUID
    doctor_id: UUID
    client_id: UUID
    scheduled_at: dt.datetime
    duration_minutes: int
    status: AppointmentStatus
    reason: Optional[str] = None
    location: Optional[str] = None
    services: List[ServiceItem] = []
    created_by: UUID
    notes: Optional[str] = None
    late_cancellation_fee: Optional[Decimal] = None
    cancelled_at: Optional[dt.datetime] = None
    cancellation_note: Optional[str] = None

    class Config:
        from_attributes = True

class Slot(BaseModel):
    time: str
    available: bool

class AvailableSlotsResponse(BaseModel):
    doctor_id: UUID
    date: dt.date
    duration_minutes: int
    granularity_minutes: int
    slots: List[Slot]

class AvailabilityResponse(BaseModel):
    doctor_id: UUID
    scheduled_at: dt.datetime
    duration_minutes: int
    available: bool
    conflicting_appointment_ids: List[UUID] = []

class CancellationPreview(BaseModel):
    can_cancel: bool
    status: Optional[AppointmentStatus] = None
    has_fee: bool = False
    fee: Optional[Decimal] = None
    hours_until: float
    time_remaining: str
    message: str

class CancellationResult(BaseModel):
    appointment: AppointmentResponse
    status: AppointmentStatus
    has_fee: bool
    fee: Optional[Decimal] = None
    penalty_id: Optional[UUID] = None
    message: str

class RescheduleRequestCreate(BaseModel):
    new_scheduled_at: dt.datetime
    client_note: Optional[str] = None

class RescheduleRejection(BaseModel):
    reason: Optional[str] = None

class ForceRescheduleCreate(BaseModel):
    new_scheduled_at: dt.datetime
    reason: Optional[str] = None
    doctor_id: Optional[UUID] = None

class RescheduleRequestResponse(BaseModel):
    id: UUID
    appointment_id: UUID
    old_scheduled_at: dt.datetime
    new_scheduled_at: dt.datetime
    client_note: Optional[str] = None
    status: RescheduleStatus
    requested_by: UUID
    requested_at: dt.datetime
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[dt.datetime] = None
    rejection_reason: Optional[str] = None

    class Config:
        from_attributes = True

class ForceRescheduleResponse(BaseModel):
    appointment: AppointmentResponse
    old_scheduled_at: dt.datetime
    new_scheduled_at: dt.datetime
    doctor_changed: bool
    client_notified: bool
