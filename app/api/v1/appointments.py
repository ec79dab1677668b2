import datetime as dt
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.api.deps import get_booking_rules, get_clock, get_current_actor, require_roles
from app.core.appointment_rules import BookingRules
from app.core.clock import Clock
from app.core.utils import to_local_naive
from app.db.models import AppointmentStatus, RescheduleStatus, UserRole
from app.db.session import get_session
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AvailabilityResponse,
    AvailableSlotsResponse,
    CancellationPreview,
    CancellationResult,
    ForceRescheduleCreate,
    ForceRescheduleResponse,
    RescheduleRejection,
    RescheduleRequestCreate,
    RescheduleRequestResponse,
)
from app.schemas.auth import Actor
from app.services.appointment_service import AppointmentService
from app.services.availability_service import AvailabilityService
from app.services.reschedule_service import RescheduleService

router = APIRouter()

async def get_appointment_service(
    session: AsyncSession = Depends(get_session),
    rules: BookingRules = Depends(get_booking_rules),
    clock: Clock = Depends(get_clock),
) -> AppointmentService:
    return AppointmentService(session, rules, clock)

async def get_availability_service(
    session: AsyncSession = Depends(get_session),
    rules: BookingRules = Depends(get_booking_rules),
    clock: Clock = Depends(get_clock),
) -> AvailabilityService:
    return AvailabilityService(session, rules, clock)

async def get_reschedule_service(
    session: AsyncSession = Depends(get_session),
    rules: BookingRules = Depends(get_booking_rules),
    clock: Clock = Depends(get_clock),
) -> RescheduleService:
    return RescheduleService(session, rules, clock)

reviewer = require_roles(UserRole.ADMIN, UserRole.RECEPTIONIST)

@router.get("/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    doctor_id: UUID,
    date: dt.date,
    granularity_minutes: Optional[int] = Query(default=None, gt=0),
    duration_minutes: Optional[int] = Query(default=None, gt=0),
    actor: Actor = Depends(get_current_actor),
    service: AvailabilityService = Depends(get_availability_service),
):
    slots = await service.get_available_slots(doctor_id, date, granularity_minutes, duration_minutes, actor=actor)
    return AvailableSlotsResponse(
        doctor_id=doctor_id,
        date=date,
        duration_minutes=duration_minutes or service.rules.default_appointment_duration,
        granularity_minutes=granularity_minutes or service.rules.slot_granularity_minutes,
        slots=slots,
    )

@router.get("/check-availability", response_model=AvailabilityResponse)
async def check_availability(
    doctor_id: UUID,
    scheduled_at: dt.datetime,
    duration_minutes: int = Query(gt=0),
    exclude_appointment_id: Optional[UUID] = None,
    actor: Actor = Depends(get_current_actor),
    service: AvailabilityService = Depends(get_availability_service),
):
    scheduled_at = to_local_naive(scheduled_at)
    conflicts = await service.find_conflicts(doctor_id, scheduled_at, duration_minutes, exclude_appointment_id)
    return AvailabilityResponse(
        doctor_id=doctor_id,
        scheduled_at=scheduled_at,
        duration_minutes=duration_minutes,
        available=not conflicts,
        conflicting_appointment_ids=[appointment.id for appointment in conflicts],
    )

@router.get("/reschedule-requests", response_model=List[RescheduleRequestResponse])
async def list_reschedule_requests(
    status: Optional[RescheduleStatus] = None,
    appointment_id: Optional[UUID] = None,
    actor: Actor = Depends(reviewer),
    service: RescheduleService = Depends(get_reschedule_service),
):
    return await service.list_requests(status, appointment_id)

@router.post("/reschedule-requests/{request_id}/approve", response_model=AppointmentResponse)
async def approve_reschedule_request(
    request_id: UUID,
    actor: Actor = Depends(reviewer),
    service: RescheduleService = Depends(get_reschedule_service),
):
    return await service.approve_reschedule(request_id, actor)

@router.post("/reschedule-requests/{request_id}/reject", response_model=RescheduleRequestResponse)
async def reject_reschedule_request(
    request_id: UUID,
    request: RescheduleRejection,
    actor: Actor = Depends(reviewer),
    service: RescheduleService = Depends(get_reschedule_service),
):
    return await service.reject_reschedule(request_id, actor, request.reason)

@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(
    doctor_id: Optional[UUID] = None,
    date: Optional[dt.date] = None,
    status: Optional[AppointmentStatus] = None,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.list_appointments(actor, doctor_id, date, status)

@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    request: AppointmentCreate,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.create_appointment(request, actor)

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def read_appointment(
    appointment_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.get_for_actor(appointment_id, actor)

@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: UUID,
    request: AppointmentStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.update_status(appointment_id, request.status, actor)

@router.get("/{appointment_id}/cancellation-preview", response_model=CancellationPreview)
async def preview_cancellation(
    appointment_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.cancellation_preview(appointment_id, actor)

@router.post("/{appointment_id}/cancel", response_model=CancellationResult)
async def cancel_appointment(
    appointment_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.cancel(appointment_id, actor)

@router.post("/{appointment_id}/reschedule-request", response_model=RescheduleRequestResponse, status_code=201)
async def request_reschedule(
    appointment_id: UUID,
    request: RescheduleRequestCreate,
    actor: Actor = Depends(get_current_actor),
    service: RescheduleService = Depends(get_reschedule_service),
):
    return await service.request_reschedule(appointment_id, request, actor)

@router.post("/{appointment_id}/force-reschedule", response_model=ForceRescheduleResponse)
async def force_reschedule(
    appointment_id: UUID,
    request: ForceRescheduleCreate,
    actor: Actor = Depends(reviewer),
    service: RescheduleService = Depends(get_reschedule_service),
):
    return await service.force_reschedule(appointment_id, request, actor)
