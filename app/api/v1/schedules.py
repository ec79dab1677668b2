import datetime as dt
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.api.deps import get_booking_rules, get_clock, get_current_actor, require_roles
from app.core.appointment_rules import BookingRules
from app.core.clock import Clock
from app.db.models import ScheduleStatus, UserRole
from app.db.session import get_session
from app.schemas.auth import Actor
from app.schemas.schedule import (
    CalendarResponse,
    ScheduleApproval,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleUpdate,
)
from app.services.calendar_service import CalendarResolver
from app.services.schedule_service import ScheduleService

router = APIRouter()

async def get_schedule_service(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> ScheduleService:
    return ScheduleService(session, clock)

async def get_calendar_resolver(
    session: AsyncSession = Depends(get_session),
    rules: BookingRules = Depends(get_booking_rules),
) -> CalendarResolver:
    return CalendarResolver(session, rules)

@router.get("/calendar", response_model=CalendarResponse)
async def get_calendar(
    doctor_id: UUID,
    start_date: dt.date,
    end_date: dt.date,
    actor: Actor = Depends(get_current_actor),
    resolver: CalendarResolver = Depends(get_calendar_resolver),
):
    days = await resolver.resolve(doctor_id, start_date, end_date)
    return CalendarResponse(doctor_id=doctor_id, start_date=start_date, end_date=end_date, days=days)

@router.get("", response_model=List[ScheduleResponse])
async def list_schedules(
    doctor_id: Optional[UUID] = None,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
    status: Optional[ScheduleStatus] = None,
    actor: Actor = Depends(get_current_actor),
    service: ScheduleService = Depends(get_schedule_service),
):
    return await service.list_schedules(doctor_id, start_date, end_date, status)

@router.post("", response_model=ScheduleResponse, status_code=201)
async def create_schedule(
    request: ScheduleCreate,
    actor: Actor = Depends(require_roles(UserRole.ADMIN, UserRole.DOCTOR)),
    service: ScheduleService = Depends(get_schedule_service),
):
    return await service.create_schedule(request, actor)

@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def read_schedule(
    schedule_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: ScheduleService = Depends(get_schedule_service),
):
    return await service.get_schedule(schedule_id)

@router.put("/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: UUID,
    request: ScheduleUpdate,
    actor: Actor = Depends(require_roles(UserRole.ADMIN, UserRole.DOCTOR)),
    service: ScheduleService = Depends(get_schedule_service),
):
    return await service.update_schedule(schedule_id, request, actor)

@router.delete("/{schedule_id}")
async def delete_schedule(
    schedule_id: UUID,
    actor: Actor = Depends(require_roles(UserRole.ADMIN, UserRole.DOCTOR)),
    service: ScheduleService = Depends(get_schedule_service),
):
    return await service.delete_schedule(schedule_id, actor)

@router.patch("/{schedule_id}/approve", response_model=ScheduleResponse)
async def approve_schedule(
    schedule_id: UUID,
    request: ScheduleApproval,
    actor: Actor = Depends(require_roles(UserRole.ADMIN)),
    service: ScheduleService = Depends(get_schedule_service),
):
    return await service.approve_schedule(schedule_id, request.status, actor, request.notes)
