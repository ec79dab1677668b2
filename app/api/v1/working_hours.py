from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.api.deps import get_current_actor, require_roles
from app.db.models import DayOfWeek, UserRole
from app.db.session import get_session
from app.schemas.auth import Actor
from app.schemas.schedule import (
    WorkingHoursCreate,
    WorkingHoursEntry,
    WorkingHoursResponse,
    WorkingHoursUpdate,
)
from app.services.working_hours_service import WorkingHoursService

router = APIRouter()

async def get_working_hours_service(session: AsyncSession = Depends(get_session)) -> WorkingHoursService:
    return WorkingHoursService(session)

manager = require_roles(UserRole.ADMIN, UserRole.DOCTOR)

@router.get("", response_model=List[WorkingHoursResponse])
async def list_working_hours(
    doctor_id: Optional[UUID] = None,
    day_of_week: Optional[DayOfWeek] = None,
    is_active: Optional[bool] = None,
    actor: Actor = Depends(get_current_actor),
    service: WorkingHoursService = Depends(get_working_hours_service),
):
    return await service.list_working_hours(doctor_id, day_of_week, is_active)

@router.post("", response_model=WorkingHoursResponse, status_code=201)
async def create_working_hours(
    request: WorkingHoursCreate,
    actor: Actor = Depends(manager),
    service: WorkingHoursService = Depends(get_working_hours_service),
):
    return await service.create_working_hours(request, actor)

@router.put("/doctors/{doctor_id}", response_model=List[WorkingHoursResponse])
async def set_weekly_hours(
    doctor_id: UUID,
    request: List[WorkingHoursEntry],
    actor: Actor = Depends(manager),
    service: WorkingHoursService = Depends(get_working_hours_service),
):
    return await service.set_weekly_hours(doctor_id, request, actor)

@router.put("/{working_hours_id}", response_model=WorkingHoursResponse)
async def update_working_hours(
    working_hours_id: UUID,
    request: WorkingHoursUpdate,
    actor: Actor = Depends(manager),
    service: WorkingHoursService = Depends(get_working_hours_service),
):
    return await service.update_working_hours(working_hours_id, request, actor)

@router.delete("/{working_hours_id}")
async def deactivate_working_hours(
    working_hours_id: UUID,
    actor: Actor = Depends(manager),
    service: WorkingHoursService = Depends(get_working_hours_service),
):
    return await service.deactivate_working_hours(working_hours_id, actor)
