from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.api.deps import get_clock, require_roles
from app.core.clock import Clock
from app.db.models import UserRole
from app.db.session import get_session
from app.schemas.auth import Actor
from app.schemas.doctor import DoctorActiveUpdate, DoctorStatusResponse
from app.services.doctor_service import DoctorService

router = APIRouter()

async def get_doctor_service(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> DoctorService:
    return DoctorService(session, clock)

@router.patch("/{doctor_id}/active", response_model=DoctorStatusResponse)
async def set_doctor_active(
    doctor_id: UUID,
    request: DoctorActiveUpdate,
    actor: Actor = Depends(require_roles(UserRole.ADMIN)),
    service: DoctorService = Depends(get_doctor_service),
):
    return await service.set_active(doctor_id, request.is_active, actor)
