from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.clock import Clock, system_clock
from app.core.exceptions import ForbiddenError, NotFoundError
from app.core.logger import logger
from app.db.models import User, UserRole
from app.schemas.auth import Actor
from app.schemas.doctor import DoctorStatusResponse

DEACTIVATION_NOTE = "Auto-rejected: doctor account deactivated"

class DoctorService:
    def __init__(self, session: AsyncSession, clock: Clock = system_clock):
        self.session = session
        self.clock = clock

    async def get_doctor(self, doctor_id: UUID, for_update: bool = False) -> User:
        """
        Load a doctor account. With ``for_update`` the row is locked until the
        end of the transaction, which serialises bookings for that doctor.
        """
        stmt = select(User).where(User.id == doctor_id, User.role == UserRole.DOCTOR)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        doctor = result.scalars().first()
        if not doctor:
            raise NotFoundError("Doctor")
        return doctor

    async def set_active(self, doctor_id: UUID, is_active: bool, actor: Actor) -> DoctorStatusResponse:
        if actor.role != UserRole.ADMIN:
            raise ForbiddenError("Only administrators can activate or deactivate doctors")

        from app.services.schedule_service import ScheduleService
        from app.services.working_hours_service import WorkingHoursService

        doctor = await self.get_doctor(doctor_id, for_update=True)
        doctor.is_active = is_active
        self.session.add(doctor)

        hours_deactivated = 0
        schedules_rejected = 0
        if not is_active:
            # Calendar and slot reads go straight to these tables, so the
            # cascade is visible as soon as it commits.
            hours_deactivated = await WorkingHoursService(self.session).deactivate_for_doctor(doctor_id)
            schedules_rejected = await ScheduleService(self.session, self.clock).reject_pending_for_doctor(
                doctor_id, DEACTIVATION_NOTE, author_id=actor.id
            )

        await self.session.commit()
        logger.info(
            f"Doctor {doctor_id} {'activated' if is_active else 'deactivated'} by {actor.id} | "
            f"working hours deactivated: {hours_deactivated} | schedules rejected: {schedules_rejected}"
        )

        return DoctorStatusResponse(
            doctor_id=doctor_id,
            is_active=is_active,
            working_hours_deactivated=hours_deactivated,
            schedules_rejected=schedules_rejected,
            message=f"Doctor {'activated' if is_active else 'deactivated'} successfully",
        )
