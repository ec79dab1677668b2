from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.logger import logger
from app.core.utils import DAY_NAMES
from app.db.models import DayOfWeek, UserRole, WorkingHours
from app.schemas.auth import Actor
from app.schemas.schedule import WorkingHoursCreate, WorkingHoursEntry, WorkingHoursUpdate
from app.services.doctor_service import DoctorService

def _day_index(hours: WorkingHours) -> int:
    return DAY_NAMES.index(hours.day_of_week.value)

class WorkingHoursService:
    def __init__(self, session: AsyncSession):
        self.session = session

    def _ensure_can_manage(self, doctor_id: UUID, actor: Actor) -> None:
        if actor.role == UserRole.ADMIN:
            return
        if actor.role == UserRole.DOCTOR and actor.id == doctor_id:
            return
        raise ForbiddenError("You can only manage your own working hours")

    async def get_working_hours(self, working_hours_id: UUID) -> WorkingHours:
        hours = await self.session.get(WorkingHours, working_hours_id)
        if not hours:
            raise NotFoundError("Working hours")
        return hours

    async def list_working_hours(
        self,
        doctor_id: Optional[UUID] = None,
        day_of_week: Optional[DayOfWeek] = None,
        is_active: Optional[bool] = None,
    ) -> List[WorkingHours]:
        stmt = select(WorkingHours)
        if doctor_id:
            stmt = stmt.where(WorkingHours.doctor_id == doctor_id)
        if day_of_week:
            stmt = stmt.where(WorkingHours.day_of_week == day_of_week)
        if is_active is not None:
            stmt = stmt.where(WorkingHours.is_active == is_active)
        result = await self.session.execute(stmt)
        rows = result.scalars().all()
        return sorted(rows, key=lambda h: (str(h.doctor_id), _day_index(h), h.start_time))

    async def get_active_by_day(self, doctor_id: UUID) -> Dict[DayOfWeek, WorkingHours]:
        rows = await self.list_working_hours(doctor_id=doctor_id, is_active=True)
        by_day: Dict[DayOfWeek, WorkingHours] = {}
        for row in rows:
            by_day.setdefault(row.day_of_week, row)
        return by_day

    async def _has_active_row(self, doctor_id: UUID, day: DayOfWeek, exclude_id: Optional[UUID] = None) -> bool:
        stmt = select(WorkingHours.id).where(
            WorkingHours.doctor_id == doctor_id,
            WorkingHours.day_of_week == day,
            WorkingHours.is_active == True,
        )
        if exclude_id:
            stmt = stmt.where(WorkingHours.id != exclude_id)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def create_working_hours(self, data: WorkingHoursCreate, actor: Actor) -> WorkingHours:
        self._ensure_can_manage(data.doctor_id, actor)
        await DoctorService(self.session).get_doctor(data.doctor_id)

        if data.is_active and await self._has_active_row(data.doctor_id, data.day_of_week):
            raise ConflictError(f"Active working hours already exist for {data.day_of_week.value}")

        hours = WorkingHours(**data.model_dump())
        self.session.add(hours)
        await self.session.commit()
        await self.session.refresh(hours)
        return hours

    async def set_weekly_hours(self, doctor_id: UUID, entries: List[WorkingHoursEntry], actor: Actor) -> List[WorkingHours]:
        """Replace the active hours of every day present in ``entries``."""
        self._ensure_can_manage(doctor_id, actor)
        await DoctorService(self.session).get_doctor(doctor_id)

        entries_by_day: Dict[DayOfWeek, WorkingHoursEntry] = {}
        for entry in entries:
            if entry.day_of_week in entries_by_day:
                raise ValidationError(f"Duplicate entry for {entry.day_of_week.value}")
            entries_by_day[entry.day_of_week] = entry

        for day in entries_by_day:
            stmt = (
                update(WorkingHours)
                .where(
                    WorkingHours.doctor_id == doctor_id,
                    WorkingHours.day_of_week == day,
                    WorkingHours.is_active == True,
                )
                .values(is_active=False)
            )
            await self.session.execute(stmt)
        await self.session.flush()

        new_hours = []
        for day, entry in entries_by_day.items():
            hours = WorkingHours(
                doctor_id=doctor_id,
                day_of_week=day,
                start_time=entry.start_time,
                end_time=entry.end_time,
            )
            self.session.add(hours)
            new_hours.append(hours)

        await self.session.commit()
        for hours in new_hours:
            await self.session.refresh(hours)

        logger.info(f"Weekly hours replaced for doctor {doctor_id}: {len(new_hours)} day(s)")
        return sorted(new_hours, key=_day_index)

    async def update_working_hours(self, working_hours_id: UUID, data: WorkingHoursUpdate, actor: Actor) -> WorkingHours:
        hours = await self.get_working_hours(working_hours_id)
        self._ensure_can_manage(hours.doctor_id, actor)

        update_data = data.model_dump(exclude_unset=True)
        start_time = update_data.get("start_time", hours.start_time)
        end_time = update_data.get("end_time", hours.end_time)
        if start_time >= end_time:
            raise ValidationError("start_time must be before end_time")

        day = update_data.get("day_of_week", hours.day_of_week)
        is_active = update_data.get("is_active", hours.is_active)
        if is_active and await self._has_active_row(hours.doctor_id, day, exclude_id=hours.id):
            raise ConflictError(f"Active working hours already exist for {day.value}")

        for key, value in update_data.items():
            setattr(hours, key, value)

        self.session.add(hours)
        await self.session.commit()
        await self.session.refresh(hours)
        return hours

    async def deactivate_working_hours(self, working_hours_id: UUID, actor: Actor) -> dict:
        hours = await self.get_working_hours(working_hours_id)
        self._ensure_can_manage(hours.doctor_id, actor)

        hours.is_active = False
        self.session.add(hours)
        await self.session.commit()
        return {"message": "Working hours deactivated successfully"}

    async def deactivate_for_doctor(self, doctor_id: UUID) -> int:
        # Caller owns the transaction
        stmt = (
            update(WorkingHours)
            .where(WorkingHours.doctor_id == doctor_id, WorkingHours.is_active == True)
            .values(is_active=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
