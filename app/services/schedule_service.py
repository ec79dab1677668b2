from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.clock import Clock, system_clock
from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.logger import logger
from app.db.models import ScheduleOverride, ScheduleStatus, UserRole
from app.db.models.schedule import DAY_OFF
from app.schemas.auth import Actor
from app.schemas.schedule import ScheduleCreate, ScheduleUpdate
from app.services.doctor_service import DoctorService
from app.services.notification_service import NotificationEvent, NotificationService

def make_note(author_id: Optional[UUID], text: str, timestamp: datetime) -> dict:
    return {
        "author_id": str(author_id) if author_id else None,
        "timestamp": timestamp.isoformat(),
        "text": text,
    }

class ScheduleService:
    """
    Date-specific schedule overrides. Doctors request overrides for themselves
    and they wait for an administrator; overrides created by an administrator
    are approved straight away.
    """

    def __init__(self, session: AsyncSession, clock: Clock = system_clock):
        self.session = session
        self.clock = clock
        self.notifications = NotificationService(session)

    def _ensure_can_manage(self, doctor_id: UUID, actor: Actor) -> None:
        if actor.role == UserRole.ADMIN:
            return
        if actor.role == UserRole.DOCTOR and actor.id == doctor_id:
            return
        raise ForbiddenError("You can only manage your own schedule")

    async def get_schedule(self, schedule_id: UUID) -> ScheduleOverride:
        schedule = await self.session.get(ScheduleOverride, schedule_id)
        if not schedule:
            raise NotFoundError("Schedule")
        return schedule

    async def list_schedules(
        self,
        doctor_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[ScheduleStatus] = None,
    ) -> List[ScheduleOverride]:
        stmt = select(ScheduleOverride)
        if doctor_id:
            stmt = stmt.where(ScheduleOverride.doctor_id == doctor_id)
        if start_date:
            stmt = stmt.where(ScheduleOverride.date >= start_date)
        if end_date:
            stmt = stmt.where(ScheduleOverride.date <= end_date)
        if status:
            stmt = stmt.where(ScheduleOverride.status == status)
        stmt = stmt.order_by(ScheduleOverride.date, ScheduleOverride.created_at)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_schedule(self, data: ScheduleCreate, actor: Actor) -> ScheduleOverride:
        self._ensure_can_manage(data.doctor_id, actor)
        await DoctorService(self.session).get_doctor(data.doctor_id)

        now = self.clock.now()
        is_admin = actor.role == UserRole.ADMIN
        schedule = ScheduleOverride(
            doctor_id=data.doctor_id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            is_recurring=data.is_recurring,
            repeat_pattern=data.repeat_pattern,
            status=ScheduleStatus.APPROVED if is_admin else ScheduleStatus.PENDING,
            requested_by=actor.id,
            approved_by=actor.id if is_admin else None,
            notes=[make_note(actor.id, data.notes, now)] if data.notes else [],
            created_at=now,
            updated_at=now,
        )
        self.session.add(schedule)
        await self.session.commit()
        await self.session.refresh(schedule)

        logger.info(f"Schedule override {schedule.id} for doctor {data.doctor_id} on {data.date} created ({schedule.status.value})")
        return schedule

    async def update_schedule(self, schedule_id: UUID, data: ScheduleUpdate, actor: Actor) -> ScheduleOverride:
        schedule = await self.get_schedule(schedule_id)
        self._ensure_can_manage(schedule.doctor_id, actor)

        update_data = data.model_dump(exclude_unset=True)
        start_time = update_data.get("start_time", schedule.start_time)
        end_time = update_data.get("end_time", schedule.end_time)
        day_off = start_time == DAY_OFF and end_time == DAY_OFF
        if not day_off and start_time >= end_time:
            raise ValidationError("start_time must be before end_time (use 00:00-00:00 for a day off)")

        for key, value in update_data.items():
            setattr(schedule, key, value)

        # A doctor's edit has to be approved again
        if actor.role == UserRole.DOCTOR:
            schedule.status = ScheduleStatus.PENDING
            schedule.approved_by = None

        schedule.updated_at = self.clock.now()
        self.session.add(schedule)
        await self.session.commit()
        await self.session.refresh(schedule)
        return schedule

    async def delete_schedule(self, schedule_id: UUID, actor: Actor) -> dict:
        schedule = await self.get_schedule(schedule_id)
        self._ensure_can_manage(schedule.doctor_id, actor)

        await self.session.delete(schedule)
        await self.session.commit()
        return {"message": "Schedule deleted successfully"}

    async def approve_schedule(
        self, schedule_id: UUID, status: ScheduleStatus, actor: Actor, notes: Optional[str] = None
    ) -> ScheduleOverride:
        """Approve or reject an override, appending the administrator's note."""
        if actor.role != UserRole.ADMIN:
            raise ForbiddenError("Only administrators can approve schedules")
        if status == ScheduleStatus.PENDING:
            raise ValidationError("Status must be 'approved' or 'rejected'")

        schedule = await self.get_schedule(schedule_id)
        now = self.clock.now()

        schedule.status = status
        schedule.approved_by = actor.id
        schedule.updated_at = now
        if notes:
            schedule.notes = [*(schedule.notes or []), make_note(actor.id, notes, now)]

        approved = status == ScheduleStatus.APPROVED
        self.notifications.notify(
            schedule.doctor_id,
            NotificationEvent.SCHEDULE_APPROVED if approved else NotificationEvent.SCHEDULE_REJECTED,
            f"Your schedule for {schedule.date.isoformat()} was {status.value}",
            {"schedule_id": schedule.id, "date": schedule.date, "notes": notes},
        )

        self.session.add(schedule)
        await self.session.commit()
        await self.session.refresh(schedule)

        logger.info(f"Schedule {schedule_id} {status.value} by {actor.id}")
        return schedule

    async def reject_pending_for_doctor(self, doctor_id: UUID, reason: str, author_id: Optional[UUID] = None) -> int:
        # Caller owns the transaction
        pending = await self.list_schedules(doctor_id=doctor_id, status=ScheduleStatus.PENDING)
        now = self.clock.now()
        for schedule in pending:
            schedule.status = ScheduleStatus.REJECTED
            schedule.notes = [*(schedule.notes or []), make_note(author_id, reason, now)]
            schedule.updated_at = now
            self.session.add(schedule)
        return len(pending)
