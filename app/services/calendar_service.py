from datetime import date, timedelta
from typing import Dict, Iterator, List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.appointment_rules import BookingRules, default_rules
from app.core.exceptions import ValidationError
from app.core.utils import day_name, iter_dates
from app.db.models import DayOfWeek, ScheduleOverride, ScheduleStatus, User, WorkingHours
from app.schemas.schedule import CalendarDay, CalendarSource
from app.services.doctor_service import DoctorService
from app.services.working_hours_service import WorkingHoursService

def resolve_days(
    start_date: date,
    end_date: date,
    overrides: Dict[date, ScheduleOverride],
    working_hours: Dict[DayOfWeek, WorkingHours],
) -> Iterator[CalendarDay]:
    """
    Effective hours per date. An approved override for the date wins over the
    weekly hours; an override of 00:00-00:00 is a day off.
    """
    for day in iter_dates(start_date, end_date):
        name = day_name(day)
        override = overrides.get(day)
        if override is not None:
            yield CalendarDay(
                date=day,
                day_name=name,
                is_working=not override.is_day_off,
                start_time=override.start_time,
                end_time=override.end_time,
                source=CalendarSource.SCHEDULE,
                notes=override.notes or [],
            )
            continue

        hours = working_hours.get(DayOfWeek(name))
        if hours is not None:
            yield CalendarDay(
                date=day,
                day_name=name,
                is_working=True,
                start_time=hours.start_time,
                end_time=hours.end_time,
                source=CalendarSource.WORKING_HOURS,
            )
        else:
            yield CalendarDay(date=day, day_name=name, is_working=False, source=CalendarSource.NONE)

class CalendarResolver:
    def __init__(self, session: AsyncSession, rules: BookingRules = default_rules):
        self.session = session
        self.rules = rules

    async def _approved_overrides(self, doctor_id: UUID, start_date: date, end_date: date) -> Dict[date, ScheduleOverride]:
        stmt = (
            select(ScheduleOverride)
            .where(
                ScheduleOverride.doctor_id == doctor_id,
                ScheduleOverride.status == ScheduleStatus.APPROVED,
                ScheduleOverride.date >= start_date,
                ScheduleOverride.date <= end_date,
            )
            .order_by(ScheduleOverride.created_at)
        )
        result = await self.session.execute(stmt)
        # Ordered oldest first so the most recently created override wins
        return {override.date: override for override in result.scalars().all()}

    async def resolve_for(self, doctor: User, start_date: date, end_date: date) -> List[CalendarDay]:
        overrides = await self._approved_overrides(doctor.id, start_date, end_date)
        working_hours = await WorkingHoursService(self.session).get_active_by_day(doctor.id)
        return list(resolve_days(start_date, end_date, overrides, working_hours))

    async def resolve(self, doctor_id: UUID, start_date: date, end_date: date) -> List[CalendarDay]:
        if start_date > end_date:
            raise ValidationError("start_date must be on or before end_date")
        if end_date - start_date > timedelta(days=self.rules.max_calendar_range_days - 1):
            raise ValidationError(f"Date range cannot exceed {self.rules.max_calendar_range_days} days")

        doctor = await DoctorService(self.session).get_doctor(doctor_id)
        return await self.resolve_for(doctor, start_date, end_date)

    async def resolve_day(self, doctor_id: UUID, day: date) -> CalendarDay:
        days = await self.resolve(doctor_id, day, day)
        return days[0]
