from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.appointment_rules import BookingRules, default_rules
from app.core.clock import Clock, system_clock
from app.core.exceptions import ConflictError, ValidationError
from app.db.models import Appointment, User
from app.db.models.appointment import RELEASED_STATUSES
from app.schemas.appointment import Slot
from app.schemas.auth import Actor
from app.services.calendar_service import CalendarResolver
from app.services.doctor_service import DoctorService

def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open intervals: back-to-back appointments do not overlap."""
    return a_start < b_end and b_start < a_end

def iter_slots(
    day: date,
    window_start: time,
    window_end: time,
    booked: Iterable[Tuple[datetime, datetime]],
    duration_minutes: int,
    granularity_minutes: int,
    not_before: Optional[datetime] = None,
) -> Iterator[Slot]:
    """
    Candidate start times stepping by ``granularity_minutes`` from the start of
    the working window. A slot is listed only if the whole appointment fits in
    the window; it is available when it overlaps no booked interval and does
    not start before ``not_before``.
    """
    booked = list(booked)
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=granularity_minutes)
    current = datetime.combine(day, window_start)
    end = datetime.combine(day, window_end)

    while current + duration <= end:
        slot_end = current + duration
        available = not any(overlaps(current, slot_end, start, stop) for start, stop in booked)
        if not_before is not None and current < not_before:
            available = False
        yield Slot(time=current.strftime("%H:%M"), available=available)
        current += step

class AvailabilityService:
    def __init__(self, session: AsyncSession, rules: BookingRules = default_rules, clock: Clock = system_clock):
        self.session = session
        self.rules = rules
        self.clock = clock
        self.calendar = CalendarResolver(session, rules)
        self.doctors = DoctorService(session, clock)

    async def lock_doctor(self, doctor_id: UUID) -> User:
        return await self.doctors.get_doctor(doctor_id, for_update=True)

    async def _active_between(
        self,
        doctor_id: UUID,
        window_start: datetime,
        window_end: datetime,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> List[Appointment]:
        # No appointment is longer than max_appointment_duration, which bounds
        # how early an overlapping appointment can start
        earliest = window_start - timedelta(minutes=self.rules.max_appointment_duration)
        stmt = select(Appointment).where(
            Appointment.doctor_id == doctor_id,
            Appointment.status.not_in(list(RELEASED_STATUSES)),
            Appointment.scheduled_at < window_end,
            Appointment.scheduled_at > earliest,
        )
        if exclude_appointment_id:
            stmt = stmt.where(Appointment.id != exclude_appointment_id)
        result = await self.session.execute(stmt)
        return [
            appointment for appointment in result.scalars().all()
            if overlaps(window_start, window_end, appointment.scheduled_at, appointment.ends_at)
        ]

    async def find_conflicts(
        self,
        doctor_id: UUID,
        scheduled_at: datetime,
        duration_minutes: int,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> List[Appointment]:
        end = scheduled_at + timedelta(minutes=duration_minutes)
        return await self._active_between(doctor_id, scheduled_at, end, exclude_appointment_id)

    async def check_availability(
        self,
        doctor_id: UUID,
        scheduled_at: datetime,
        duration_minutes: int,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> bool:
        conflicts = await self.find_conflicts(doctor_id, scheduled_at, duration_minutes, exclude_appointment_id)
        return not conflicts

    async def ensure_available(
        self,
        doctor_id: UUID,
        scheduled_at: datetime,
        duration_minutes: int,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> None:
        if not await self.check_availability(doctor_id, scheduled_at, duration_minutes, exclude_appointment_id):
            raise ConflictError("Doctor is not available at this time - there is a scheduling conflict")

    def _not_before(self, actor: Optional[Actor]) -> Optional[datetime]:
        if actor is None:
            return None
        now = self.clock.now()
        if actor.is_client:
            return now + timedelta(minutes=self.rules.client_min_booking_advance_minutes)
        return now - timedelta(minutes=self.rules.staff_max_past_booking_minutes)

    async def get_available_slots(
        self,
        doctor_id: UUID,
        day: date,
        granularity_minutes: Optional[int] = None,
        duration_minutes: Optional[int] = None,
        actor: Optional[Actor] = None,
    ) -> List[Slot]:
        granularity = self.rules.slot_granularity_minutes if granularity_minutes is None else granularity_minutes
        duration = self.rules.default_appointment_duration if duration_minutes is None else duration_minutes
        if granularity <= 0:
            raise ValidationError("Slot granularity must be positive")
        if duration <= 0 or duration > self.rules.max_appointment_duration:
            raise ValidationError(f"Duration must be between 1 and {self.rules.max_appointment_duration} minutes")

        doctor = await self.doctors.get_doctor(doctor_id)
        if not doctor.is_active:
            return []

        calendar_day = (await self.calendar.resolve_for(doctor, day, day))[0]
        if not calendar_day.is_working:
            return []

        window_start = datetime.combine(day, calendar_day.start_time)
        window_end = datetime.combine(day, calendar_day.end_time)
        appointments = await self._active_between(doctor_id, window_start, window_end)
        booked = [(appointment.scheduled_at, appointment.ends_at) for appointment in appointments]

        return list(iter_slots(
            day,
            calendar_day.start_time,
            calendar_day.end_time,
            booked,
            duration,
            granularity,
            not_before=self._not_before(actor),
        ))
