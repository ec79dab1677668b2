from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.appointment_rules import BookingRules, decide_cancellation, default_rules, hours_until
from app.core.clock import Clock, system_clock
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.logger import logger
from app.core.utils import format_hours, to_local_naive
from app.db.models import Appointment, AppointmentStatus, Pet, RescheduleRequest, RescheduleStatus
from app.db.retry import run_with_retries
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    CancellationPreview,
    CancellationResult,
)
from app.schemas.auth import Actor
from app.services.availability_service import AvailabilityService
from app.services.notification_service import NotificationEvent, NotificationService
from app.services.penalty_service import PenaltyService

# Forward transitions that staff drive explicitly
NEXT_STATUS = {
    AppointmentStatus.PROPOSED: AppointmentStatus.CONFIRMED,
    AppointmentStatus.CONFIRMED: AppointmentStatus.IN_PROGRESS,
    AppointmentStatus.IN_PROGRESS: AppointmentStatus.COMPLETED,
}

# Appointments still waiting to happen; these are swept once their time passes
EXPIRABLE_STATUSES = [AppointmentStatus.PROPOSED, AppointmentStatus.CONFIRMED]

AUTO_CANCEL_NOTE = "Automatically cancelled: scheduled time passed"

async def reject_pending_requests(
    session: AsyncSession, appointment_id: UUID, reviewer_id: Optional[UUID], reason: str, now: datetime
) -> int:
    # Caller owns the transaction
    stmt = select(RescheduleRequest).where(
        RescheduleRequest.appointment_id == appointment_id,
        RescheduleRequest.status == RescheduleStatus.PENDING,
    )
    result = await session.execute(stmt)
    pending = result.scalars().all()
    for request in pending:
        request.status = RescheduleStatus.REJECTED
        request.reviewed_by = reviewer_id
        request.reviewed_at = now
        request.rejection_reason = reason
        session.add(request)
    return len(pending)

class AppointmentService:
    def __init__(self, session: AsyncSession, rules: BookingRules = default_rules, clock: Clock = system_clock):
        self.session = session
        self.rules = rules
        self.clock = clock
        self.availability = AvailabilityService(session, rules, clock)
        self.notifications = NotificationService(session)
        self.penalties = PenaltyService(session)

    async def get_appointment(self, appointment_id: UUID, for_update: bool = False) -> Appointment:
        """
        With ``for_update`` the row is locked and reloaded from the database, so
        state changes committed by another transaction are seen before writing.
        """
        if for_update:
            stmt = (
                select(Appointment)
                .where(Appointment.id == appointment_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            appointment = result.scalars().first()
        else:
            appointment = await self.session.get(Appointment, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment")
        return appointment

    def ensure_access(self, appointment: Appointment, actor: Actor) -> None:
        if actor.is_client and appointment.client_id != actor.id:
            raise ForbiddenError("You can only manage your own appointments")

    async def get_for_actor(self, appointment_id: UUID, actor: Actor, for_update: bool = False) -> Appointment:
        appointment = await self.get_appointment(appointment_id, for_update)
        self.ensure_access(appointment, actor)
        return appointment

    async def list_appointments(
        self,
        actor: Actor,
        doctor_id: Optional[UUID] = None,
        day: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        stmt = select(Appointment)
        if actor.is_client:
            stmt = stmt.where(Appointment.client_id == actor.id)
        if doctor_id:
            stmt = stmt.where(Appointment.doctor_id == doctor_id)
        if day:
            start_dt = datetime.combine(day, time.min)
            stmt = stmt.where(
                Appointment.scheduled_at >= start_dt,
                Appointment.scheduled_at < start_dt + timedelta(days=1),
            )
        if status:
            stmt = stmt.where(Appointment.status == status)
        stmt = stmt.order_by(Appointment.scheduled_at)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_appointment(self, data: AppointmentCreate, actor: Actor) -> Appointment:
        """
        Book an appointment. The doctor row is locked for the duration of the
        overlap check and the insert, so two concurrent bookings for the same
        doctor cannot both succeed.
        """
        duration = data.duration_minutes or self.rules.default_appointment_duration
        if duration > self.rules.max_appointment_duration:
            raise ValidationError(f"Duration cannot exceed {self.rules.max_appointment_duration} minutes")

        scheduled_at = to_local_naive(data.scheduled_at)
        now = self.clock.now()

        pet = await self.session.get(Pet, data.pet_id)
        if not pet:
            raise NotFoundError("Pet")
        client_id = pet.owner_id
        if actor.is_client and client_id != actor.id:
            raise ForbiddenError("You can only book appointments for your own pets")

        status = AppointmentStatus.PROPOSED if actor.is_client else AppointmentStatus.CONFIRMED
        services = [item.model_dump(mode="json") for item in data.services]

        async def book() -> Appointment:
            doctor = await self.availability.lock_doctor(data.doctor_id)
            if not doctor.is_active:
                raise ConflictError("Doctor is not accepting appointments")
            await self.availability.ensure_available(doctor.id, scheduled_at, duration)

            appointment = Appointment(
                pet_id=data.pet_id,
                doctor_id=doctor.id,
                client_id=client_id,
                scheduled_at=scheduled_at,
                duration_minutes=duration,
                status=status,
                reason=data.reason,
                location=data.location,
                services=services,
                created_by=actor.id,
                notes=data.notes,
                created_at=now,
                updated_at=now,
            )
            self.session.add(appointment)

            if status == AppointmentStatus.PROPOSED:
                self.notifications.notify(
                    doctor.id,
                    NotificationEvent.APPOINTMENT_PROPOSED,
                    f"New appointment request for {scheduled_at:%Y-%m-%d %H:%M}",
                    {"appointment_id": appointment.id, "scheduled_at": scheduled_at},
                )
            else:
                self.notifications.notify(
                    client_id,
                    NotificationEvent.APPOINTMENT_CONFIRMED,
                    f"Your appointment on {scheduled_at:%Y-%m-%d %H:%M} is confirmed",
                    {"appointment_id": appointment.id, "scheduled_at": scheduled_at},
                )

            await self.session.commit()
            await self.session.refresh(appointment)
            return appointment

        appointment = await run_with_retries(self.session, book, self.rules.booking_max_retries, "appointment booking")
        logger.info(
            f"Appointment {appointment.id} booked | doctor: {appointment.doctor_id} | "
            f"at: {appointment.scheduled_at} | status: {appointment.status.value}"
        )
        return appointment

    async def _advance(self, appointment_id: UUID, target: AppointmentStatus, actor: Actor) -> Appointment:
        if not actor.is_staff:
            raise ForbiddenError("Only clinic staff can change appointment status")

        appointment = await self.get_appointment(appointment_id, for_update=True)
        if NEXT_STATUS.get(appointment.status) != target:
            raise ValidationError(
                f"Cannot change status from {appointment.status.value} to {target.value}",
                code="INVALID_STATUS_TRANSITION",
            )

        appointment.status = target
        appointment.updated_at = self.clock.now()
        if target == AppointmentStatus.CONFIRMED:
            self.notifications.notify(
                appointment.client_id,
                NotificationEvent.APPOINTMENT_CONFIRMED,
                f"Your appointment on {appointment.scheduled_at:%Y-%m-%d %H:%M} is confirmed",
                {"appointment_id": appointment.id, "scheduled_at": appointment.scheduled_at},
            )

        self.session.add(appointment)
        await self.session.commit()
        await self.session.refresh(appointment)
        logger.info(f"Appointment {appointment_id} moved to {target.value} by {actor.id}")
        return appointment

    async def confirm(self, appointment_id: UUID, actor: Actor) -> Appointment:
        return await self._advance(appointment_id, AppointmentStatus.CONFIRMED, actor)

    async def start(self, appointment_id: UUID, actor: Actor) -> Appointment:
        return await self._advance(appointment_id, AppointmentStatus.IN_PROGRESS, actor)

    async def complete(self, appointment_id: UUID, actor: Actor) -> Appointment:
        return await self._advance(appointment_id, AppointmentStatus.COMPLETED, actor)

    async def cancellation_preview(self, appointment_id: UUID, actor: Actor) -> CancellationPreview:
        appointment = await self.get_for_actor(appointment_id, actor)
        hours = hours_until(appointment.scheduled_at, self.clock.now())
        if appointment.is_terminal:
            return CancellationPreview(
                can_cancel=False,
                hours_until=hours,
                time_remaining=format_hours(hours),
                message=f"Cannot cancel {appointment.status.value} appointment",
            )

        decision = decide_cancellation(appointment.scheduled_at, self.clock.now(), self.rules)
        return CancellationPreview(
            can_cancel=True,
            status=decision.status,
            has_fee=decision.has_fee,
            fee=decision.fee,
            hours_until=decision.hours_until,
            time_remaining=format_hours(decision.hours_until),
            message=decision.message,
        )

    async def cancel(self, appointment_id: UUID, actor: Actor) -> CancellationResult:
        appointment = await self.get_for_actor(appointment_id, actor, for_update=True)
        if appointment.is_terminal:
            raise ValidationError(f"Cannot cancel {appointment.status.value} appointment", code="INVALID_STATUS_TRANSITION")

        now = self.clock.now()
        decision = decide_cancellation(appointment.scheduled_at, now, self.rules)

        appointment.status = decision.status
        appointment.cancelled_at = now
        appointment.cancelled_by = actor.id
        appointment.updated_at = now

        penalty = None
        if decision.has_fee:
            appointment.late_cancellation_fee = decision.fee
            appointment.cancellation_note = f"Late cancellation {decision.hours_until:.1f}h before the appointment"
            penalty = self.penalties.record_late_cancellation(appointment, decision.fee, decision.hours_until)

        await reject_pending_requests(self.session, appointment.id, actor.id, "Appointment cancelled", now)

        self.notifications.notify(
            appointment.client_id,
            NotificationEvent.APPOINTMENT_CANCELLED,
            f"Your appointment on {appointment.scheduled_at:%Y-%m-%d %H:%M} was cancelled",
            {"appointment_id": appointment.id, "status": decision.status, "fee": decision.fee},
        )

        self.session.add(appointment)
        await self.session.commit()
        await self.session.refresh(appointment)

        logger.info(
            f"Appointment {appointment_id} cancelled by {actor.id} | status: {decision.status.value} | "
            f"hours before: {decision.hours_until:.1f}"
        )
        return CancellationResult(
            appointment=AppointmentResponse.model_validate(appointment),
            status=decision.status,
            has_fee=decision.has_fee,
            fee=decision.fee,
            penalty_id=penalty.id if penalty else None,
            message=decision.message,
        )

    async def update_status(self, appointment_id: UUID, status: AppointmentStatus, actor: Actor) -> Appointment:
        if status in (AppointmentStatus.CANCELLED, AppointmentStatus.CANCELLED_LATE):
            # The cancellation policy picks between the two
            result = await self.cancel(appointment_id, actor)
            return await self.get_appointment(result.appointment.id)
        if status == AppointmentStatus.PROPOSED:
            raise ValidationError("Appointments cannot be moved back to proposed", code="INVALID_STATUS_TRANSITION")
        return await self._advance(appointment_id, status, actor)

    async def _expire(self, appointment_id: UUID, now: datetime) -> bool:
        try:
            appointment = await self.get_appointment(appointment_id, for_update=True)
        except NotFoundError:
            return False
        if appointment.status not in EXPIRABLE_STATUSES:
            return False

        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancelled_at = now
        appointment.cancellation_note = AUTO_CANCEL_NOTE
        appointment.updated_at = now
        await reject_pending_requests(self.session, appointment.id, None, AUTO_CANCEL_NOTE, now)
        self.session.add(appointment)
        await self.session.commit()
        return True

    async def auto_cancel_expired(self) -> int:
        """
        Cancel proposed or confirmed appointments whose start time has passed.
        Each appointment is committed on its own; a failure is logged and the
        sweep moves on.
        """
        now = self.clock.now()
        stmt = select(Appointment.id).where(
            Appointment.status.in_(EXPIRABLE_STATUSES),
            Appointment.scheduled_at < now,
        )
        result = await self.session.execute(stmt)
        appointment_ids = list(result.scalars().all())

        cancelled = 0
        for appointment_id in appointment_ids:
            try:
                if await self._expire(appointment_id, now):
                    cancelled += 1
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Auto-cancel failed for appointment {appointment_id}: {e}")

        if appointment_ids:
            logger.info(f"Auto-cancel sweep: {cancelled}/{len(appointment_ids)} expired appointments cancelled")
        return cancelled
