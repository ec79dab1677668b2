from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.appointment_rules import BookingRules, can_request_reschedule, default_rules
from app.core.clock import Clock, system_clock
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.logger import logger
from app.core.utils import to_local_naive
from app.db.models import Appointment, AppointmentStatus, RescheduleRequest, RescheduleStatus, UserRole
from app.db.retry import run_with_retries
from app.schemas.appointment import (
    AppointmentResponse,
    ForceRescheduleCreate,
    ForceRescheduleResponse,
    RescheduleRequestCreate,
)
from app.schemas.auth import Actor
from app.services.appointment_service import AppointmentService, reject_pending_requests
from app.services.notification_service import NotificationEvent

REVIEWER_ROLES = (UserRole.ADMIN, UserRole.RECEPTIONIST)

class RescheduleService:
    """
    Two ways to move an appointment: a client asks and front desk staff
    approve or reject, or staff move it directly.
    """

    def __init__(self, session: AsyncSession, rules: BookingRules = default_rules, clock: Clock = system_clock):
        self.session = session
        self.rules = rules
        self.clock = clock
        self.appointments = AppointmentService(session, rules, clock)
        self.availability = self.appointments.availability
        self.notifications = self.appointments.notifications

    def _ensure_reviewer(self, actor: Actor) -> None:
        if actor.role not in REVIEWER_ROLES:
            raise ForbiddenError("Only administrators and receptionists can manage reschedules")

    async def get_request(self, request_id: UUID, for_update: bool = False) -> RescheduleRequest:
        if for_update:
            stmt = (
                select(RescheduleRequest)
                .where(RescheduleRequest.id == request_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            request = result.scalars().first()
        else:
            request = await self.session.get(RescheduleRequest, request_id)
        if not request:
            raise NotFoundError("Reschedule request")
        return request

    async def list_requests(
        self, status: Optional[RescheduleStatus] = None, appointment_id: Optional[UUID] = None
    ) -> List[RescheduleRequest]:
        stmt = select(RescheduleRequest)
        if status:
            stmt = stmt.where(RescheduleRequest.status == status)
        if appointment_id:
            stmt = stmt.where(RescheduleRequest.appointment_id == appointment_id)
        stmt = stmt.order_by(RescheduleRequest.requested_at)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _has_pending(self, appointment_id: UUID) -> bool:
        stmt = select(RescheduleRequest.id).where(
            RescheduleRequest.appointment_id == appointment_id,
            RescheduleRequest.status == RescheduleStatus.PENDING,
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def request_reschedule(self, appointment_id: UUID, data: RescheduleRequestCreate, actor: Actor) -> RescheduleRequest:
        appointment = await self.appointments.get_for_actor(appointment_id, actor, for_update=True)
        if appointment.is_terminal:
            raise ValidationError(f"Cannot reschedule {appointment.status.value} appointment")

        now = self.clock.now()
        new_scheduled_at = to_local_naive(data.new_scheduled_at)
        if not can_request_reschedule(appointment.scheduled_at, now, self.rules):
            raise ValidationError(
                f"Reschedule requests must be made at least {self.rules.reschedule_min_hours_before} hours before the appointment"
            )
        if new_scheduled_at <= now:
            raise ValidationError("New appointment time must be in the future")
        if await self._has_pending(appointment.id):
            raise ConflictError("There is already a pending reschedule request for this appointment")
        if not await self.availability.check_availability(
            appointment.doctor_id, new_scheduled_at, appointment.duration_minutes, exclude_appointment_id=appointment.id
        ):
            raise ConflictError("Requested time is not available")

        request = RescheduleRequest(
            appointment_id=appointment.id,
            old_scheduled_at=appointment.scheduled_at,
            new_scheduled_at=new_scheduled_at,
            client_note=data.client_note,
            requested_by=actor.id,
            requested_at=now,
        )
        self.session.add(request)
        self.notifications.notify(
            appointment.doctor_id,
            NotificationEvent.RESCHEDULE_REQUESTED,
            f"Reschedule requested for the appointment on {appointment.scheduled_at:%Y-%m-%d %H:%M}",
            {"appointment_id": appointment.id, "request_id": request.id, "new_scheduled_at": new_scheduled_at},
        )
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("There is already a pending reschedule request for this appointment")
        await self.session.refresh(request)

        logger.info(f"Reschedule request {request.id} for appointment {appointment.id} by {actor.id}")
        return request

    async def approve_reschedule(self, request_id: UUID, actor: Actor) -> Appointment:
        self._ensure_reviewer(actor)

        async def apply() -> Appointment:
            request = await self.get_request(request_id)
            appointment = await self.appointments.get_appointment(request.appointment_id)
            locked_doctor_id = appointment.doctor_id
            await self.availability.lock_doctor(locked_doctor_id)

            # Re-read under lock, appointment before request as cancel does;
            # a cancel or another review may have committed meanwhile
            appointment = await self.appointments.get_appointment(request.appointment_id, for_update=True)
            request = await self.get_request(request_id, for_update=True)
            if request.status != RescheduleStatus.PENDING:
                raise ValidationError(f"Request has already been {request.status.value}")
            if appointment.is_terminal:
                raise ValidationError(f"Cannot reschedule {appointment.status.value} appointment")
            if appointment.doctor_id != locked_doctor_id:
                await self.availability.lock_doctor(appointment.doctor_id)

            await self.availability.ensure_available(
                appointment.doctor_id,
                request.new_scheduled_at,
                appointment.duration_minutes,
                exclude_appointment_id=appointment.id,
            )

            now = self.clock.now()
            appointment.scheduled_at = request.new_scheduled_at
            appointment.status = AppointmentStatus.CONFIRMED
            appointment.updated_at = now
            request.status = RescheduleStatus.APPROVED
            request.reviewed_by = actor.id
            request.reviewed_at = now

            self.notifications.notify(
                appointment.client_id,
                NotificationEvent.RESCHEDULE_APPROVED,
                f"Your appointment was moved to {request.new_scheduled_at:%Y-%m-%d %H:%M}",
                {"appointment_id": appointment.id, "request_id": request.id, "new_scheduled_at": request.new_scheduled_at},
            )

            self.session.add(appointment)
            self.session.add(request)
            await self.session.commit()
            await self.session.refresh(appointment)
            return appointment

        appointment = await run_with_retries(self.session, apply, self.rules.booking_max_retries, "reschedule approval")
        logger.info(f"Reschedule request {request_id} approved by {actor.id}")
        return appointment

    async def reject_reschedule(self, request_id: UUID, actor: Actor, reason: Optional[str] = None) -> RescheduleRequest:
        self._ensure_reviewer(actor)
        request = await self.get_request(request_id, for_update=True)
        if request.status != RescheduleStatus.PENDING:
            raise ValidationError(f"Request has already been {request.status.value}")

        appointment = await self.appointments.get_appointment(request.appointment_id)
        request.status = RescheduleStatus.REJECTED
        request.reviewed_by = actor.id
        request.reviewed_at = self.clock.now()
        request.rejection_reason = reason

        self.notifications.notify(
            appointment.client_id,
            NotificationEvent.RESCHEDULE_REJECTED,
            "Your reschedule request was rejected" + (f": {reason}" if reason else ""),
            {"appointment_id": appointment.id, "request_id": request.id, "reason": reason},
        )

        self.session.add(request)
        await self.session.commit()
        await self.session.refresh(request)

        logger.info(f"Reschedule request {request_id} rejected by {actor.id}")
        return request

    async def force_reschedule(self, appointment_id: UUID, data: ForceRescheduleCreate, actor: Actor) -> ForceRescheduleResponse:
        """Move an appointment directly, optionally to another doctor."""
        self._ensure_reviewer(actor)
        new_scheduled_at = to_local_naive(data.new_scheduled_at)
        if new_scheduled_at <= self.clock.now():
            raise ValidationError("New appointment time must be in the future")

        async def apply() -> ForceRescheduleResponse:
            appointment = await self.appointments.get_appointment(appointment_id)
            target_doctor_id = data.doctor_id or appointment.doctor_id
            doctor = await self.availability.lock_doctor(target_doctor_id)

            appointment = await self.appointments.get_appointment(appointment_id, for_update=True)
            if appointment.is_terminal:
                raise ValidationError(f"Cannot reschedule {appointment.status.value} appointment")
            if not doctor.is_active:
                raise ConflictError("Doctor is not accepting appointments")
            await self.availability.ensure_available(
                target_doctor_id,
                new_scheduled_at,
                appointment.duration_minutes,
                exclude_appointment_id=appointment.id,
            )

            now = self.clock.now()
            old_scheduled_at = appointment.scheduled_at
            doctor_changed = target_doctor_id != appointment.doctor_id
            appointment.scheduled_at = new_scheduled_at
            appointment.doctor_id = target_doctor_id
            appointment.updated_at = now

            await reject_pending_requests(
                self.session, appointment.id, actor.id, "Superseded by staff reschedule", now
            )
            self.notifications.notify(
                appointment.client_id,
                NotificationEvent.APPOINTMENT_RESCHEDULED_BY_STAFF,
                f"Your appointment was moved to {new_scheduled_at:%Y-%m-%d %H:%M}"
                + (f": {data.reason}" if data.reason else ""),
                {
                    "appointment_id": appointment.id,
                    "old_scheduled_at": old_scheduled_at,
                    "new_scheduled_at": new_scheduled_at,
                    "doctor_id": target_doctor_id,
                    "reason": data.reason,
                },
            )

            self.session.add(appointment)
            await self.session.commit()
            await self.session.refresh(appointment)

            return ForceRescheduleResponse(
                appointment=AppointmentResponse.model_validate(appointment),
                old_scheduled_at=old_scheduled_at,
                new_scheduled_at=new_scheduled_at,
                doctor_changed=doctor_changed,
                client_notified=True,
            )

        response = await run_with_retries(self.session, apply, self.rules.booking_max_retries, "staff reschedule")
        logger.info(f"Appointment {appointment_id} force-rescheduled by {actor.id} to {new_scheduled_at}")
        return response
