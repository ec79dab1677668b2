"""
Business rules for booking, cancelling and rescheduling appointments.

The values come from settings and are bundled into an immutable ``BookingRules``
so services can be built with explicit rules in tests.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from app.core.config import Settings, settings
from app.db.models.appointment import AppointmentStatus


@dataclass(frozen=True)
class BookingRules:
    cancellation_policy_hours: int = 24
    late_cancellation_fee: Decimal = Decimal("50.00")
    default_appointment_duration: int = 30
    slot_granularity_minutes: int = 30
    max_appointment_duration: int = 480
    reschedule_min_hours_before: int = 48
    client_min_booking_advance_minutes: int = 30
    staff_max_past_booking_minutes: int = 60
    max_calendar_range_days: int = 366
    booking_max_retries: int = 3

    @classmethod
    def from_settings(cls, config: Settings) -> "BookingRules":
        return cls(
            cancellation_policy_hours=config.CANCELLATION_POLICY_HOURS,
            late_cancellation_fee=config.LATE_CANCELLATION_FEE,
            default_appointment_duration=config.DEFAULT_APPOINTMENT_DURATION,
            slot_granularity_minutes=config.SLOT_GRANULARITY_MINUTES,
            max_appointment_duration=config.MAX_APPOINTMENT_DURATION,
            reschedule_min_hours_before=config.RESCHEDULE_MIN_HOURS_BEFORE,
            client_min_booking_advance_minutes=config.CLIENT_MIN_BOOKING_ADVANCE_MINUTES,
            staff_max_past_booking_minutes=config.STAFF_MAX_PAST_BOOKING_MINUTES,
            max_calendar_range_days=config.MAX_CALENDAR_RANGE_DAYS,
            booking_max_retries=config.BOOKING_MAX_RETRIES,
        )


default_rules = BookingRules.from_settings(settings)


@dataclass(frozen=True)
class CancellationDecision:
    status: AppointmentStatus
    has_fee: bool
    fee: Optional[Decimal]
    hours_until: float
    message: str


def hours_until(scheduled_at: datetime, now: datetime) -> float:
    return (scheduled_at - now).total_seconds() / 3600


def decide_cancellation(scheduled_at: datetime, now: datetime, rules: BookingRules) -> CancellationDecision:
    """
    Free cancellation when at least ``cancellation_policy_hours`` remain
    (the boundary itself is free), late cancellation with a fee otherwise.
    """
    remaining = scheduled_at - now
    hours = hours_until(scheduled_at, now)

    if remaining >= timedelta(hours=rules.cancellation_policy_hours):
        return CancellationDecision(
            status=AppointmentStatus.CANCELLED,
            has_fee=False,
            fee=None,
            hours_until=hours,
            message="Appointment can be cancelled free of charge.",
        )

    return CancellationDecision(
        status=AppointmentStatus.CANCELLED_LATE,
        has_fee=True,
        fee=rules.late_cancellation_fee,
        hours_until=hours,
        message=(
            f"Late cancellation: cancelling less than {rules.cancellation_policy_hours}h "
            f"before the appointment incurs a fee of {rules.late_cancellation_fee}."
        ),
    )


def can_request_reschedule(scheduled_at: datetime, now: datetime, rules: BookingRules) -> bool:
    return scheduled_at - now >= timedelta(hours=rules.reschedule_min_hours_before)
