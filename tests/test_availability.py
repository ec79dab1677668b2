import datetime as dt
import random
from uuid import uuid4

import pytest

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.db.models import AppointmentStatus, DayOfWeek, UserRole
from app.schemas.appointment import AppointmentCreate
from app.services.appointment_service import AppointmentService
from app.services.availability_service import AvailabilityService, iter_slots, overlaps

from conftest import NOW, actor_for

TUESDAY = dt.date(2025, 6, 10)

def at(hour: int, minute: int = 0, day: dt.date = TUESDAY) -> dt.datetime:
    return dt.datetime.combine(day, dt.time(hour, minute))

def test_overlap_is_half_open():
    assert overlaps(at(10), at(10, 30), at(10, 20), at(10, 50))
    assert overlaps(at(10), at(11), at(10, 15), at(10, 30))
    assert not overlaps(at(10), at(10, 30), at(10, 30), at(11))
    assert not overlaps(at(10, 30), at(11), at(10), at(10, 30))

def test_iter_slots_fits_whole_duration_in_window():
    slots = list(iter_slots(TUESDAY, dt.time(9, 0), dt.time(10, 30), [], 45, 30))

    assert [s.time for s in slots] == ["09:00", "09:30"]
    assert all(s.available for s in slots)

def test_iter_slots_marks_booked_and_early_slots():
    booked = [(at(9, 30), at(10, 0))]
    slots = list(iter_slots(TUESDAY, dt.time(9, 0), dt.time(11, 0), booked, 30, 30, not_before=at(9, 10)))

    assert [(s.time, s.available) for s in slots] == [
        ("09:00", False),
        ("09:30", False),
        ("10:00", True),
        ("10:30", True),
    ]

def test_iter_slots_is_lazy():
    slots = iter_slots(TUESDAY, dt.time(0, 0), dt.time(23, 59), [], 1, 1)
    assert next(slots).time == "00:00"
    assert next(slots).time == "00:01"

@pytest.mark.asyncio
async def test_second_overlapping_booking_conflicts(session, clock, factory, doctor, pet, receptionist):
    await factory.weekdays(doctor)
    service = AppointmentService(session, clock=clock)
    staff = actor_for(receptionist)

    first = await service.create_appointment(
        AppointmentCreate(pet_id=pet.id, doctor_id=doctor.id, scheduled_at=at(10), duration_minutes=30), staff
    )
    assert first.status == AppointmentStatus.CONFIRMED

    with pytest.raises(ConflictError):
        await service.create_appointment(
            AppointmentCreate(pet_id=pet.id, doctor_id=doctor.id, scheduled_at=at(10, 20), duration_minutes=30), staff
        )

    back_to_back = await service.create_appointment(
        AppointmentCreate(pet_id=pet.id, doctor_id=doctor.id, scheduled_at=at(10, 30), duration_minutes=30), staff
    )
    assert back_to_back.scheduled_at == at(10, 30)

@pytest.mark.asyncio
async def test_insertion_rejected_iff_intervals_overlap(session, clock, factory, doctor, pet, receptionist):
    service = AppointmentService(session, clock=clock)
    staff = actor_for(receptionist)
    rng = random.Random(7)
    accepted = []

    for _ in range(40):
        start = at(8) + dt.timedelta(minutes=5 * rng.randint(0, 96))
        duration = 5 * rng.randint(1, 18)
        end = start + dt.timedelta(minutes=duration)
        expected_conflict = any(overlaps(start, end, s, e) for s, e in accepted)

        try:
            await service.create_appointment(
                AppointmentCreate(pet_id=pet.id, doctor_id=doctor.id, scheduled_at=start, duration_minutes=duration),
                staff,
            )
            conflicted = False
        except ConflictError:
            conflicted = True

        assert conflicted is expected_conflict
        if not conflicted:
            accepted.append((start, end))

    for i, (s1, e1) in enumerate(accepted):
        for s2, e2 in accepted[i + 1:]:
            assert not overlaps(s1, e1, s2, e2)

@pytest.mark.asyncio
async def test_cancelled_appointments_free_the_slot(session, clock, factory, doctor, pet):
    await factory.appointment(doctor, pet, at(10), status=AppointmentStatus.CANCELLED)
    await factory.appointment(doctor, pet, at(11), status=AppointmentStatus.CANCELLED_LATE)
    service = AvailabilityService(session, clock=clock)

    assert await service.check_availability(doctor.id, at(10), 30)
    assert await service.check_availability(doctor.id, at(11), 30)

@pytest.mark.asyncio
async def test_exclude_appointment_from_conflicts(session, clock, factory, doctor, pet):
    appointment = await factory.appointment(doctor, pet, at(10), duration_minutes=60)
    service = AvailabilityService(session, clock=clock)

    conflicts = await service.find_conflicts(doctor.id, at(10, 30), 30)
    assert [c.id for c in conflicts] == [appointment.id]
    assert await service.check_availability(doctor.id, at(10, 30), 30, exclude_appointment_id=appointment.id)

@pytest.mark.asyncio
async def test_available_slots_follow_calendar_and_bookings(session, clock, factory, doctor, pet, receptionist):
    await factory.working_hours(doctor, DayOfWeek.TUESDAY, dt.time(9, 0), dt.time(11, 0))
    await factory.appointment(doctor, pet, at(9, 30), duration_minutes=30)
    service = AvailabilityService(session, clock=clock)

    slots = await service.get_available_slots(doctor.id, TUESDAY, actor=actor_for(receptionist))

    assert [(s.time, s.available) for s in slots] == [
        ("09:00", True),
        ("09:30", False),
        ("10:00", True),
        ("10:30", True),
    ]

@pytest.mark.asyncio
async def test_client_cannot_take_slots_starting_too_soon(session, clock, factory, doctor, client_user):
    await factory.working_hours(doctor, DayOfWeek.MONDAY, dt.time(8, 0), dt.time(10, 0))
    service = AvailabilityService(session, clock=clock)

    client_slots = await service.get_available_slots(doctor.id, NOW.date(), actor=actor_for(client_user))
    assert [(s.time, s.available) for s in client_slots] == [
        ("08:00", False),
        ("08:30", True),
        ("09:00", True),
        ("09:30", True),
    ]

    clock.current = NOW + dt.timedelta(hours=1, minutes=40)
    staff = await factory.user(UserRole.RECEPTIONIST)
    staff_slots = await service.get_available_slots(doctor.id, NOW.date(), actor=actor_for(staff))
    assert [(s.time, s.available) for s in staff_slots] == [
        ("08:00", False),
        ("08:30", False),
        ("09:00", True),
        ("09:30", True),
    ]

@pytest.mark.asyncio
async def test_no_slots_on_day_off_or_for_inactive_doctor(session, clock, factory):
    active = await factory.doctor("Active")
    inactive = await factory.doctor("Inactive", is_active=False)
    await factory.weekdays(active)
    await factory.weekdays(inactive)
    service = AvailabilityService(session, clock=clock)

    assert await service.get_available_slots(active.id, dt.date(2025, 6, 14)) == []
    assert await service.get_available_slots(inactive.id, TUESDAY) == []
    assert len(await service.get_available_slots(active.id, TUESDAY)) == 16

@pytest.mark.asyncio
async def test_slot_parameters_are_validated(session, clock, doctor):
    service = AvailabilityService(session, clock=clock)

    with pytest.raises(ValidationError):
        await service.get_available_slots(doctor.id, TUESDAY, granularity_minutes=0)
    with pytest.raises(ValidationError):
        await service.get_available_slots(doctor.id, TUESDAY, duration_minutes=10_000)
    with pytest.raises(NotFoundError):
        await service.get_available_slots(uuid4(), TUESDAY)
