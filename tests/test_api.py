import datetime as dt
from uuid import uuid4

import jwt
import pytest

from app.core.config import settings
from app.core.redis import redis_client
from app.db.models import DayOfWeek, UserRole

from conftest import NOW, actor_for

API = settings.API_V1_STR
TUESDAY = "2025-06-10"

def token_for(user_id, role: str) -> str:
    return jwt.encode({"sub": str(user_id), "role": role}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

@pytest.mark.asyncio
async def test_double_booking_returns_409(api, factory, doctor, pet, receptionist):
    api.login(actor_for(receptionist))
    body = {"pet_id": str(pet.id), "doctor_id": str(doctor.id), "scheduled_at": f"{TUESDAY}T10:00:00", "duration_minutes": 30}

    first = await api.post(f"{API}/appointments", json=body)
    assert first.status_code == 201
    assert first.json()["status"] == "confirmed"

    second = await api.post(f"{API}/appointments", json={**body, "scheduled_at": f"{TUESDAY}T10:20:00"})
    assert second.status_code == 409
    assert second.json()["code"] == "CONFLICT"

    check = await api.get(
        f"{API}/appointments/check-availability",
        params={"doctor_id": str(doctor.id), "scheduled_at": f"{TUESDAY}T10:20:00", "duration_minutes": 30},
    )
    assert check.status_code == 200
    assert check.json()["available"] is False
    assert check.json()["conflicting_appointment_ids"] == [first.json()["id"]]

@pytest.mark.asyncio
async def test_available_slots(api, factory, doctor, receptionist):
    await factory.working_hours(doctor, DayOfWeek.TUESDAY, dt.time(9, 0), dt.time(10, 0))
    api.login(actor_for(receptionist))

    response = await api.get(f"{API}/appointments/available-slots", params={"doctor_id": str(doctor.id), "date": TUESDAY})

    assert response.status_code == 200
    data = response.json()
    assert data["granularity_minutes"] == 30
    assert data["slots"] == [{"time": "09:00", "available": True}, {"time": "09:30", "available": True}]

@pytest.mark.asyncio
async def test_malformed_input_returns_400(api, doctor, receptionist):
    api.login(actor_for(receptionist))

    response = await api.get(f"{API}/appointments/available-slots", params={"doctor_id": str(doctor.id), "date": "10/06/2025"})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = await api.get(
        f"{API}/appointments/available-slots",
        params={"doctor_id": str(doctor.id), "date": TUESDAY, "granularity_minutes": 0},
    )
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_missing_resources_return_404(api, receptionist):
    api.login(actor_for(receptionist))

    assert (await api.get(f"{API}/appointments/{uuid4()}")).status_code == 404
    assert (await api.get(f"{API}/schedules/{uuid4()}")).status_code == 404
    response = await api.get(
        f"{API}/schedules/calendar",
        params={"doctor_id": str(uuid4()), "start_date": TUESDAY, "end_date": TUESDAY},
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Doctor not found"

@pytest.mark.asyncio
async def test_client_cannot_touch_other_appointments(api, factory, doctor, pet):
    appointment = await factory.appointment(doctor, pet, NOW + dt.timedelta(days=3))
    stranger = await factory.user(UserRole.CLIENT, "Stranger")
    api.login(actor_for(stranger))

    assert (await api.post(f"{API}/appointments/{appointment.id}/cancel")).status_code == 403
    assert (await api.get(f"{API}/appointments/{appointment.id}")).status_code == 403

    response = await api.post(
        f"{API}/appointments/{appointment.id}/force-reschedule",
        json={"new_scheduled_at": (NOW + dt.timedelta(days=4)).isoformat()},
    )
    assert response.status_code == 403

@pytest.mark.asyncio
async def test_cancel_flow(api, factory, doctor, pet, client_user):
    appointment = await factory.appointment(doctor, pet, NOW + dt.timedelta(minutes=45))
    api.login(actor_for(client_user))

    preview = await api.get(f"{API}/appointments/{appointment.id}/cancellation-preview")
    assert preview.status_code == 200
    assert preview.json()["has_fee"] is True

    response = await api.post(f"{API}/appointments/{appointment.id}/cancel")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled_late"
    assert data["has_fee"] is True
    assert data["penalty_id"] is not None

    penalties = await api.get(f"{API}/penalties")
    assert penalties.status_code == 200
    assert len(penalties.json()) == 1

@pytest.mark.asyncio
async def test_status_patch(api, factory, doctor, pet, receptionist):
    appointment = await factory.appointment(doctor, pet, NOW + dt.timedelta(hours=1))
    api.login(actor_for(receptionist))

    response = await api.patch(f"{API}/appointments/{appointment.id}/status", json={"status": "in_progress"})
    assert response.status_code == 200
    assert response.json()["status"] == "in_progress"

    response = await api.patch(f"{API}/appointments/{appointment.id}/status", json={"status": "confirmed"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATUS_TRANSITION"

    response = await api.patch(f"{API}/appointments/{appointment.id}/status", json={"status": "finished"})
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_calendar_and_schedule_approval(api, factory, doctor, admin):
    await factory.weekdays(doctor)
    api.login(actor_for(doctor))

    created = await api.post(
        f"{API}/schedules",
        json={"doctor_id": str(doctor.id), "date": "2025-06-16", "start_time": "00:00", "end_time": "00:00"},
    )
    assert created.status_code == 201
    assert created.json()["status"] == "pending"

    forbidden = await api.patch(f"{API}/schedules/{created.json()['id']}/approve", json={"status": "approved"})
    assert forbidden.status_code == 403

    api.login(actor_for(admin))
    approved = await api.patch(
        f"{API}/schedules/{created.json()['id']}/approve", json={"status": "approved", "notes": "OK"}
    )
    assert approved.status_code == 200
    assert approved.json()["notes"][-1]["text"] == "OK"

    calendar = await api.get(
        f"{API}/schedules/calendar",
        params={"doctor_id": str(doctor.id), "start_date": "2025-06-14", "end_date": "2025-06-16"},
    )
    assert calendar.status_code == 200
    days = calendar.json()["days"]
    assert [(d["day_name"], d["is_working"], d["source"]) for d in days] == [
        ("saturday", False, "none"),
        ("sunday", False, "none"),
        ("monday", False, "schedule"),
    ]

@pytest.mark.asyncio
async def test_doctor_deactivation_endpoint(api, factory, doctor, admin):
    await factory.weekdays(doctor)
    api.login(actor_for(admin))

    response = await api.patch(f"{API}/doctors/{doctor.id}/active", json={"is_active": False})

    assert response.status_code == 200
    assert response.json()["working_hours_deactivated"] == 5
    hours = await api.get(f"{API}/working-hours", params={"doctor_id": str(doctor.id), "is_active": True})
    assert hours.json() == []

@pytest.mark.asyncio
async def test_weekly_hours_endpoint(api, doctor):
    api.login(actor_for(doctor))

    response = await api.put(
        f"{API}/working-hours/doctors/{doctor.id}",
        json=[
            {"day_of_week": "monday", "start_time": "08:00", "end_time": "12:00"},
            {"day_of_week": "wednesday", "start_time": "12:00", "end_time": "18:00"},
        ],
    )
    assert response.status_code == 200
    assert [row["day_of_week"] for row in response.json()] == ["monday", "wednesday"]

    bad = await api.post(
        f"{API}/working-hours",
        json={"doctor_id": str(doctor.id), "day_of_week": "friday", "start_time": "18:00", "end_time": "08:00"},
    )
    assert bad.status_code == 400

@pytest.mark.asyncio
async def test_requires_token(api):
    response = await api.get(f"{API}/appointments")
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_token_must_be_in_session_store(api, factory, receptionist, monkeypatch):
    token = token_for(receptionist.id, "receptionist")
    sessions = {token: "receptionist"}

    async def fake_get_token(value):
        return sessions.get(value)

    monkeypatch.setattr(redis_client, "get_token", fake_get_token)
    headers = {"Authorization": f"Bearer {token}"}

    assert (await api.get(f"{API}/appointments", headers=headers)).status_code == 200

    # Logged out
    sessions.clear()
    assert (await api.get(f"{API}/appointments", headers=headers)).status_code == 401

@pytest.mark.asyncio
async def test_invalid_tokens_are_rejected(api, monkeypatch):
    async def fake_get_token(value):
        return "present"

    monkeypatch.setattr(redis_client, "get_token", fake_get_token)

    bad_signature = jwt.encode({"sub": str(uuid4()), "role": "admin"}, "other-secret", algorithm="HS256")
    unknown_role = token_for(uuid4(), "janitor")
    for token in (bad_signature, unknown_role, "not-a-jwt"):
        response = await api.get(f"{API}/appointments", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

@pytest.mark.asyncio
async def test_client_role_is_enforced_on_admin_routes(api, client_user, doctor):
    api.login(actor_for(client_user))

    response = await api.patch(f"{API}/doctors/{doctor.id}/active", json={"is_active": False})
    assert response.status_code == 403
    response = await api.get(f"{API}/appointments/reschedule-requests")
    assert response.status_code == 403

@pytest.mark.asyncio
async def test_null_fields_in_updates_return_400(api, factory, doctor, admin):
    override = await factory.override(doctor, dt.date(2025, 6, 16), dt.time(10, 0), dt.time(12, 0))
    hours = await factory.working_hours(doctor, DayOfWeek.MONDAY)
    api.login(actor_for(admin))

    response = await api.put(f"{API}/schedules/{override.id}", json={"start_time": None})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = await api.put(f"{API}/working-hours/{hours.id}", json={"day_of_week": None})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    # Nullable fields can still be cleared
    response = await api.put(f"{API}/schedules/{override.id}", json={"repeat_pattern": None, "end_time": "13:00"})
    assert response.status_code == 200
    assert response.json()["end_time"] == "13:00:00"
