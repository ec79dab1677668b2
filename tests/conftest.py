import datetime as dt
from typing import Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.api.deps import get_clock, get_current_actor
from app.core.appointment_rules import BookingRules
from app.core.clock import Clock
from app.db.models import (
    Appointment,
    AppointmentStatus,
    DayOfWeek,
    Pet,
    ScheduleOverride,
    ScheduleStatus,
    User,
    UserRole,
    WorkingHours,
)
from app.db.session import get_session
from app.main import app
from app.schemas.auth import Actor

# Monday morning
NOW = dt.datetime(2025, 6, 9, 8, 0)

WEEKDAYS = [DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY, DayOfWeek.THURSDAY, DayOfWeek.FRIDAY]

class FixedClock(Clock):
    def __init__(self, now: dt.datetime):
        self.current = now

    def now(self) -> dt.datetime:
        return self.current

def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role)

class Factory:
    """Inserts committed rows for tests."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        await self.session.refresh(obj)
        return obj

    async def user(self, role: UserRole, name: str = "User", is_active: bool = True) -> User:
        return await self._save(User(role=role, name=name, is_active=is_active))

    async def doctor(self, name: str = "Dr. Vet", is_active: bool = True) -> User:
        return await self.user(UserRole.DOCTOR, name, is_active)

    async def pet(self, owner: User, name: str = "Rex") -> Pet:
        return await self._save(Pet(owner_id=owner.id, name=name, species="dog"))

    async def working_hours(
        self,
        doctor: User,
        day: DayOfWeek,
        start: dt.time = dt.time(8, 0),
        end: dt.time = dt.time(16, 0),
        is_active: bool = True,
    ) -> WorkingHours:
        return await self._save(
            WorkingHours(doctor_id=doctor.id, day_of_week=day, start_time=start, end_time=end, is_active=is_active)
        )

    async def weekdays(self, doctor: User, start: dt.time = dt.time(8, 0), end: dt.time = dt.time(16, 0)):
        return [await self.working_hours(doctor, day, start, end) for day in WEEKDAYS]

    async def override(
        self,
        doctor: User,
        day: dt.date,
        start: dt.time,
        end: dt.time,
        status: ScheduleStatus = ScheduleStatus.APPROVED,
        created_at: Optional[dt.datetime] = None,
    ) -> ScheduleOverride:
        override = ScheduleOverride(doctor_id=doctor.id, date=day, start_time=start, end_time=end, status=status)
        if created_at:
            override.created_at = created_at
        return await self._save(override)

    async def appointment(
        self,
        doctor: User,
        pet: Pet,
        scheduled_at: dt.datetime,
        duration_minutes: int = 30,
        status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    ) -> Appointment:
        return await self._save(
            Appointment(
                pet_id=pet.id,
                doctor_id=doctor.id,
                client_id=pet.owner_id,
                scheduled_at=scheduled_at,
                duration_minutes=duration_minutes,
                status=status,
                created_by=pet.owner_id,
            )
        )

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest_asyncio.fixture
async def session(engine):
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session

@pytest.fixture
def clock():
    return FixedClock(NOW)

@pytest.fixture
def rules():
    return BookingRules()

@pytest.fixture
def factory(session):
    return Factory(session)

@pytest_asyncio.fixture
async def admin(factory):
    return await factory.user(UserRole.ADMIN, "Admin")

@pytest_asyncio.fixture
async def receptionist(factory):
    return await factory.user(UserRole.RECEPTIONIST, "Front Desk")

@pytest_asyncio.fixture
async def doctor(factory):
    return await factory.doctor()

@pytest_asyncio.fixture
async def client_user(factory):
    return await factory.user(UserRole.CLIENT, "Owner")

@pytest_asyncio.fixture
async def pet(factory, client_user):
    return await factory.pet(client_user)

@pytest_asyncio.fixture
async def api(engine, clock):
    """HTTP client against the app; call ``api.login(actor)`` to pick the caller."""
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_session():
        async with maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        def login(actor: Actor):
            app.dependency_overrides[get_current_actor] = lambda: actor

        ac.login = login
        yield ac

    app.dependency_overrides.clear()
