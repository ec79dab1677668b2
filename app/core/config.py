from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "VetClinic Scheduler"
    API_V1_STR: str = "/api/v1"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "vetclinic"
    DATABASE_URL: Optional[str] = None
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    SESSION_KEY_PREFIX: str = "token:"
    LOG_LEVEL: str = "INFO"

    # Booking rules
    CANCELLATION_POLICY_HOURS: int = 24
    LATE_CANCELLATION_FEE: Decimal = Decimal("50.00")
    DEFAULT_APPOINTMENT_DURATION: int = 30
    SLOT_GRANULARITY_MINUTES: int = 30
    MAX_APPOINTMENT_DURATION: int = 480
    RESCHEDULE_MIN_HOURS_BEFORE: int = 48
    CLIENT_MIN_BOOKING_ADVANCE_MINUTES: int = 30
    STAFF_MAX_PAST_BOOKING_MINUTES: int = 60
    MAX_CALENDAR_RANGE_DAYS: int = 366
    BOOKING_MAX_RETRIES: int = 3

    AUTO_CANCEL_ENABLED: bool = True
    AUTO_CANCEL_INTERVAL_MINUTES: int = 15

    class Config:
        case_sensitive = True
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

settings = Settings()
