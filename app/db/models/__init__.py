from sqlmodel import SQLModel
from .user import User, UserRole
from .pet import Pet
from .working_hours import WorkingHours, DayOfWeek
from .schedule import ScheduleOverride, ScheduleStatus
from .appointment import Appointment, AppointmentStatus
from .reschedule_request import RescheduleRequest, RescheduleStatus
from .penalty import Penalty
from .notification import Notification

__all__ = [
    "SQLModel",
    "User",
    "UserRole",
    "Pet",
    "WorkingHours",
    "DayOfWeek",
    "ScheduleOverride",
    "ScheduleStatus",
    "Appointment",
    "AppointmentStatus",
    "RescheduleRequest",
    "RescheduleStatus",
    "Penalty",
    "Notification",
]
