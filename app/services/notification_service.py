from enum import Enum
from typing import Optional
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logger import logger
from app.db.models import Notification

class NotificationEvent(str, Enum):
    APPOINTMENT_PROPOSED = "appointment.proposed"
    APPOINTMENT_CONFIRMED = "appointment.confirmed"
    APPOINTMENT_CANCELLED = "appointment.cancelled"
    APPOINTMENT_RESCHEDULED_BY_STAFF = "appointment.rescheduled_by_staff"
    RESCHEDULE_REQUESTED = "reschedule.requested"
    RESCHEDULE_APPROVED = "reschedule.approved"
    RESCHEDULE_REJECTED = "reschedule.rejected"
    SCHEDULE_APPROVED = "schedule.approved"
    SCHEDULE_REJECTED = "schedule.rejected"

class NotificationService:
    """
    Outbox of user notifications. Rows are added to the caller's session so a
    notification is only persisted together with the change it describes.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def notify(self, user_id: UUID, event: NotificationEvent, message: str, payload: Optional[dict] = None) -> Notification:
        notification = Notification(
            user_id=user_id,
            event=event.value,
            message=message,
            payload=jsonable_encoder(payload) if payload else None,
        )
        self.session.add(notification)
        logger.info(f"Notification {event.value} queued for user {user_id}")
        return notification
