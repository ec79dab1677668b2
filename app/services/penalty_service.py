from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import ForbiddenError
from app.core.logger import logger
from app.db.models import Appointment, Penalty
from app.schemas.auth import Actor

class PenaltyService:
    def __init__(self, session: AsyncSession):
        self.session = session

    def record_late_cancellation(self, appointment: Appointment, amount: Decimal, hours_until: float) -> Penalty:
        penalty = Penalty(
            client_id=appointment.client_id,
            appointment_id=appointment.id,
            amount=amount,
            reason=f"Late cancellation {hours_until:.1f}h before the appointment",
        )
        self.session.add(penalty)
        logger.info(f"Late cancellation fee {amount} recorded for client {appointment.client_id}")
        return penalty

    async def list_penalties(self, actor: Actor, client_id: Optional[UUID] = None) -> List[Penalty]:
        if actor.is_client:
            if client_id and client_id != actor.id:
                raise ForbiddenError("You can only view your own penalties")
            client_id = actor.id

        stmt = select(Penalty)
        if client_id:
            stmt = stmt.where(Penalty.client_id == client_id)
        stmt = stmt.order_by(Penalty.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
