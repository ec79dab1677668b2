from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.api.deps import get_current_actor
from app.db.session import get_session
from app.schemas.auth import Actor
from app.schemas.penalty import PenaltyResponse
from app.services.penalty_service import PenaltyService

router = APIRouter()

@router.get("", response_model=List[PenaltyResponse])
async def list_penalties(
    client_id: Optional[UUID] = None,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await PenaltyService(session).list_penalties(actor, client_id)
