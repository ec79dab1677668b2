from pydantic import BaseModel
from decimal import Decimal
from typing import Optional
from uuid import UUID
from datetime import datetime

class PenaltyResponse(BaseModel):
    id: UUID
    client_id: UUID
    appointment_id: Optional[UUID]
    amount: Decimal
    reason: str
    is_paid: bool
    created_at: datetime

    class Config:
        from_attributes = True
