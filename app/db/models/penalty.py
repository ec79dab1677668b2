from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

class Penalty(SQLModel, table=True):
    __tablename__ = "penalties"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    client_id: UUID = Field(foreign_key="users.id", index=True)
    appointment_id: Optional[UUID] = Field(default=None, foreign_key="appointments.id")
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    reason: str
    is_paid: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.now)
