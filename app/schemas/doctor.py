from pydantic import BaseModel
from typing import Optional
from uuid import UUID

class DoctorActiveUpdate(BaseModel):
    is_active: bool

class DoctorStatusResponse(BaseModel):
    doctor_id: UUID
    is_active: bool
    working_hours_deactivated: int = 0
    schedules_rejected: int = 0
    message: Optional[str] = None
